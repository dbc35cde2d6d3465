"""Dispatcher orchestration: reminder ticks and content fan-out."""

from .models import ContentDispatchResult, EventDispatchStats, TickResult
from .runner import FanoutDispatcher

__all__ = [
    "FanoutDispatcher",
    "TickResult",
    "EventDispatchStats",
    "ContentDispatchResult",
]
