"""Scheduling: reminder window evaluation and the periodic tick trigger."""

from .service import SchedulerService
from .window import DueReminder, due_reminders, is_due, window_start_for

__all__ = [
    "SchedulerService",
    "DueReminder",
    "due_reminders",
    "is_due",
    "window_start_for",
]
