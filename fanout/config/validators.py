"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration

COARSE_POLL_INTERVAL_SECONDS = 15 * 60


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for settings that are valid but likely unintended.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    poll_interval = config_dict.get("poll_interval", "5m")
    if isinstance(poll_interval, str):
        try:
            seconds = parse_duration(poll_interval)
        except DurationParseError:
            seconds = None  # reported as an error by model validation
        if seconds and seconds > COARSE_POLL_INTERVAL_SECONDS:
            warning_messages.append(
                f"Coarse poll_interval ({poll_interval}): reminders may fire up to "
                f"{seconds // 60} minutes before their configured offset"
            )

    dispatcher = config_dict.get("dispatcher") or {}
    if isinstance(dispatcher, dict):
        if dispatcher.get("max_concurrent_ticks") == 1:
            warning_messages.append(
                "max_concurrent_ticks is 1: every tick that overruns the poll interval "
                "forces the next window into a catch-up run"
            )
        if dispatcher.get("retry_failed_events") is False:
            warning_messages.append(
                "retry_failed_events is disabled: reminders whose dispatch fails are not re-attempted"
            )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
