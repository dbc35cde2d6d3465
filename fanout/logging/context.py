"""Context propagation for structured logging.

Fields pushed with ``log_context`` (run_id, event_id, tier, post_id ...) are
attached to every record emitted inside the scope. Context lives in a
``ContextVar``; worker threads only see it when the submitting code runs them
inside a copied context (see ``FanoutDispatcher``).
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Get the current logging context.

    Returns:
        Copy of the active context fields; mutating it does not affect logging
    """
    return LogContextVar.get().copy()


def push_log_context(**kwargs) -> Token:
    """Merge fields into the logging context.

    Fields already present are overridden for the duration of the push. Use
    pop_log_context() to restore the previous state.

    Args:
        **kwargs: Key-value pairs to add to the logging context

    Returns:
        Token that restores the previous context state

    Example:
        >>> token = push_log_context(run_id="abc123", event_id="evt-1")
        >>> # ... evaluate the event, every record carries run_id and event_id ...
        >>> pop_log_context(token)
    """
    return LogContextVar.set({**LogContextVar.get(), **kwargs})


def pop_log_context(token: Token) -> None:
    """Restore the logging context to the state captured by ``token``.

    Args:
        token: Token returned from push_log_context()

    Example:
        >>> token = push_log_context(post_id="post-1")
        >>> # ... fan out the post ...
        >>> pop_log_context(token)
    """
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop all context fields.

    This is primarily useful for testing.
    """
    LogContextVar.set({})


class log_context:
    """Context manager for scoped logging context.

    Pushes the fields on entry and pops them on exit, also when the block
    raises.

    Example:
        >>> with log_context(run_id="abc123", event_id="evt-1"):
        ...     logger.info("Reminder due")  # includes run_id and event_id
        ...     with log_context(tier=1):
        ...         logger.info("Writing records")  # adds tier
    """

    def __init__(self, **kwargs):
        """Initialize the context manager.

        Args:
            **kwargs: Key-value pairs to add to the logging context
        """
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
        return False
