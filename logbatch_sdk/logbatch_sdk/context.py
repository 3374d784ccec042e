"""
Session context - which session the current thread or task is logging for.

Uses contextvars.ContextVar, so every thread and every asyncio Task sees its
own value. Web adapters set it per request; SessionLogHandler reads it.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator, Optional


_session_var: ContextVar[Optional[str]] = ContextVar(
    "logbatch_session_id", default=None,
)


def get_session_id() -> Optional[str]:
    """Return the session id of the current context, or None if not set."""
    return _session_var.get()


def set_session_id(session_id: Optional[str]) -> Token:
    """
    Set the session id for the current thread/task.

    Returns:
        Token to pass to reset_session_id() to restore the previous value
    """
    return _session_var.set(session_id)


def reset_session_id(token: Token) -> None:
    _session_var.reset(token)


def clear_session_id() -> None:
    _session_var.set(None)


@contextmanager
def session_scope(session_id: str) -> Iterator[str]:
    """
    Log for session_id within a block, restoring the previous value after.

    Usage:
        with session_scope("checkout-42"):
            logger.info("payment accepted")
    """
    token = set_session_id(session_id)
    try:
        yield session_id
    finally:
        reset_session_id(token)
