"""Propagate the acting identity through the call stack using contextvars.

The actor is recorded on audit entries and on created_by / updated_by columns.
Request handlers set it to the authenticated user; background workers run
under a fixed system actor.
"""

from contextlib import contextmanager
from contextvars import ContextVar

_current_actor: ContextVar[str | None] = ContextVar("current_actor", default=None)


def get_current_actor() -> str:
    """
    Get current actor from context.

    Raises RuntimeError if no actor is set. Code paths that mutate billing
    state must always run under an actor.
    """
    actor = _current_actor.get()
    if actor is None:
        raise RuntimeError(
            "No actor context set. Wrap the call in actor_context(...) "
            "before mutating billing state."
        )
    return actor


def set_current_actor(actor: str) -> None:
    """Set current actor in context."""
    if not actor:
        raise ValueError("actor must be a non-empty string")
    _current_actor.set(actor)


def clear_current_actor() -> None:
    """
    Clear actor context.

    Must be called in a finally block to prevent context leakage.
    """
    _current_actor.set(None)


@contextmanager
def actor_context(actor: str):
    """
    Context manager for temporarily setting the actor.

    Example:
        with actor_context("recurring-processor"):
            service.process_due()
    """
    previous = _current_actor.get()
    set_current_actor(actor)
    try:
        yield
    finally:
        if previous is None:
            clear_current_actor()
        else:
            set_current_actor(previous)
