"""Fire-and-forget dispatch for side effects that must never fail or delay the caller."""
import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


def dispatch_in_background(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> threading.Thread:
    """Run fn on a daemon thread. Exceptions are logged, never retried, never re-raised."""

    def _run() -> None:
        try:
            fn(*args, **kwargs)
        except Exception as e:
            logger.warning("Background task %s failed: %s", getattr(fn, "__name__", fn), e, exc_info=True)

    thread = threading.Thread(target=_run, daemon=True)
    thread.start()
    return thread
