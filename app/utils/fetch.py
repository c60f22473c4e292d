"""
Timeout-guarded fetch primitives.

with_timeout() turns "too slow" and "failed" into the same degraded result:
the caller always gets either the operation's value or the fallback.
fetch_all_with_timeout() applies that rule to many operations concurrently so
one slow or broken provider cannot block or fail a whole dashboard render.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Iterable, Optional, TypeVar

from app.utils.logger import log

T = TypeVar("T")


@dataclass
class FetchEntry:
    """One keyed operation for fetch_all_with_timeout()."""
    key: str
    operation: Awaitable[Any]
    fallback: Any = None
    # Overrides the shared deadline (e.g. order calls shorter than analytics)
    timeout: Optional[float] = None


def _discard_outcome(task: asyncio.Future) -> None:
    """Consume the abandoned task's result so it is never reported as unhandled."""
    if not task.cancelled():
        task.exception()


async def with_timeout(
    operation: Awaitable[T],
    timeout: Optional[float],
    fallback: T,
    label: str = "operation",
) -> T:
    """
    Race an awaitable against a deadline.

    Args:
        operation: Coroutine or future to run
        timeout: Deadline in seconds (None = no deadline)
        fallback: Value returned on timeout or error
        label: Name used in log lines

    Returns:
        The operation's result, or fallback if it timed out or raised.
        On timeout the operation is cancelled and abandoned; whatever it
        eventually does is discarded.
    """
    task = asyncio.ensure_future(operation)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        # Caller was cancelled: take the operation down with it
        task.cancel()
        task.add_done_callback(_discard_outcome)
        raise

    if not done:
        task.cancel()
        task.add_done_callback(_discard_outcome)
        log.warning(f"{label} timed out after {timeout}s, using fallback")
        return fallback

    if task.cancelled():
        log.warning(f"{label} was cancelled, using fallback")
        return fallback

    error = task.exception()
    if error is not None:
        log.warning(f"{label} failed ({type(error).__name__}: {error}), using fallback")
        return fallback

    return task.result()


async def fetch_all_with_timeout(
    entries: Iterable[FetchEntry],
    timeout: float = 10.0,
) -> Dict[str, Any]:
    """
    Run every entry concurrently under its own deadline.

    Never raises. Returns exactly one result per key (the value or that
    entry's fallback), independent of completion order.
    """
    results: Dict[str, Any] = {}

    async def _run(entry: FetchEntry) -> None:
        deadline = timeout if entry.timeout is None else entry.timeout
        results[entry.key] = await with_timeout(
            entry.operation, deadline, entry.fallback, label=entry.key
        )

    await asyncio.gather(*(_run(entry) for entry in entries))
    return results
