# core/utils.py
"""
Core Utility Functions.

``settle_all`` is the all-settle barrier used for upload fan-out: it starts
every awaitable at once, waits until each one has either returned or raised,
and reports the outcome per input index. Unlike ``asyncio.gather`` without
``return_exceptions``, one failure never hides the others.
"""
import asyncio
from typing import Awaitable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")


class Settled(Generic[T]):
    """Outcome of one awaitable: either ``value`` or ``error`` is set."""
    __slots__ = ("index", "value", "error")

    def __init__(self, index: int, value: Optional[T] = None, error: Optional[BaseException] = None):
        self.index = index
        self.value = value
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        state = f"value={self.value!r}" if self.ok else f"error={self.error!r}"
        return f"Settled(index={self.index}, {state})"


async def settle_all(awaitables: Sequence[Awaitable[T]], timeout: Optional[float] = None) -> List[Settled[T]]:
    """
    Runs all awaitables concurrently and waits for every one of them to settle.

    Results are returned in input order, correlated by index rather than by
    completion order. When ``timeout`` expires, the awaitables still running
    are cancelled and reported with an ``asyncio.TimeoutError``. If the caller
    itself is cancelled (e.g. by ``asyncio.wait_for``), every awaitable still
    running is cancelled before the cancellation propagates.
    """
    if not awaitables:
        return []

    tasks = [asyncio.ensure_future(aw) for aw in awaitables]
    try:
        done, pending = await asyncio.wait(tasks, timeout=timeout)
    except asyncio.CancelledError:
        # Caller gave up; take every child down with us
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    for task in pending:
        task.cancel()
    if pending:
        # Let cancellations propagate before reporting
        await asyncio.gather(*pending, return_exceptions=True)

    results: List[Settled[T]] = []
    for index, task in enumerate(tasks):
        if task in pending:
            results.append(Settled(index, error=asyncio.TimeoutError(f"Timed out after {timeout}s")))
        elif task.cancelled():
            results.append(Settled(index, error=asyncio.CancelledError()))
        elif task.exception() is not None:
            results.append(Settled(index, error=task.exception()))
        else:
            results.append(Settled(index, value=task.result()))
    return results


def describe_error(error: BaseException) -> str:
    """Short human-readable description of an exception, falling back to its type name."""
    message = str(error)
    return message if message else type(error).__name__
