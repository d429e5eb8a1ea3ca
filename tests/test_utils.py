import asyncio
import pytest

from core.utils import settle_all, describe_error, Settled


async def _value_after(delay: float, value):
    await asyncio.sleep(delay)
    return value


async def _error_after(delay: float, error: Exception):
    await asyncio.sleep(delay)
    raise error


@pytest.mark.asyncio
async def test_settle_all_preserves_input_order():
    # Completion order is reversed relative to input order
    results = await settle_all([_value_after(0.03, "a"), _value_after(0.02, "b"), _value_after(0.0, "c")])
    assert [r.index for r in results] == [0, 1, 2]
    assert [r.value for r in results] == ["a", "b", "c"]
    assert all(r.ok for r in results)


@pytest.mark.asyncio
async def test_settle_all_waits_for_every_call_after_a_failure():
    finished = []

    async def slow_success():
        await asyncio.sleep(0.05)
        finished.append("slow")
        return "done"

    results = await settle_all([_error_after(0.0, RuntimeError("boom")), slow_success()])

    assert finished == ["slow"]
    assert not results[0].ok
    assert isinstance(results[0].error, RuntimeError)
    assert results[1].ok and results[1].value == "done"


@pytest.mark.asyncio
async def test_settle_all_timeout_cancels_outstanding_calls():
    cancelled = asyncio.Event()

    async def never_finishes():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    results = await settle_all([_value_after(0.0, 1), never_finishes()], timeout=0.05)

    assert results[0].ok and results[0].value == 1
    assert isinstance(results[1].error, asyncio.TimeoutError)
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_settle_all_caller_timeout_cancels_every_call():
    state = {"cancelled": 0, "finished": 0}

    async def slow_call():
        try:
            await asyncio.sleep(0.2)
            state["finished"] += 1
        except asyncio.CancelledError:
            state["cancelled"] += 1
            raise

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(settle_all([slow_call() for _ in range(3)]), timeout=0.05)

    # Nothing keeps running after the caller has given up
    await asyncio.sleep(0.3)
    assert state == {"cancelled": 3, "finished": 0}


@pytest.mark.asyncio
async def test_settle_all_empty():
    assert await settle_all([]) == []


def test_settled_repr_and_describe_error():
    assert "value=3" in repr(Settled(0, value=3))
    assert describe_error(ValueError("bad input")) == "bad input"
    assert describe_error(asyncio.TimeoutError()) == "TimeoutError"
