from __future__ import annotations

import asyncio

import pytest

from hoststore._serializer import OperationSerializer


class _Tracker:
    def __init__(self) -> None:
        self.active = 0
        self.max_active = 0
        self.order: list[str] = []

    def op(self, name: str, delay: float = 0.01, fail: bool = False):
        async def _run() -> str:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            try:
                await asyncio.sleep(delay)
                self.order.append(name)
                if fail:
                    raise RuntimeError(name)
                return name
            finally:
                self.active -= 1

        return _run


@pytest.mark.asyncio
async def test_same_key_operations_never_overlap_and_keep_order() -> None:
    serializer = OperationSerializer()
    tracker = _Tracker()

    results = await asyncio.gather(
        serializer.enqueue("settings", tracker.op("a", 0.03)),
        serializer.enqueue("settings", tracker.op("b", 0.01)),
        serializer.enqueue("settings", tracker.op("c", 0.0)),
    )

    assert results == ["a", "b", "c"]
    assert tracker.order == ["a", "b", "c"]
    assert tracker.max_active == 1


@pytest.mark.asyncio
async def test_different_keys_run_concurrently() -> None:
    serializer = OperationSerializer()
    tracker = _Tracker()

    await asyncio.gather(
        serializer.enqueue("a", tracker.op("a", 0.03)),
        serializer.enqueue("b", tracker.op("b", 0.03)),
    )

    assert tracker.max_active == 2


@pytest.mark.asyncio
async def test_previous_failure_does_not_block_or_leak() -> None:
    serializer = OperationSerializer()
    tracker = _Tracker()

    first = asyncio.ensure_future(serializer.enqueue("k", tracker.op("first", fail=True)))
    second = asyncio.ensure_future(serializer.enqueue("k", tracker.op("second")))

    with pytest.raises(RuntimeError, match="first"):
        await first
    assert await second == "second"


@pytest.mark.asyncio
async def test_idle_keys_are_evicted() -> None:
    serializer = OperationSerializer()
    tracker = _Tracker()

    await serializer.enqueue("k", tracker.op("only"))
    await asyncio.sleep(0)

    assert "k" not in serializer
    assert len(serializer) == 0


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_queued_operation() -> None:
    serializer = OperationSerializer()
    tracker = _Tracker()

    caller = asyncio.ensure_future(serializer.enqueue("k", tracker.op("write", 0.03)))
    await asyncio.sleep(0.005)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    await serializer.drain("k")
    assert tracker.order == ["write"]


@pytest.mark.asyncio
async def test_drain_all_waits_for_every_key() -> None:
    serializer = OperationSerializer()
    tracker = _Tracker()

    for key in ("a", "b", "c"):
        asyncio.ensure_future(serializer.enqueue(key, tracker.op(key, 0.01)))
    await asyncio.sleep(0)

    await serializer.drain_all()

    assert sorted(tracker.order) == ["a", "b", "c"]
    assert len(serializer) == 0


@pytest.mark.asyncio
async def test_settle_current_ignores_work_queued_afterwards() -> None:
    serializer = OperationSerializer()
    tracker = _Tracker()
    gate = asyncio.Event()

    asyncio.ensure_future(serializer.enqueue("a", tracker.op("first", 0.01)))
    await asyncio.sleep(0)
    settle = asyncio.ensure_future(serializer.settle_current())
    await asyncio.sleep(0)

    async def _blocked() -> str:
        await gate.wait()
        return "late"

    late = asyncio.ensure_future(serializer.enqueue("a", _blocked))

    await asyncio.wait_for(settle, timeout=1.0)
    assert tracker.order == ["first"]
    assert not late.done()

    gate.set()
    assert await late == "late"
