"""Unit tests for ContentWorker: ordering, dedup, retries, clearing (executors are fakes)."""
import asyncio
from unittest.mock import AsyncMock, call

import pytest

from api.schemas.profile_schemas import ModuleType
from api.schemas.worker_schemas import (
    ModuleContentGenerationPayload,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from api.services.content_worker import ContentWorker
from api.services.task_executors import TaskExecutor


def module_payload(module_id: str) -> ModuleContentGenerationPayload:
    return ModuleContentGenerationPayload(
        module_id=module_id,
        module_type=ModuleType.CHOICE,
        description=f"desc {module_id}",
    )


class RecordingExecutor(TaskExecutor):
    task_type = TaskType.GENERATE_MODULE_CONTENT

    def __init__(self, fail_times=None, gates=None):
        self.calls = []
        self.fail_times = dict(fail_times or {})
        self.gates = gates or {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def execute(self, payload):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.calls.append(payload.module_id)
            gate = self.gates.get(payload.module_id)
            if gate is not None:
                await gate.wait()
            await asyncio.sleep(0)
            remaining = self.fail_times.get(payload.module_id, 0)
            if remaining:
                self.fail_times[payload.module_id] = remaining - 1
                raise RuntimeError(f"generation failed for {payload.module_id}")
        finally:
            self.in_flight -= 1


def make_worker(executor, **kwargs):
    kwargs.setdefault("sleep", AsyncMock(return_value=None))
    return ContentWorker({TaskType.GENERATE_MODULE_CONTENT: executor}, **kwargs)


async def wait_until(predicate, tries: int = 200):
    for _ in range(tries):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.mark.unit
class TestEnqueue:
    @pytest.mark.asyncio
    async def test_duplicate_pending_task_is_dropped(self):
        executor = RecordingExecutor()
        worker = make_worker(executor)

        first = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        second = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"), TaskPriority.HIGH)

        assert first is second
        assert len(worker.queue) == 1
        outcome = await first
        assert outcome.ok
        assert executor.calls == ["m1"]

    @pytest.mark.asyncio
    async def test_structurally_equal_payload_dicts_dedupe(self):
        executor = RecordingExecutor()
        worker = make_worker(executor)

        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, {"module_id": "m1", "description": "x"})
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, {"description": "x", "module_id": "m1"})

        assert len(worker.queue) == 1
        await worker.shutdown()

    @pytest.mark.asyncio
    async def test_same_payload_different_type_is_not_a_duplicate(self):
        worker = make_worker(RecordingExecutor())
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, {"id": "x"})
        worker.add_task(TaskType.GENERATE_CURRICULUM_STRUCTURE, {"id": "x"})
        assert len(worker.queue) == 2
        await worker.shutdown()

    @pytest.mark.asyncio
    async def test_add_task_starts_single_drain(self):
        worker = make_worker(RecordingExecutor())
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        drain = worker._drain_task
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m2"))

        assert worker.is_processing is True
        assert worker._drain_task is drain
        await worker.join()
        assert worker.is_processing is False


@pytest.mark.unit
class TestOrdering:
    @pytest.mark.asyncio
    async def test_priority_order(self):
        executor = RecordingExecutor()
        worker = make_worker(executor)

        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("low"), TaskPriority.LOW)
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("medium"), TaskPriority.MEDIUM)
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("critical"), TaskPriority.CRITICAL)
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("high"), TaskPriority.HIGH)
        await worker.join()

        assert executor.calls == ["critical", "high", "medium", "low"]

    @pytest.mark.asyncio
    async def test_fifo_within_priority(self):
        executor = RecordingExecutor()
        worker = make_worker(executor)
        for mid in ("m1", "m2", "m3"):
            worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload(mid))
        await worker.join()
        assert executor.calls == ["m1", "m2", "m3"]

    @pytest.mark.asyncio
    async def test_running_task_is_not_preempted(self):
        gate = asyncio.Event()
        executor = RecordingExecutor(gates={"m1": gate})
        worker = make_worker(executor)

        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"), TaskPriority.LOW)
        await wait_until(lambda: worker.active_task is not None)
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m2"), TaskPriority.CRITICAL)
        await asyncio.sleep(0)

        assert worker.active_task.payload.module_id == "m1"
        gate.set()
        await worker.join()
        assert executor.calls == ["m1", "m2"]
        assert executor.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_in_flight_task_is_not_deduplicated(self):
        gate = asyncio.Event()
        executor = RecordingExecutor(gates={"m1": gate})
        worker = make_worker(executor)

        first = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        await wait_until(lambda: worker.active_task is not None)
        second = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))

        assert first is not second
        assert len(worker.queue) == 1
        gate.set()
        await worker.join()
        assert executor.calls == ["m1", "m1"]

    @pytest.mark.asyncio
    async def test_inter_task_delay_only_between_tasks(self):
        sleep = AsyncMock(return_value=None)
        worker = make_worker(RecordingExecutor(), sleep=sleep, inter_task_delay_seconds=0.5)
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m2"))
        await worker.join()
        assert sleep.await_args_list == [call(0.5)]


@pytest.mark.unit
class TestRetries:
    @pytest.mark.asyncio
    async def test_success_removes_task(self):
        executor = RecordingExecutor()
        worker = make_worker(executor)
        future = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        outcome = await future
        await worker.join()

        assert outcome.status == TaskStatus.COMPLETED
        assert outcome.attempts == 0
        assert worker.queue == ()
        assert worker.get_task_status(outcome.task_id) == TaskStatus.NOT_FOUND
        assert executor.calls == ["m1"]

    @pytest.mark.asyncio
    async def test_failing_task_dropped_after_max_retries(self):
        sleep = AsyncMock(return_value=None)
        executor = RecordingExecutor(fail_times={"m1": 99})
        worker = make_worker(
            executor,
            sleep=sleep,
            max_retries=3,
            retry_backoff_seconds=1.0,
            inter_task_delay_seconds=0,
        )

        outcome = await worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        await worker.join()

        assert outcome.status == TaskStatus.FAILED
        assert outcome.attempts == 3
        assert "generation failed for m1" in outcome.error
        assert executor.calls == ["m1", "m1", "m1"]
        assert sleep.await_args_list == [call(1.0), call(2.0)]
        assert worker.queue == ()

    @pytest.mark.asyncio
    async def test_retry_is_demoted_behind_other_work(self):
        executor = RecordingExecutor(fail_times={"a": 1})
        worker = make_worker(executor, inter_task_delay_seconds=0)

        fa = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("a"))
        fb = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("b"))
        outcome_a, outcome_b = await asyncio.gather(fa, fb)

        assert executor.calls == ["a", "b", "a"]
        assert outcome_a.ok and outcome_a.attempts == 1
        assert outcome_b.ok

    @pytest.mark.asyncio
    async def test_missing_executor_fails_task(self):
        worker = ContentWorker({}, max_retries=1, sleep=AsyncMock(return_value=None))
        outcome = await worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        assert outcome.status == TaskStatus.FAILED
        assert "ExecutorNotRegisteredError" in outcome.error


@pytest.mark.unit
class TestQueueControl:
    @pytest.mark.asyncio
    async def test_clear_queue_keeps_in_flight_task(self):
        gate = asyncio.Event()
        executor = RecordingExecutor(gates={"m1": gate})
        worker = make_worker(executor)

        running = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        await wait_until(lambda: worker.active_task is not None)
        dropped = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m2"))

        worker.clear_queue()

        assert worker.queue == ()
        assert worker.is_processing is False
        cleared = await dropped
        assert cleared.status == TaskStatus.FAILED
        assert cleared.error == "cleared"

        # A restart after the clear must not run concurrently with m1
        restarted = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m3"))
        gate.set()
        assert (await running).ok
        assert (await restarted).ok
        await worker.join()
        assert executor.calls == ["m1", "m3"]
        assert executor.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_remove_task_and_status(self):
        gate = asyncio.Event()
        worker = make_worker(RecordingExecutor(gates={"m1": gate}))

        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        await wait_until(lambda: worker.active_task is not None)
        pending_future = worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m2"))
        pending = worker.find_pending(TaskType.GENERATE_MODULE_CONTENT, module_payload("m2"))
        active_id = worker.active_task_id

        assert worker.get_task_status(active_id) == TaskStatus.RUNNING
        assert worker.get_task_status(pending.id) == TaskStatus.PENDING
        assert worker.get_task_status("nope") == TaskStatus.NOT_FOUND

        assert worker.remove_task(active_id) is False
        assert worker.remove_task(pending.id) is True
        assert (await pending_future).error == "removed"

        gate.set()
        await worker.join()

    @pytest.mark.asyncio
    async def test_stop_processing_leaves_pending_tasks(self):
        gate = asyncio.Event()
        executor = RecordingExecutor(gates={"m1": gate})
        worker = make_worker(executor)

        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        await wait_until(lambda: worker.active_task is not None)
        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m2"))
        worker.stop_processing()
        gate.set()
        await worker.join()

        assert executor.calls == ["m1"]
        assert len(worker.queue) == 1
        await worker.shutdown()

    @pytest.mark.asyncio
    async def test_restart_after_stop_reuses_running_drain(self):
        gates = {"m1": asyncio.Event(), "m2": asyncio.Event()}
        executor = RecordingExecutor(gates=gates)
        worker = make_worker(executor)

        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        await wait_until(lambda: worker.active_task is not None)
        drain = worker._drain_task
        worker.stop_processing()
        assert worker.is_processing is False

        worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m2"))
        assert worker.is_processing is True
        assert worker._drain_task is drain

        gates["m1"].set()
        await wait_until(lambda: worker.active_task is not None and worker.active_task.payload.module_id == "m2")
        assert worker.is_processing is True
        assert worker.snapshot().is_processing is True

        gates["m2"].set()
        await worker.join()

        assert executor.calls == ["m1", "m2"]
        assert executor.max_in_flight == 1
        assert worker.is_processing is False
        assert drain.done()

    @pytest.mark.asyncio
    async def test_listeners_receive_snapshots(self):
        worker = make_worker(RecordingExecutor())
        snapshots = []
        unsubscribe = worker.subscribe(snapshots.append)

        await worker.add_task(TaskType.GENERATE_MODULE_CONTENT, module_payload("m1"))
        await worker.join()
        unsubscribe()

        assert any(s.active_task_id is not None for s in snapshots)
        assert snapshots[0].queue[0].payload["module_id"] == "m1"
        assert snapshots[-1].is_processing is False
        assert snapshots[-1].queue == []

        count = len(snapshots)
        worker.clear_queue()
        assert len(snapshots) == count
