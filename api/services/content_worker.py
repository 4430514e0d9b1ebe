"""
Content worker - a priority queue that drains generation tasks one at a time.

Tasks are ordered by priority (CRITICAL first), FIFO within a priority.
Exactly one task executes at a time; a running task is never preempted.
Failures are retried at LOW priority with exponential backoff up to
`max_retries`, then dropped and reported. `add_task` hands back a future
that resolves with the task's outcome, so consumers can await content
instead of polling shared state.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, Tuple

from api.schemas.worker_schemas import (
    ContentTask,
    QueueSnapshot,
    TaskOutcome,
    TaskPriority,
    TaskStatus,
    TaskType,
    TaskView,
    payload_key,
)
from api.services.errors import ExecutorNotRegisteredError
from api.services.task_executors import TaskExecutor
from api.utils.logger import get_logger, log_duration, task_context

logger = get_logger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF_SECONDS = 1.0
INTER_TASK_DELAY_SECONDS = 0.5

Sleep = Callable[[float], Awaitable[None]]
QueueListener = Callable[[QueueSnapshot], Any]


class ContentWorker:
    """Single-consumer priority work queue for content generation."""

    def __init__(
        self,
        executors: Mapping[TaskType, TaskExecutor],
        *,
        max_retries: int = MAX_RETRIES,
        retry_backoff_seconds: float = RETRY_BACKOFF_SECONDS,
        inter_task_delay_seconds: float = INTER_TASK_DELAY_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ):
        self.executors: Dict[TaskType, TaskExecutor] = dict(executors)
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self.inter_task_delay_seconds = inter_task_delay_seconds
        self._sleep = sleep

        self._queue: List[ContentTask] = []
        self._active: Optional[ContentTask] = None
        self.is_processing = False
        self._futures: Dict[str, asyncio.Future] = {}
        self._seq = itertools.count()
        # Bumped by clear_queue so a drain loop started before the clear winds down
        self._generation = 0
        self._drain_task: Optional[asyncio.Task] = None
        # Serialises execution even across a clear_queue + restart
        self._exec_lock = asyncio.Lock()
        self._listeners: List[QueueListener] = []
        self._background: Set[asyncio.Task] = set()

    # ----- observable state -----

    @property
    def queue(self) -> Tuple[ContentTask, ...]:
        return tuple(self._queue)

    @property
    def active_task(self) -> Optional[ContentTask]:
        return self._active

    @property
    def active_task_id(self) -> Optional[str]:
        return self._active.id if self._active else None

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot(
            queue=[TaskView(**t.to_dict()) for t in self._queue],
            is_processing=self.is_processing,
            active_task_id=self.active_task_id,
        )

    def subscribe(self, listener: QueueListener) -> Callable[[], None]:
        """Register a listener called with a QueueSnapshot on every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                result = listener(snap)
                if inspect.isawaitable(result):
                    bg = asyncio.ensure_future(result)
                    self._background.add(bg)
                    bg.add_done_callback(self._background.discard)
            except Exception:
                logger.exception("queue listener failed")

    def get_task_status(self, task_id: str) -> TaskStatus:
        if self._active is not None and self._active.id == task_id:
            return TaskStatus.RUNNING
        for t in self._queue:
            if t.id == task_id:
                return t.status
        return TaskStatus.NOT_FOUND

    def find_pending(self, task_type: TaskType, payload: Any) -> Optional[ContentTask]:
        key = payload_key(task_type, payload)
        for t in self._queue:
            if t.key == key:
                return t
        return None

    def future_for(self, task_id: str) -> Optional[asyncio.Future]:
        return self._futures.get(task_id)

    # ----- commands -----

    def add_task(
        self,
        task_type: TaskType,
        payload: Any,
        priority: TaskPriority = TaskPriority.MEDIUM,
    ) -> asyncio.Future:
        """
        Enqueue a task unless an identical one is already pending.

        Returns a future resolving to a TaskOutcome. For a duplicate, the
        future of the already-pending task is returned. Must be called with a
        running event loop.
        """
        task_type = TaskType(task_type)
        priority = TaskPriority(priority)

        existing = self.find_pending(task_type, payload)
        if existing is not None:
            logger.debug("duplicate task dropped type=%s existing=%s", task_type.value, existing.id)
            return self._futures[existing.id]

        task = ContentTask(type=task_type, payload=payload, priority=priority, seq=next(self._seq))
        future = asyncio.get_running_loop().create_future()
        self._futures[task.id] = future
        self._insert(task)
        logger.info("task queued id=%s priority=%s queue_length=%s", task.id, priority.value, len(self._queue))
        self._notify()

        self.start_processing()
        return future

    def remove_task(self, task_id: str) -> bool:
        """Drop a pending task. The in-flight task cannot be removed."""
        for t in self._queue:
            if t.id == task_id:
                self._queue.remove(t)
                self._resolve(t, TaskStatus.FAILED, "removed")
                self._notify()
                return True
        return False

    def clear_queue(self) -> None:
        """
        Drop every pending task and reset the processing flags. An in-flight
        task keeps running to completion; its drain loop exits afterwards.
        """
        dropped = self._queue
        self._queue = []
        for t in dropped:
            self._resolve(t, TaskStatus.FAILED, "cleared")
        self._generation += 1
        self.is_processing = False
        self._drain_task = None
        if dropped:
            logger.info("queue cleared dropped=%s", len(dropped))
        self._notify()

    def start_processing(self) -> None:
        if self.is_processing:
            return
        self.is_processing = True
        drain = self._drain_task
        # A loop halted by stop_processing may still be finishing its task
        if drain is None or drain.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain(self._generation))
        self._notify()

    def stop_processing(self) -> None:
        """Stop after the current task; pending tasks stay queued."""
        self.is_processing = False
        self._notify()

    async def join(self) -> None:
        """Wait until the current drain loop (if any) has finished."""
        while self._drain_task is not None:
            drain = self._drain_task
            await asyncio.shield(drain)
            if self._drain_task is drain:
                break

    async def shutdown(self) -> None:
        drain = self._drain_task
        self.clear_queue()
        if drain is not None and not drain.done():
            drain.cancel()
            try:
                await drain
            except asyncio.CancelledError:
                pass

    # ----- drain loop -----

    def _insert(self, task: ContentTask) -> None:
        self._queue.append(task)
        self._queue.sort(key=lambda t: t.sort_key)

    def _pop_next(self) -> Optional[ContentTask]:
        if not self._queue:
            return None
        return self._queue.pop(0)

    async def _drain(self, generation: int) -> None:
        try:
            while self.is_processing and generation == self._generation:
                task = self._pop_next()
                if task is None:
                    break

                backoff = await self._run(task, generation)

                if generation != self._generation:
                    break
                if backoff:
                    await self._sleep(backoff)
                if self._queue and self.inter_task_delay_seconds:
                    await self._sleep(self.inter_task_delay_seconds)
        finally:
            if generation == self._generation:
                self.is_processing = False
                self._drain_task = None
                self._notify()

    async def _run(self, task: ContentTask, generation: int) -> float:
        """Execute one task. Returns the backoff delay to apply before the next one."""
        async with self._exec_lock:
            self._active = task
            task.status = TaskStatus.RUNNING
            self._notify()
            try:
                with task_context(task.id), log_duration(logger, task.type.value):
                    executor = self.executors.get(task.type)
                    if executor is None:
                        raise ExecutorNotRegisteredError(f"No executor registered for {task.type.value}")
                    await executor.execute(task.payload)
            except Exception as e:
                return self._handle_failure(task, e, generation)
            else:
                task.status = TaskStatus.COMPLETED
                self._resolve(task, TaskStatus.COMPLETED)
                return 0.0
            finally:
                self._active = None
                self._notify()

    def _handle_failure(self, task: ContentTask, error: Exception, generation: int) -> float:
        task.attempts += 1
        task.error = f"{type(error).__name__}: {error}"

        if generation != self._generation:
            task.status = TaskStatus.FAILED
            self._resolve(task, TaskStatus.FAILED, "cleared")
            return 0.0

        if task.attempts < self.max_retries:
            logger.warning(
                "task failed id=%s attempt=%s/%s error=%s; retrying",
                task.id, task.attempts, self.max_retries, task.error,
            )
            task.status = TaskStatus.PENDING
            task.priority = TaskPriority.LOW
            duplicate = self.find_pending(task.type, task.payload)
            if duplicate is not None:
                # An identical task was queued while this one ran; let it carry the retry.
                self._chain(task, duplicate)
            else:
                self._insert(task)
            return self.retry_backoff_seconds * (2 ** (task.attempts - 1))

        logger.error("task permanently failed id=%s attempts=%s error=%s", task.id, task.attempts, task.error)
        task.status = TaskStatus.FAILED
        self._resolve(task, TaskStatus.FAILED, task.error)
        return 0.0

    def _chain(self, task: ContentTask, target: ContentTask) -> None:
        future = self._futures.pop(task.id, None)
        target_future = self._futures.get(target.id)
        if future is None or target_future is None or future.done():
            return

        def _copy(done: asyncio.Future) -> None:
            if not future.done():
                future.set_result(done.result())

        target_future.add_done_callback(_copy)

    def _resolve(self, task: ContentTask, status: TaskStatus, error: Optional[str] = None) -> None:
        future = self._futures.pop(task.id, None)
        if future is None or future.done():
            return
        future.set_result(
            TaskOutcome(
                task_id=task.id,
                type=task.type,
                status=status,
                attempts=task.attempts,
                error=error,
            )
        )
