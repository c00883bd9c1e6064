# -*- coding: utf-8 -*-
"""
Task Runner
===========

Runs extraction and merge tasks either in the background worker or in
process, behind the same async API.

Each request sent to the worker gets a correlation id and a timeout entry in
the pending table. Replies are matched by id only, so concurrent requests
may complete in any order.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from i2localizer.core.exceptions import (
    TaskCancelledError, TaskFailedError, TaskTimeoutError, WorkerUnavailableError
)
from i2localizer.core.i2_parser import ExtractedItem
from i2localizer.core.line_buffer import LineBuffer
from i2localizer.core.merge_engine import MergeResult
from i2localizer.core.worker import (
    MSG_COMPLETE, MSG_ERROR, MSG_PROGRESS, MSG_READY, MSG_WORKER_EXITED,
    TASK_APPLY, TASK_APPLY_SHAPED, TASK_EXTRACT,
    ProcessWorkerChannel, run_task
)
from i2localizer.utils.config import WorkerSettings

ProgressCallback = Callable[[str, int], None]


class RunnerState(Enum):
    """Task runner lifecycle states"""
    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    READY = "ready"
    UNAVAILABLE = "unavailable"
    CLOSED = "closed"


@dataclass
class PendingRequest:
    """A request waiting for its worker reply"""
    task_type: str
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = None


class TaskRunner:
    """
    Async facade over the background worker.

    Flow:
    1. initialize() starts the worker and waits for READY, or for the
       handshake timeout, whichever comes first
    2. extract / merge_apply / merge_shaped are sent to the worker
    3. If the worker cannot be started, or dies, tasks run in process
    4. shutdown() rejects every pending request and stops the worker
    """

    def __init__(
        self,
        settings: Optional[WorkerSettings] = None,
        channel_factory: Optional[Callable[[], object]] = None,
        progress_callback: Optional[ProgressCallback] = None,
        progress_interval: int = 1000
    ):
        self.logger = logging.getLogger(__name__)
        self.settings = settings or WorkerSettings()
        self.channel_factory = channel_factory or self._default_channel
        self.progress_callback = progress_callback
        self.progress_interval = progress_interval

        # State
        self.state = RunnerState.UNINITIALIZED
        self._channel = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ready: Optional[asyncio.Future] = None
        self._init_task: Optional[asyncio.Future] = None
        self._pending: Dict[int, PendingRequest] = {}
        self._next_request_id = 1

    def _default_channel(self):
        return ProcessWorkerChannel(self.settings.start_method, self.settings.join_timeout)

    @property
    def uses_worker(self) -> bool:
        return self.state is RunnerState.READY

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def __aenter__(self) -> "TaskRunner":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> RunnerState:
        """Bring up the worker once; concurrent callers share the same attempt."""
        if self.state is RunnerState.CLOSED:
            raise TaskCancelledError("Task runner is shut down")
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._bring_up())
        return await asyncio.shield(self._init_task)

    async def _bring_up(self) -> RunnerState:
        self._loop = asyncio.get_running_loop()

        if not self.settings.use_worker:
            self.state = RunnerState.UNAVAILABLE
            self.logger.info("Background worker disabled, running tasks in process")
            return self.state

        self.state = RunnerState.STARTING
        self._ready = self._loop.create_future()

        try:
            self._channel = self.channel_factory()
            self._channel.start(self._receive)
        except Exception as e:
            self.logger.warning(f"Worker unavailable, running tasks in process: {e}")
            self._channel = None
            self.state = RunnerState.UNAVAILABLE
            return self.state

        try:
            await asyncio.wait_for(asyncio.shield(self._ready), self.settings.handshake_timeout)
        except asyncio.TimeoutError:
            self.logger.debug("No worker handshake within timeout, assuming ready")

        if self.state is RunnerState.STARTING:
            self.state = RunnerState.READY
            self.logger.info("Background worker ready")
        return self.state

    def shutdown(self) -> None:
        """Reject all pending requests and release the worker."""
        self._stop_channel(self._begin_shutdown())

    async def aclose(self) -> None:
        """Like shutdown(), but waits for the worker to exit off the event loop thread."""
        channel = self._begin_shutdown()
        if channel is not None:
            await asyncio.get_running_loop().run_in_executor(None, self._stop_channel, channel)

    def _begin_shutdown(self):
        if self.state is RunnerState.CLOSED:
            return None

        cancelled = self._reject_all(lambda request_id: TaskCancelledError("Task runner shut down", request_id))
        if cancelled:
            self.logger.info(f"Cancelled {cancelled} pending task(s)")

        self.state = RunnerState.CLOSED
        self._resolve_handshake()

        channel, self._channel = self._channel, None
        return channel

    def _close_channel(self) -> None:
        channel, self._channel = self._channel, None
        self._stop_channel(channel)

    def _stop_channel(self, channel) -> None:
        if channel is None:
            return
        try:
            channel.close()
        except Exception as e:
            self.logger.warning(f"Error while stopping worker: {e}")

    def _reject_all(self, make_error: Callable[[int], Exception]) -> int:
        pending, self._pending = self._pending, {}
        rejected = 0
        for request_id, entry in pending.items():
            if entry.timer is not None:
                entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(make_error(request_id))
                rejected += 1
        return rejected

    # ------------------------------------------------------------------
    # Reply handling
    # ------------------------------------------------------------------

    def _receive(self, message: Dict) -> None:
        """Called from the channel's reader thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._dispatch, message)
        except RuntimeError:
            # Loop closed between the check and the call
            self.logger.debug(f"Dropping worker message after loop shutdown: {message.get('type')}")

    def _dispatch(self, message: Dict) -> None:
        kind = message.get('type')

        if kind == MSG_READY:
            self._resolve_handshake()
            return

        if kind == MSG_PROGRESS:
            self._report_progress(message.get('task', ''), message.get('progress', 0))
            return

        if kind == MSG_WORKER_EXITED:
            self._worker_lost(message.get('error') or "Worker exited")
            return

        request_id = message.get('id')
        entry = self._pending.pop(request_id, None)
        if entry is None:
            self.logger.debug(f"Ignoring reply for unknown request {request_id}")
            return

        if entry.timer is not None:
            entry.timer.cancel()
        if entry.future.done():
            return

        if kind == MSG_COMPLETE:
            entry.future.set_result(message.get('result') or {})
        elif kind == MSG_ERROR:
            entry.future.set_exception(
                TaskFailedError(message.get('error') or "Worker processing failed", request_id)
            )
        else:
            entry.future.set_exception(TaskFailedError(f"Unexpected reply type: {kind}", request_id))

    def _worker_lost(self, reason: str) -> None:
        if self.state is RunnerState.CLOSED:
            return
        self.logger.warning(f"Background worker lost ({reason}), running tasks in process")
        self._reject_all(lambda request_id: WorkerUnavailableError(reason, request_id))
        self.state = RunnerState.UNAVAILABLE
        self._close_channel()
        self._resolve_handshake()

    def _resolve_handshake(self) -> None:
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(True)

    def _expire(self, request_id: int, timeout: float) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None or entry.future.done():
            return
        self.logger.warning(f"Task {entry.task_type} #{request_id} timed out after {timeout:g}s")
        entry.future.set_exception(TaskTimeoutError(f"Worker timeout ({timeout:g}s)", request_id))

    def _forget(self, request_id: int) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()

    def _report_progress(self, task_type: str, progress: int) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(task_type, int(progress))
        except Exception as e:
            self.logger.debug(f"Progress callback failed: {e}")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _submit(self, task_type: str, payload: Dict, timeout: Optional[float]) -> Dict:
        request_id = self._next_request_id
        self._next_request_id += 1

        wait = self.settings.request_timeout if timeout is None else timeout
        entry = PendingRequest(task_type, self._loop.create_future())
        entry.timer = self._loop.call_later(wait, self._expire, request_id, wait)
        self._pending[request_id] = entry

        try:
            self._channel.send({'id': request_id, 'type': task_type, 'payload': payload})
        except Exception as e:
            self._forget(request_id)
            raise WorkerUnavailableError(f"Worker communication failed: {e}", request_id) from e

        try:
            return await entry.future
        finally:
            # Covers caller-side cancellation; no-op when already resolved
            self._forget(request_id)

    async def _run(self, task_type: str, payload: Dict, timeout: Optional[float]) -> Dict:
        await self.initialize()
        if self.state is RunnerState.CLOSED:
            raise TaskCancelledError("Task runner is shut down")

        if self.state is RunnerState.READY and self._channel is not None:
            return await self._submit(task_type, payload, timeout)

        return run_task(task_type, payload, lambda percent: self._report_progress(task_type, percent))

    async def extract(self, content: str, target_slot: int, timeout: Optional[float] = None) -> List[ExtractedItem]:
        """Extract the items of `target_slot` from raw file content."""
        result = await self._run(TASK_EXTRACT, {
            'content': content,
            'target_slot': target_slot,
            'progress_interval': self.progress_interval,
        }, timeout)
        return [ExtractedItem.from_dict(data) for data in result.get('items', [])]

    async def merge_apply(
        self,
        buffer: LineBuffer,
        items: Iterable[ExtractedItem],
        translations: Dict[str, str],
        timeout: Optional[float] = None
    ) -> MergeResult:
        """Merge translations as-is; the caller's buffer is not modified."""
        return await self._merge(TASK_APPLY, buffer, items, translations, timeout)

    async def merge_shaped(
        self,
        buffer: LineBuffer,
        items: Iterable[ExtractedItem],
        translations: Dict[str, str],
        timeout: Optional[float] = None
    ) -> MergeResult:
        """Merge translations shaped for the RTL renderer; the caller's buffer is not modified."""
        return await self._merge(TASK_APPLY_SHAPED, buffer, items, translations, timeout)

    async def _merge(self, task_type, buffer, items, translations, timeout) -> MergeResult:
        payload = {
            'lines': buffer.lines,
            'items': [item.to_dict() for item in items],
            'translations': dict(translations),
        }
        result = await self._run(task_type, payload, timeout)
        return MergeResult(LineBuffer(result.get('lines', [])), int(result.get('count', 0)))
