# -*- coding: utf-8 -*-
"""
Background Worker
=================

Out-of-process executor for extraction and merge tasks.

Wire protocol (plain dicts, copied across the process boundary):

    request:  {"id": int, "type": TASK_*, "payload": {...}}
    replies:  {"type": "READY"}
              {"type": "PROGRESS", "id": int, "task": str, "progress": int}
              {"type": "COMPLETE", "id": int, "result": {...}}
              {"type": "ERROR", "id": int, "error": str}

`None` on the request queue stops the worker.
"""

import logging
import multiprocessing
import queue
import threading
from typing import Callable, Dict, Optional

from i2localizer.core.exceptions import WorkerUnavailableError
from i2localizer.core.i2_parser import DEFAULT_PROGRESS_INTERVAL, ExtractedItem, I2Parser
from i2localizer.core.line_buffer import LineBuffer
from i2localizer.core.merge_engine import MergeEngine

TASK_EXTRACT = "EXTRACT"
TASK_APPLY = "APPLY_TRANSLATIONS"
TASK_APPLY_SHAPED = "GENERATE_SHAPED"

MSG_READY = "READY"
MSG_PROGRESS = "PROGRESS"
MSG_COMPLETE = "COMPLETE"
MSG_ERROR = "ERROR"
# Posted by the foreground channel itself when the worker process dies
MSG_WORKER_EXITED = "WORKER_EXITED"

MessageCallback = Callable[[Dict], None]

logger = logging.getLogger(__name__)


def run_task(task_type: str, payload: Dict, progress: Optional[Callable[[int], None]] = None) -> Dict:
    """
    Execute one task on a copied payload and return a plain result dict.

    Shared by the worker process and the in-process fallback so both paths
    produce identical results.
    """
    if task_type == TASK_EXTRACT:
        parser = I2Parser(payload.get('progress_interval', DEFAULT_PROGRESS_INTERVAL))
        items = parser.extract(payload.get('content', ''), int(payload.get('target_slot', 0)), progress)
        return {'items': [item.to_dict() for item in items]}

    if task_type in (TASK_APPLY, TASK_APPLY_SHAPED):
        buffer = LineBuffer(payload.get('lines', []))
        items = [ExtractedItem.from_dict(data) for data in payload.get('items', [])]
        result = MergeEngine().apply(
            buffer,
            items,
            dict(payload.get('translations', {})),
            shape=task_type == TASK_APPLY_SHAPED,
        )
        return {'lines': result.buffer.lines, 'count': result.applied_count}

    raise ValueError(f"Unknown message type: {task_type}")


def worker_main(requests, responses) -> None:
    """Worker process entry point."""
    responses.put({'type': MSG_READY})

    while True:
        message = requests.get()
        if message is None:
            break

        request_id = message.get('id')
        task_type = message.get('type', '')

        def report(percent: int, _id=request_id, _task=task_type):
            responses.put({'type': MSG_PROGRESS, 'id': _id, 'task': _task, 'progress': percent})

        try:
            result = run_task(task_type, message.get('payload') or {}, report)
        except Exception as e:
            responses.put({
                'type': MSG_ERROR,
                'id': request_id,
                'error': str(e) or 'Worker processing failed',
            })
            continue

        responses.put({'type': MSG_COMPLETE, 'id': request_id, 'result': result})


class ProcessWorkerChannel:
    """
    Message channel to a worker process.

    Replies are read by a daemon thread and handed to `on_message`; the
    callback runs on that thread, so it must hand the message over to its
    own event loop.
    """

    def __init__(self, start_method: str = "spawn", join_timeout: float = 2.0, poll_interval: float = 0.2):
        self.logger = logging.getLogger(__name__)
        self.start_method = start_method
        self.join_timeout = join_timeout
        self.poll_interval = poll_interval

        self._process = None
        self._requests = None
        self._responses = None
        self._reader: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.is_alive()

    def start(self, on_message: MessageCallback) -> None:
        context = multiprocessing.get_context(self.start_method)
        self._requests = context.Queue()
        self._responses = context.Queue()
        self._process = context.Process(
            target=worker_main,
            args=(self._requests, self._responses),
            name="i2localizer-worker",
            daemon=True,
        )
        self._process.start()

        self._reader = threading.Thread(
            target=self._pump,
            args=(on_message,),
            name="i2localizer-worker-reader",
            daemon=True,
        )
        self._reader.start()
        self.logger.debug(f"Worker process started (pid {self._process.pid}, {self.start_method})")

    def send(self, message: Dict) -> None:
        if not self.is_alive:
            raise WorkerUnavailableError("Worker process is not running", message.get('id'))
        self._requests.put(message)

    def _pump(self, on_message: MessageCallback) -> None:
        while not self._stop.is_set():
            try:
                message = self._responses.get(timeout=self.poll_interval)
            except queue.Empty:
                if self._process is not None and not self._process.is_alive() and not self._stop.is_set():
                    on_message({
                        'type': MSG_WORKER_EXITED,
                        'error': f"Worker exited with code {self._process.exitcode}",
                    })
                    return
                continue
            except (EOFError, OSError) as e:
                if not self._stop.is_set():
                    on_message({'type': MSG_WORKER_EXITED, 'error': f"Worker channel closed: {e}"})
                return
            on_message(message)

    def close(self) -> None:
        self._stop.set()

        if self._process is not None:
            if self._process.is_alive():
                try:
                    self._requests.put(None)
                except (OSError, ValueError) as e:
                    self.logger.debug(f"Could not send stop sentinel: {e}")
                self._process.join(self.join_timeout)
            if self._process.is_alive():
                self.logger.warning("Worker did not stop in time, terminating")
                self._process.terminate()
                self._process.join(self.join_timeout)

        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(self.join_timeout)

        for q in (self._requests, self._responses):
            if q is not None:
                q.cancel_join_thread()
                q.close()

        self._process = None
        self._reader = None
