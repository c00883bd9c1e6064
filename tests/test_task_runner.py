import asyncio
import threading

import pytest

from i2localizer.core.exceptions import (
    TaskCancelledError,
    TaskFailedError,
    TaskTimeoutError,
    WorkerUnavailableError,
)
from i2localizer.core.line_buffer import LineBuffer
from i2localizer.core.task_runner import RunnerState, TaskRunner
from i2localizer.core.worker import (
    MSG_COMPLETE,
    MSG_ERROR,
    MSG_PROGRESS,
    MSG_READY,
    MSG_WORKER_EXITED,
    TASK_APPLY,
    TASK_EXTRACT,
    run_task,
)
from i2localizer.utils.config import WorkerSettings

GREETING = '#Term: Greeting\n[0]\n  0 string data = "Hello"\n'


class FakeChannel:
    """Records requests; replies are pushed by the test."""

    def __init__(self, handshake=True):
        self.handshake = handshake
        self.on_message = None
        self.sent = []
        self.closed = False
        self.close_thread = None

    def start(self, on_message):
        self.on_message = on_message
        if self.handshake:
            on_message({'type': MSG_READY})

    def send(self, message):
        self.sent.append(message)

    def close(self):
        self.closed = True
        self.close_thread = threading.get_ident()

    def complete(self, message):
        result = run_task(message['type'], message['payload'])
        self.on_message({'type': MSG_COMPLETE, 'id': message['id'], 'result': result})


class EchoChannel(FakeChannel):
    """Runs every request immediately, like a worker with no latency."""

    def send(self, message):
        super().send(message)
        self.complete(message)


def _settings(**kwargs):
    kwargs.setdefault('handshake_timeout', 0.5)
    kwargs.setdefault('request_timeout', 5.0)
    return WorkerSettings(**kwargs)


async def _wait_sent(channel, count):
    for _ in range(100):
        if len(channel.sent) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} request(s), got {len(channel.sent)}")


def test_timeout_does_not_affect_other_request():
    channel = FakeChannel()

    async def scenario():
        runner = TaskRunner(_settings(), channel_factory=lambda: channel)
        await runner.initialize()
        assert runner.state is RunnerState.READY

        slow = asyncio.ensure_future(runner.extract(GREETING, 0, timeout=0.05))
        other = asyncio.ensure_future(runner.extract(GREETING, 0, timeout=5.0))
        await _wait_sent(channel, 2)

        with pytest.raises(TaskTimeoutError) as exc_info:
            await slow
        assert exc_info.value.request_id == channel.sent[0]['id']
        assert not other.done()
        assert runner.pending_count == 1

        channel.complete(channel.sent[1])
        items = await other
        assert runner.pending_count == 0
        runner.shutdown()
        return items

    items = asyncio.run(scenario())
    assert [(i.term, i.original_text) for i in items] == [("Greeting", "Hello")]


def test_replies_are_matched_by_id():
    channel = FakeChannel()

    async def scenario():
        async with TaskRunner(_settings(), channel_factory=lambda: channel) as runner:
            first = asyncio.ensure_future(runner.extract(GREETING, 0))
            second = asyncio.ensure_future(runner.extract(GREETING, 1))
            await _wait_sent(channel, 2)

            assert channel.sent[0]['id'] != channel.sent[1]['id']
            channel.complete(channel.sent[1])
            assert await second == []
            assert not first.done()

            channel.complete(channel.sent[0])
            return await first

    items = asyncio.run(scenario())
    assert len(items) == 1
    assert channel.closed


def test_error_reply_rejects_request():
    channel = FakeChannel()

    async def scenario():
        async with TaskRunner(_settings(), channel_factory=lambda: channel) as runner:
            task = asyncio.ensure_future(runner.extract(GREETING, 0))
            await _wait_sent(channel, 1)
            channel.on_message({'type': MSG_ERROR, 'id': channel.sent[0]['id'], 'error': "boom"})

            with pytest.raises(TaskFailedError, match="boom"):
                await task
            assert runner.pending_count == 0

    asyncio.run(scenario())


def test_unknown_reply_is_ignored():
    channel = FakeChannel()

    async def scenario():
        async with TaskRunner(_settings(), channel_factory=lambda: channel) as runner:
            task = asyncio.ensure_future(runner.extract(GREETING, 0))
            await _wait_sent(channel, 1)
            channel.on_message({'type': MSG_COMPLETE, 'id': 999, 'result': {}})
            await asyncio.sleep(0.01)
            assert not task.done()

            channel.complete(channel.sent[0])
            return await task

    assert len(asyncio.run(scenario())) == 1


def test_shutdown_cancels_pending_requests():
    channel = FakeChannel()

    async def scenario():
        runner = TaskRunner(_settings(), channel_factory=lambda: channel)
        await runner.initialize()
        tasks = [asyncio.ensure_future(runner.extract(GREETING, 0)) for _ in range(3)]
        await _wait_sent(channel, 3)

        runner.shutdown()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, TaskCancelledError) for r in results)
        assert runner.pending_count == 0
        assert runner.state is RunnerState.CLOSED

        # Late replies after shutdown are harmless
        channel.complete(channel.sent[0])
        await asyncio.sleep(0)

        with pytest.raises(TaskCancelledError):
            await runner.extract(GREETING, 0)

    asyncio.run(scenario())
    assert channel.closed


def test_async_exit_stops_worker_off_loop_thread():
    channel = FakeChannel()

    async def scenario():
        async with TaskRunner(_settings(), channel_factory=lambda: channel) as runner:
            task = asyncio.ensure_future(runner.extract(GREETING, 0))
            await _wait_sent(channel, 1)
            loop_thread = threading.get_ident()

        with pytest.raises(TaskCancelledError):
            await task
        assert runner.state is RunnerState.CLOSED
        assert runner.pending_count == 0
        return loop_thread

    loop_thread = asyncio.run(scenario())
    assert channel.closed
    assert channel.close_thread != loop_thread


def test_sync_shutdown_stops_worker_once():
    channel = FakeChannel()

    async def scenario():
        runner = TaskRunner(_settings(), channel_factory=lambda: channel)
        await runner.initialize()
        runner.shutdown()
        channel.closed = False
        runner.shutdown()
        await runner.aclose()

    asyncio.run(scenario())
    assert channel.closed is False


def test_missing_handshake_still_becomes_ready():
    channel = FakeChannel(handshake=False)

    async def scenario():
        runner = TaskRunner(_settings(handshake_timeout=0.01), channel_factory=lambda: channel)
        state = await runner.initialize()
        runner.shutdown()
        return state

    assert asyncio.run(scenario()) is RunnerState.READY


def test_concurrent_initialize_starts_one_worker():
    created = []

    def factory():
        created.append(FakeChannel())
        return created[-1]

    async def scenario():
        runner = TaskRunner(_settings(), channel_factory=factory)
        states = await asyncio.gather(runner.initialize(), runner.initialize())
        runner.shutdown()
        return states

    assert asyncio.run(scenario()) == [RunnerState.READY, RunnerState.READY]
    assert len(created) == 1


def test_start_failure_falls_back_to_in_process():
    def factory():
        raise OSError("no processes here")

    async def scenario():
        async with TaskRunner(_settings(), channel_factory=factory) as runner:
            assert runner.state is RunnerState.UNAVAILABLE
            assert not runner.uses_worker
            return await runner.extract(GREETING, 0)

    items = asyncio.run(scenario())
    assert items[0].term == "Greeting"


def test_worker_exit_rejects_pending_and_degrades():
    channel = FakeChannel()

    async def scenario():
        async with TaskRunner(_settings(), channel_factory=lambda: channel) as runner:
            task = asyncio.ensure_future(runner.extract(GREETING, 0))
            await _wait_sent(channel, 1)
            channel.on_message({'type': MSG_WORKER_EXITED, 'error': "Worker exited with code 1"})

            with pytest.raises(WorkerUnavailableError):
                await task
            assert runner.state is RunnerState.UNAVAILABLE
            assert channel.closed

            # Later calls run in process
            return await runner.extract(GREETING, 0)

    assert len(asyncio.run(scenario())) == 1
    assert len(channel.sent) == 1


def test_disabled_worker_runs_in_process():
    progress = []

    async def scenario():
        runner = TaskRunner(
            _settings(use_worker=False),
            channel_factory=lambda: pytest.fail("worker must not be created"),
            progress_callback=lambda task, pct: progress.append((task, pct)),
            progress_interval=1,
        )
        async with runner:
            items = await runner.extract(GREETING, 0)
            buffer = LineBuffer.from_text(GREETING)
            result = await runner.merge_apply(buffer, items, {"Greeting": "Salam"})
            return buffer, result

    buffer, result = asyncio.run(scenario())
    assert result.applied_count == 1
    assert result.buffer[2] == '  0 string data = "Salam"'
    # Caller's buffer is a separate copy
    assert buffer[2] == '  0 string data = "Hello"'
    assert progress[-1] == (TASK_EXTRACT, 100)
    assert [pct for _, pct in progress] == [25, 50, 75, 100, 100]


def test_merge_through_worker():
    channel = EchoChannel()

    async def scenario():
        async with TaskRunner(_settings(), channel_factory=lambda: channel) as runner:
            buffer = LineBuffer.from_text(GREETING)
            items = await runner.extract(GREETING, 0)
            plain = await runner.merge_apply(buffer, items, {"Greeting": "Salam"})
            shaped = await runner.merge_shaped(buffer, items, {"Greeting": "\u0633\u0644\u0627\u0645"})
            return buffer, plain, shaped

    buffer, plain, shaped = asyncio.run(scenario())
    assert [m['type'] for m in channel.sent] == [TASK_EXTRACT, TASK_APPLY, "GENERATE_SHAPED"]
    assert plain.buffer[2] == '  0 string data = "Salam"'
    assert shaped.buffer[2] == '  0 string data = "\uFEE1\uFEFC\uFEB3"'
    assert buffer[2] == '  0 string data = "Hello"'


def test_worker_progress_is_forwarded():
    channel = FakeChannel()
    progress = []

    async def scenario():
        runner = TaskRunner(
            _settings(),
            channel_factory=lambda: channel,
            progress_callback=lambda task, pct: progress.append((task, pct)),
        )
        async with runner:
            task = asyncio.ensure_future(runner.extract(GREETING, 0))
            await _wait_sent(channel, 1)
            request_id = channel.sent[0]['id']
            channel.on_message({'type': MSG_PROGRESS, 'id': request_id, 'task': TASK_EXTRACT, 'progress': 50})
            channel.complete(channel.sent[0])
            await task

    asyncio.run(scenario())
    assert progress == [(TASK_EXTRACT, 50)]


def test_run_task_rejects_unknown_type():
    with pytest.raises(ValueError):
        run_task("NOPE", {})


def test_real_worker_process():
    async def scenario():
        settings = _settings(handshake_timeout=30.0, request_timeout=60.0)
        async with TaskRunner(settings) as runner:
            assert runner.uses_worker
            items = await runner.extract(GREETING, 0)
            result = await runner.merge_apply(LineBuffer.from_text(GREETING), items, {"Greeting": "Salam"})
            return items, result

    items, result = asyncio.run(scenario())
    assert items[0].original_text == "Hello"
    assert result.applied_count == 1
