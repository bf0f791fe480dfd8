"""Tests for RunScheduler."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import pytest

from switchboard.config.models.assistant import AssistantConfig
from switchboard.errors import (
    ConfigurationError,
    RunSupersededError,
    RunTerminalError,
    RunTimeoutError,
    TransientNetworkError,
)
from switchboard.runtime.clock import ManualClock
from switchboard.runtime.runs.models import (
    NO_USABLE_RESPONSE,
    AssistantMessage,
    RunStatus,
    ToolCallRequest,
)
from switchboard.runtime.runs.scheduler import RunScheduler

T = TypeVar("T")


async def run_with_clock(clock: ManualClock, coro: Awaitable[T]) -> T:
    """Await `coro` while moving the clock forward until it finishes."""
    task: asyncio.Task[T] = asyncio.ensure_future(coro)
    for _ in range(1000):
        await asyncio.sleep(0)
        if task.done():
            break
        await clock.advance(0.5)
    return await task


@pytest.fixture
def scheduler(assistant, dispatcher, assistant_config: AssistantConfig, clock: ManualClock):
    return RunScheduler(assistant, dispatcher, assistant_config, clock=clock)


# =============================================================================
# Happy path
# =============================================================================


class TestRunCompletion:
    @pytest.mark.asyncio
    async def test_returns_reply_for_this_run(self, scheduler, assistant, clock) -> None:
        assistant.add_run("run_0", RunStatus.COMPLETED)
        assistant.add_reply("run_0", "old answer")

        task = asyncio.create_task(scheduler.start("thread_1", "where is my order?"))
        await clock.advance(0)
        assistant.complete("run_2", "It ships tomorrow.")

        assert await run_with_clock(clock, task) == "It ships tomorrow."
        assert assistant.names()[:3] == ["list_runs", "post_message", "create_run"]

    @pytest.mark.asyncio
    async def test_last_non_empty_reply_wins(self, scheduler, assistant, clock) -> None:
        task = asyncio.create_task(scheduler.start("thread_1", "hi"))
        await clock.advance(0)
        assistant.add_reply("run_1", "first part")
        assistant.add_reply("run_1", "")
        assistant.complete("run_1", "final part")

        assert await run_with_clock(clock, task) == "final part"

    @pytest.mark.asyncio
    async def test_reply_found_in_long_history(self, scheduler, assistant, clock) -> None:
        for index in range(1, 13):
            run_id = f"run_old_{index}"
            assistant.add_run(run_id, RunStatus.COMPLETED)
            assistant.messages.append(
                AssistantMessage(id=f"msg_q{index}", role="user", text=f"question {index}")
            )
            assistant.add_reply(run_id, f"answer {index}")

        task = asyncio.create_task(scheduler.start("thread_1", "and now?"))
        await clock.advance(0)
        assistant.complete("run_13", "latest answer")

        assert await run_with_clock(clock, task) == "latest answer"
        assert ("list_messages", ("thread_1", "run_13")) in assistant.calls

    @pytest.mark.asyncio
    async def test_no_reply_returns_fallback(self, scheduler, assistant, clock) -> None:
        task = asyncio.create_task(scheduler.start("thread_1", "hi"))
        await clock.advance(0)
        assistant.add_reply("run_1", "")
        assistant.set_status("run_1", RunStatus.COMPLETED)

        assert await run_with_clock(clock, task) == NO_USABLE_RESPONSE

    @pytest.mark.asyncio
    async def test_run_parameters_forwarded(self, assistant, dispatcher, clock) -> None:
        config = AssistantConfig(
            assistant_id="asst_9",
            model="gpt-4o",
            additional_instructions="Answer in Portuguese",
        )
        scheduler = RunScheduler(assistant, dispatcher, config, clock=clock)

        task = asyncio.create_task(scheduler.start("thread_1", "oi"))
        await clock.advance(0)
        assistant.complete("run_1", "olá")
        await run_with_clock(clock, task)

        params = assistant.created_params[0]
        assert params.assistant_id == "asst_9"
        assert params.model == "gpt-4o"
        assert params.additional_instructions == "Answer in Portuguese"

    @pytest.mark.asyncio
    async def test_missing_assistant_id(self, assistant, dispatcher, clock) -> None:
        scheduler = RunScheduler(assistant, dispatcher, AssistantConfig(), clock=clock)

        with pytest.raises(ConfigurationError):
            await scheduler.start("thread_1", "hi")
        assert assistant.calls == []


# =============================================================================
# Cancel-and-restart
# =============================================================================


class TestActiveRunCancellation:
    """A new prompt cancels whatever is still running on the thread."""

    @pytest.mark.asyncio
    async def test_cancels_before_creating(self, scheduler, assistant, clock) -> None:
        assistant.add_run("run_old", RunStatus.IN_PROGRESS)

        task = asyncio.create_task(scheduler.start("thread_1", "new prompt"))
        await clock.advance(1.0)
        assistant.complete("run_2", "done")
        await run_with_clock(clock, task)

        names = assistant.names()
        assert ("cancel_run", ("thread_1", "run_old")) in assistant.calls
        assert names.index("cancel_run") < names.index("post_message")
        assert names.index("post_message") < names.index("create_run")

    @pytest.mark.asyncio
    async def test_cancelling_run_is_awaited_not_recancelled(
        self, scheduler, assistant, clock
    ) -> None:
        assistant.add_run("run_old", RunStatus.CANCELLING)

        task = asyncio.create_task(scheduler.start("thread_1", "new prompt"))
        await clock.advance(2.0)
        assert "create_run" not in assistant.names()

        assistant.set_status("run_old", RunStatus.CANCELLED)
        await clock.advance(1.0)
        assistant.complete("run_2", "done")

        assert await run_with_clock(clock, task) == "done"
        assert "cancel_run" not in assistant.names()

    @pytest.mark.asyncio
    async def test_terminal_runs_left_alone(self, scheduler, assistant, clock) -> None:
        assistant.add_run("run_old", RunStatus.FAILED)

        task = asyncio.create_task(scheduler.start("thread_1", "hi"))
        await clock.advance(0)
        assistant.complete("run_2", "ok")
        await run_with_clock(clock, task)

        assert "cancel_run" not in assistant.names()

    @pytest.mark.asyncio
    async def test_superseded_run_raises(self, scheduler, assistant, clock) -> None:
        first = asyncio.create_task(scheduler.start("thread_1", "first"))
        await clock.advance(1.0)

        second = asyncio.create_task(scheduler.start("thread_1", "second"))
        await clock.advance(1.0)
        assistant.complete("run_2", "answer to both")

        assert await run_with_clock(clock, second) == "answer to both"
        with pytest.raises(RunSupersededError) as exc_info:
            await first
        assert exc_info.value.run_id == "run_1"
        assert exc_info.value.status == "superseded"

    @pytest.mark.asyncio
    async def test_concurrent_starts_keep_one_live_run(
        self, scheduler, assistant, clock
    ) -> None:
        tasks = [
            asyncio.create_task(scheduler.start("thread_1", f"prompt {index}"))
            for index in range(3)
        ]

        for _ in range(8):
            await clock.advance(0.5)
            live = [run for run in assistant.runs.values() if not run.status.is_terminal]
            assert len(live) <= 1

        assert sorted(assistant.runs) == ["run_1", "run_2", "run_3"]
        assistant.complete("run_3", "answer to the last prompt")

        assert await run_with_clock(clock, tasks[2]) == "answer to the last prompt"
        for task in tasks[:2]:
            with pytest.raises(RunSupersededError):
                await task


# =============================================================================
# Tool calls
# =============================================================================


class TestToolCalls:
    @pytest.mark.asyncio
    async def test_outputs_submitted_in_request_order(
        self, scheduler, assistant, dispatcher, clock
    ) -> None:
        calls = [
            ToolCallRequest(call_id=f"call_{i}", function_name=f"fn_{i}", arguments="{}")
            for i in range(3)
        ]
        task = asyncio.create_task(scheduler.start("thread_1", "hi"))
        await clock.advance(0)
        assistant.set_status("run_1", RunStatus.REQUIRES_ACTION, tool_calls=calls)
        assistant.add_reply("run_1", "all done")

        assert await run_with_clock(clock, task) == "all done"
        assert [output.call_id for output in assistant.submitted[0]] == [
            "call_0",
            "call_1",
            "call_2",
        ]
        assert sorted(dispatcher.executed) == ["fn_0", "fn_1", "fn_2"]

    @pytest.mark.asyncio
    async def test_empty_batch_still_submitted(self, scheduler, assistant, clock) -> None:
        task = asyncio.create_task(scheduler.start("thread_1", "hi"))
        await clock.advance(0)
        assistant.set_status("run_1", RunStatus.REQUIRES_ACTION)
        assistant.add_reply("run_1", "ok")

        await run_with_clock(clock, task)

        assert assistant.submitted == [[]]


# =============================================================================
# Failures
# =============================================================================


class TestRunFailures:
    @pytest.mark.asyncio
    async def test_failed_run(self, scheduler, assistant, clock) -> None:
        task = asyncio.create_task(scheduler.start("thread_1", "hi"))
        await clock.advance(0)
        assistant.set_status("run_1", RunStatus.FAILED)

        with pytest.raises(RunTerminalError) as exc_info:
            await run_with_clock(clock, task)
        assert exc_info.value.status == "failed"

    @pytest.mark.asyncio
    async def test_expired_run(self, scheduler, assistant, clock) -> None:
        task = asyncio.create_task(scheduler.start("thread_1", "hi"))
        await clock.advance(0)
        assistant.set_status("run_1", RunStatus.EXPIRED)

        with pytest.raises(RunTerminalError):
            await run_with_clock(clock, task)

    @pytest.mark.asyncio
    async def test_timeout_cancels_run(
        self, assistant, dispatcher, assistant_config, clock
    ) -> None:
        config = assistant_config.model_copy(update={"run_timeout_seconds": 2.0})
        scheduler = RunScheduler(assistant, dispatcher, config, clock=clock)

        with pytest.raises(RunTimeoutError):
            await run_with_clock(clock, scheduler.start("thread_1", "hi"))

        assert ("cancel_run", ("thread_1", "run_1")) in assistant.calls
        assert assistant.runs["run_1"].status == RunStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_transient_poll_errors_refresh_and_retry(
        self, scheduler, assistant, clock
    ) -> None:
        assistant.poll_errors = [TransientNetworkError("reset"), TransientNetworkError("reset")]
        task = asyncio.create_task(scheduler.start("thread_1", "hi"))
        await clock.advance(0)
        assistant.complete("run_1", "recovered")

        assert await run_with_clock(clock, task) == "recovered"
        assert assistant.names().count("refresh_credentials") == 2

    @pytest.mark.asyncio
    async def test_poll_retries_exhausted(self, scheduler, assistant, clock) -> None:
        assistant.poll_errors = [TransientNetworkError("down") for _ in range(4)]

        with pytest.raises(TransientNetworkError):
            await run_with_clock(clock, scheduler.start("thread_1", "hi"))

        assert assistant.names().count("get_run") == 4
        assert assistant.names().count("refresh_credentials") == 3
