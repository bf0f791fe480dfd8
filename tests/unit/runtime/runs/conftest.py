"""Fakes shared by the run tests."""

import asyncio
from typing import Any

import pytest

from switchboard.runtime.runs.models import (
    AssistantMessage,
    RunParameters,
    RunState,
    RunStatus,
    ToolCallRequest,
    ToolOutput,
)

# Default page size of the assistant message listing
MESSAGE_PAGE_SIZE = 20


class FakeAssistant:
    """In-memory assistant service.

    Runs keep whatever status the test sets; cancel_run moves a live run
    straight to cancelled.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.runs: dict[str, RunState] = {}
        self.messages: list[AssistantMessage] = []
        self.poll_errors: list[Exception] = []
        self.submitted: list[list[ToolOutput]] = []
        self.status_after_submit = RunStatus.COMPLETED
        self.created_params: list[RunParameters] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def add_run(self, run_id: str, status: RunStatus, thread_ref: str = "thread_1") -> None:
        self.runs[run_id] = RunState(thread_ref=thread_ref, run_id=run_id, status=status)

    def set_status(
        self,
        run_id: str,
        status: RunStatus,
        tool_calls: list[ToolCallRequest] | None = None,
    ) -> None:
        run = self.runs[run_id]
        run.status = status
        run.tool_calls = tool_calls or []

    def add_reply(self, run_id: str, text: str) -> None:
        self.messages.append(
            AssistantMessage(
                id=f"msg_{len(self.messages) + 1}",
                role="assistant",
                run_id=run_id,
                text=text,
            )
        )

    def complete(self, run_id: str, text: str) -> None:
        self.add_reply(run_id, text)
        self.set_status(run_id, RunStatus.COMPLETED)

    async def create_thread(self, metadata: dict[str, Any]) -> str:
        self.calls.append(("create_thread", (metadata,)))
        return f"thread_{len(self.calls)}"

    async def delete_thread(self, thread_ref: str) -> None:
        self.calls.append(("delete_thread", (thread_ref,)))

    async def post_message(self, thread_ref: str, content: str) -> None:
        self.calls.append(("post_message", (thread_ref, content)))
        self.messages.append(
            AssistantMessage(id=f"msg_{len(self.messages) + 1}", role="user", text=content)
        )

    async def create_run(self, thread_ref: str, params: RunParameters) -> RunState:
        self.calls.append(("create_run", (thread_ref,)))
        self.created_params.append(params)
        run_id = f"run_{len(self.runs) + 1}"
        self.add_run(run_id, RunStatus.QUEUED, thread_ref=thread_ref)
        return self.runs[run_id].model_copy(deep=True)

    async def get_run(self, thread_ref: str, run_id: str) -> RunState:
        self.calls.append(("get_run", (thread_ref, run_id)))
        if self.poll_errors:
            raise self.poll_errors.pop(0)
        return self.runs[run_id].model_copy(deep=True)

    async def list_runs(self, thread_ref: str) -> list[RunState]:
        self.calls.append(("list_runs", (thread_ref,)))
        return [
            run.model_copy(deep=True) for run in self.runs.values() if run.thread_ref == thread_ref
        ]

    async def submit_tool_outputs(
        self, thread_ref: str, run_id: str, outputs: list[ToolOutput]
    ) -> RunState:
        self.calls.append(("submit_tool_outputs", (thread_ref, run_id)))
        self.submitted.append(outputs)
        self.set_status(run_id, self.status_after_submit)
        return self.runs[run_id].model_copy(deep=True)

    async def cancel_run(self, thread_ref: str, run_id: str) -> None:
        self.calls.append(("cancel_run", (thread_ref, run_id)))
        run = self.runs[run_id]
        if not run.status.is_terminal:
            run.status = RunStatus.CANCELLED

    async def list_messages(
        self, thread_ref: str, run_id: str | None = None
    ) -> list[AssistantMessage]:
        self.calls.append(("list_messages", (thread_ref, run_id)))
        newest_first = [
            message
            for message in reversed(self.messages)
            if run_id is None or message.run_id == run_id
        ]
        return newest_first[:MESSAGE_PAGE_SIZE]

    async def refresh_credentials(self) -> None:
        self.calls.append(("refresh_credentials", ()))


class FakeDispatcher:
    """Returns outputs after a varying number of loop turns."""

    def __init__(self) -> None:
        self.executed: list[str] = []

    async def tool_output(self, call: ToolCallRequest) -> ToolOutput:
        # later calls finish first
        delay = 5 - len(self.executed)
        self.executed.append(call.function_name)
        for _ in range(max(delay, 0)):
            await asyncio.sleep(0)
        return ToolOutput(call_id=call.call_id, output=f'{{"fn": "{call.function_name}"}}')


@pytest.fixture
def assistant() -> FakeAssistant:
    return FakeAssistant()


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()
