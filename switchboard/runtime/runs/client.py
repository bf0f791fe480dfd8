"""Assistant service client.

The run scheduler and thread registry talk to the assistant through the
AssistantClient protocol. OpenAIAssistantClient implements it over the
OpenAI Assistants threads/runs API.
"""

import asyncio
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI

from switchboard.errors import (
    ClientRequestError,
    ConfigurationError,
    TransientNetworkError,
)
from switchboard.observability.logging import get_logger
from switchboard.runtime.runs.models import (
    AssistantMessage,
    RunParameters,
    RunState,
    RunStatus,
    ToolCallRequest,
    ToolOutput,
)

logger = get_logger(__name__)

# Failures worth a credential refresh and another poll
_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.AuthenticationError,
    openai.RateLimitError,
    openai.InternalServerError,
)

# Unknown assistant id, revoked project access
_CONFIGURATION_ERRORS = (
    openai.PermissionDeniedError,
    openai.NotFoundError,
)


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map every openai exception onto the switchboard error hierarchy."""
    try:
        yield
    except _TRANSIENT_ERRORS as e:
        raise TransientNetworkError(f"Failed to {action}: {e}", cause=e) from e
    except _CONFIGURATION_ERRORS as e:
        raise ConfigurationError(f"Failed to {action}: {e}", cause=e) from e
    except openai.APIStatusError as e:
        raise ClientRequestError(
            f"Failed to {action}: {e}",
            status_code=e.status_code,
            detail=e.message,
            cause=e,
        ) from e
    except openai.APIError as e:
        raise TransientNetworkError(f"Failed to {action}: {e}", cause=e) from e


class AssistantClient(Protocol):
    """Operations the orchestration layer needs from the assistant service."""

    async def create_thread(self, metadata: dict[str, Any]) -> str: ...

    async def delete_thread(self, thread_ref: str) -> None: ...

    async def post_message(self, thread_ref: str, content: str) -> None: ...

    async def create_run(self, thread_ref: str, params: RunParameters) -> RunState: ...

    async def get_run(self, thread_ref: str, run_id: str) -> RunState: ...

    async def list_runs(self, thread_ref: str) -> list[RunState]: ...

    async def submit_tool_outputs(
        self, thread_ref: str, run_id: str, outputs: list[ToolOutput]
    ) -> RunState: ...

    async def cancel_run(self, thread_ref: str, run_id: str) -> None: ...

    async def list_messages(
        self, thread_ref: str, run_id: str | None = None
    ) -> list[AssistantMessage]:
        """Messages on the thread, newest first, optionally only those of one run."""
        ...

    async def refresh_credentials(self) -> None: ...


def _env_api_key() -> str | None:
    return os.environ.get("SWITCHBOARD_ASSISTANT__API_KEY") or os.environ.get(
        "OPENAI_API_KEY"
    )


def _to_run_state(thread_ref: str, run: Any) -> RunState:
    tool_calls: list[ToolCallRequest] = []
    action = getattr(run, "required_action", None)
    if action is not None and action.submit_tool_outputs is not None:
        for call in action.submit_tool_outputs.tool_calls:
            tool_calls.append(
                ToolCallRequest(
                    call_id=call.id,
                    function_name=call.function.name,
                    arguments=call.function.arguments or "{}",
                )
            )

    last_error = getattr(run, "last_error", None)
    return RunState(
        thread_ref=thread_ref,
        run_id=run.id,
        status=RunStatus(run.status),
        tool_calls=tool_calls,
        last_error=last_error.message if last_error is not None else None,
    )


def _message_text(message: Any) -> str:
    parts = [
        block.text.value
        for block in message.content
        if getattr(block, "type", None) == "text"
    ]
    return "\n".join(parts)


class OpenAIAssistantClient:
    """AssistantClient backed by `AsyncOpenAI().beta.threads`.

    Error mapping:
        - connection failures, rate limits, 5xx and rejected credentials
          -> TransientNetworkError (the caller may refresh and retry)
        - 403 and 404 -> ConfigurationError
        - any other 4xx -> ClientRequestError
    """

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 60.0,
        api_key_provider: Callable[[], str | None] = _env_api_key,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Initial API key (defaults to the provider's value)
            timeout: Request timeout in seconds
            api_key_provider: Re-read on refresh_credentials()
        """
        self._api_key_provider = api_key_provider
        self._timeout = timeout
        self._api_key = api_key or api_key_provider()
        if not self._api_key:
            raise ConfigurationError("Assistant API key is not configured")
        self._client = AsyncOpenAI(api_key=self._api_key, timeout=timeout)
        self._refresh_lock = asyncio.Lock()
        self._generation = 0
        self._retiring: set[asyncio.Task[None]] = set()

    async def refresh_credentials(self) -> None:
        """Swap in a client built with the latest API key.

        Callers that were waiting while another refresh ran share it. The
        replaced client stays open for one request timeout so requests other
        threads already sent on it can finish.
        """
        generation = self._generation
        async with self._refresh_lock:
            if self._generation != generation:
                logger.debug("assistant_credentials_already_refreshed")
                return

            # the provider may read a secrets file or vault
            api_key = await asyncio.to_thread(self._api_key_provider) or self._api_key
            rotated = api_key != self._api_key
            self._api_key = api_key
            stale = self._client
            self._client = AsyncOpenAI(api_key=api_key, timeout=self._timeout)
            self._generation += 1

            task = asyncio.create_task(self._close_after_timeout(stale))
            self._retiring.add(task)
            task.add_done_callback(self._retiring.discard)

        logger.info("assistant_credentials_refreshed", rotated=rotated)

    async def _close_after_timeout(self, client: AsyncOpenAI) -> None:
        try:
            await asyncio.sleep(self._timeout)
        finally:
            await client.close()

    async def close(self) -> None:
        for task in list(self._retiring):
            task.cancel()
        await asyncio.gather(*self._retiring, return_exceptions=True)
        await self._client.close()

    async def create_thread(self, metadata: dict[str, Any]) -> str:
        with _translate_errors("create thread"):
            thread = await self._client.beta.threads.create(
                metadata={key: str(value) for key, value in metadata.items()}
            )
        return thread.id

    async def delete_thread(self, thread_ref: str) -> None:
        with _translate_errors("delete thread"):
            try:
                await self._client.beta.threads.delete(thread_ref)
            except openai.NotFoundError:
                logger.debug("assistant_thread_already_gone", thread_ref=thread_ref)

    async def post_message(self, thread_ref: str, content: str) -> None:
        with _translate_errors("post message"):
            await self._client.beta.threads.messages.create(
                thread_ref, role="user", content=content
            )

    async def create_run(self, thread_ref: str, params: RunParameters) -> RunState:
        kwargs: dict[str, Any] = {"assistant_id": params.assistant_id}
        if params.model:
            kwargs["model"] = params.model
        if params.instructions:
            kwargs["instructions"] = params.instructions
        if params.additional_instructions:
            kwargs["additional_instructions"] = params.additional_instructions
        if params.tools:
            kwargs["tools"] = params.tools

        with _translate_errors("create run"):
            run = await self._client.beta.threads.runs.create(thread_id=thread_ref, **kwargs)
        return _to_run_state(thread_ref, run)

    async def get_run(self, thread_ref: str, run_id: str) -> RunState:
        with _translate_errors("poll run"):
            run = await self._client.beta.threads.runs.retrieve(
                run_id=run_id, thread_id=thread_ref
            )
        return _to_run_state(thread_ref, run)

    async def list_runs(self, thread_ref: str) -> list[RunState]:
        with _translate_errors("list runs"):
            page = await self._client.beta.threads.runs.list(thread_id=thread_ref)
        return [_to_run_state(thread_ref, run) for run in page.data]

    async def submit_tool_outputs(
        self, thread_ref: str, run_id: str, outputs: list[ToolOutput]
    ) -> RunState:
        with _translate_errors("submit tool outputs"):
            run = await self._client.beta.threads.runs.submit_tool_outputs(
                run_id=run_id,
                thread_id=thread_ref,
                tool_outputs=[
                    {"tool_call_id": out.call_id, "output": out.output} for out in outputs
                ],
            )
        return _to_run_state(thread_ref, run)

    async def cancel_run(self, thread_ref: str, run_id: str) -> None:
        with _translate_errors("cancel run"):
            try:
                await self._client.beta.threads.runs.cancel(run_id=run_id, thread_id=thread_ref)
            except openai.BadRequestError as e:
                # Run already reached a terminal status
                logger.debug("run_cancel_ignored", run_id=run_id, error=str(e))

    async def list_messages(
        self, thread_ref: str, run_id: str | None = None
    ) -> list[AssistantMessage]:
        kwargs: dict[str, Any] = {"order": "desc"}
        if run_id is not None:
            kwargs["run_id"] = run_id

        with _translate_errors("list messages"):
            page = await self._client.beta.threads.messages.list(thread_id=thread_ref, **kwargs)

        return [
            AssistantMessage(
                id=message.id,
                role=message.role,
                run_id=message.run_id,
                text=_message_text(message),
            )
            for message in page.data
        ]
