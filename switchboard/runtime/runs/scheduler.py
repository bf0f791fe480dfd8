"""RunScheduler: drives one assistant run from prompt to reply.

Starting a run on a thread cancels whatever run is still active there, so
the assistant never works on two prompts for the same conversation. The
run is then polled on the injected clock until it reaches a terminal
status, dispatching tool calls whenever the run asks for them.
"""

import asyncio

from switchboard.config.models.assistant import AssistantConfig
from switchboard.errors import (
    ConfigurationError,
    RunSupersededError,
    RunTerminalError,
    RunTimeoutError,
    SwitchboardError,
    TransientNetworkError,
)
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import RUN_LATENCY, RUNS
from switchboard.runtime.clock import Clock, SystemClock
from switchboard.runtime.mutex import KeyedMutex
from switchboard.runtime.runs.client import AssistantClient
from switchboard.runtime.runs.models import (
    NO_USABLE_RESPONSE,
    RunParameters,
    RunState,
    RunStatus,
)
from switchboard.runtime.tools.dispatcher import ToolDispatcher

logger = get_logger(__name__)

# Upper bound on waiting for a cancelled run to settle
CANCEL_SETTLE_SECONDS = 30.0


class RunScheduler:
    """Cancel-and-restart run lifecycle per assistant thread."""

    def __init__(
        self,
        assistant: AssistantClient,
        dispatcher: ToolDispatcher,
        config: AssistantConfig,
        clock: Clock | None = None,
        mutex: KeyedMutex | None = None,
    ) -> None:
        self._assistant = assistant
        self._dispatcher = dispatcher
        self._config = config
        self._clock = clock or SystemClock()
        self._mutex = mutex or KeyedMutex()
        # run ids being polled by a start() call in this process
        self._driving: set[str] = set()
        # run ids cancelled here on behalf of a newer prompt
        self._superseded: set[str] = set()

    def run_parameters(self) -> RunParameters:
        if not self._config.assistant_id:
            raise ConfigurationError("Assistant id is not configured")
        return RunParameters(
            assistant_id=self._config.assistant_id,
            model=self._config.model,
            instructions=self._config.instructions,
            additional_instructions=self._config.additional_instructions,
            tools=self._config.tools,
        )

    async def start(self, thread_ref: str, prompt: str) -> str:
        """Run `prompt` on the thread and return the assistant's reply text.

        Raises:
            ConfigurationError: No assistant id configured
            TransientNetworkError: Polling kept failing after retries
            RunSupersededError: A newer prompt cancelled this run
            RunTimeoutError: The run did not finish within run_timeout_seconds
            RunTerminalError: The run failed, expired or was cancelled
        """
        params = self.run_parameters()

        async with self._mutex.acquire(thread_ref):
            await self._cancel_active_runs(thread_ref)
            await self._assistant.post_message(thread_ref, prompt)
            run = await self._assistant.create_run(thread_ref, params)
            self._driving.add(run.run_id)

        logger.info("run_created", thread_ref=thread_ref, run_id=run.run_id)
        started = self._clock.now()
        try:
            final = await self._drive(run, started)
        except RunTerminalError as e:
            RUNS.labels(outcome=e.status).inc()
            raise
        finally:
            self._driving.discard(run.run_id)
            self._superseded.discard(run.run_id)
            RUN_LATENCY.observe(max(self._clock.now() - started, 0.0))

        RUNS.labels(outcome=final.status.value).inc()
        return await self._reply_for(final)

    async def _cancel_active_runs(self, thread_ref: str) -> None:
        runs = await self._assistant.list_runs(thread_ref)
        active = [run for run in runs if not run.status.is_terminal]

        for run in active:
            if run.run_id in self._driving:
                self._superseded.add(run.run_id)
            logger.info(
                "run_superseded",
                thread_ref=thread_ref,
                run_id=run.run_id,
                status=run.status.value,
            )
            if run.status != RunStatus.CANCELLING:
                await self._assistant.cancel_run(thread_ref, run.run_id)

        for run in active:
            await self._await_settled(run)

    async def _await_settled(self, run: RunState) -> None:
        """Wait until a cancelled run leaves the non-terminal states."""
        deadline = self._clock.now() + CANCEL_SETTLE_SECONDS
        while not run.status.is_terminal:
            if self._clock.now() >= deadline:
                logger.warning(
                    "run_cancel_not_settled",
                    thread_ref=run.thread_ref,
                    run_id=run.run_id,
                    status=run.status.value,
                )
                return
            await self._clock.sleep(self._config.poll_interval_seconds)
            run = await self._poll(run)

    async def _drive(self, run: RunState, started: float) -> RunState:
        timeout = self._config.run_timeout_seconds

        while True:
            if run.run_id in self._superseded:
                raise RunSupersededError(
                    "Run was replaced by a newer prompt",
                    run_id=run.run_id,
                    status="superseded",
                )

            if run.status == RunStatus.COMPLETED:
                return run

            if run.status.is_terminal:
                logger.warning(
                    "run_ended_without_completion",
                    thread_ref=run.thread_ref,
                    run_id=run.run_id,
                    status=run.status.value,
                    last_error=run.last_error,
                )
                raise RunTerminalError(
                    f"Run ended with status {run.status.value}",
                    run_id=run.run_id,
                    status=run.status.value,
                )

            if run.status == RunStatus.REQUIRES_ACTION:
                run = await self._submit_tool_outputs(run)
                continue

            if timeout is not None and self._clock.now() - started >= timeout:
                logger.warning(
                    "run_timed_out",
                    thread_ref=run.thread_ref,
                    run_id=run.run_id,
                    timeout_seconds=timeout,
                )
                await self._assistant.cancel_run(run.thread_ref, run.run_id)
                raise RunTimeoutError(
                    f"Run did not finish within {timeout}s",
                    run_id=run.run_id,
                    status="timeout",
                )

            await self._clock.sleep(self._config.poll_interval_seconds)
            run = await self._poll(run)

    async def _poll(self, run: RunState) -> RunState:
        """Fetch run status, refreshing credentials on transient failures."""
        attempt = 0
        while True:
            try:
                return await self._assistant.get_run(run.thread_ref, run.run_id)
            except TransientNetworkError as e:
                attempt += 1
                if attempt > self._config.max_poll_retries:
                    logger.error(
                        "run_poll_retries_exhausted",
                        thread_ref=run.thread_ref,
                        run_id=run.run_id,
                        attempt=attempt,
                        error=e.message,
                    )
                    raise

                delay = self._config.backoff_base_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "run_poll_failed",
                    thread_ref=run.thread_ref,
                    run_id=run.run_id,
                    attempt=attempt,
                    retry_in=delay,
                    error=e.message,
                )
                try:
                    await self._assistant.refresh_credentials()
                except SwitchboardError as refresh_error:
                    logger.warning(
                        "assistant_credential_refresh_failed",
                        error=refresh_error.message,
                    )
                await self._clock.sleep(delay)

    async def _submit_tool_outputs(self, run: RunState) -> RunState:
        logger.info(
            "run_requires_action",
            thread_ref=run.thread_ref,
            run_id=run.run_id,
            tool_calls=[call.function_name for call in run.tool_calls],
        )
        outputs = await asyncio.gather(
            *(self._dispatcher.tool_output(call) for call in run.tool_calls)
        )
        return await self._assistant.submit_tool_outputs(
            run.thread_ref, run.run_id, list(outputs)
        )

    async def _reply_for(self, run: RunState) -> str:
        messages = await self._assistant.list_messages(run.thread_ref, run_id=run.run_id)
        # newest first
        reply = next(
            (
                message
                for message in messages
                if message.role == "assistant" and message.run_id == run.run_id and message.text
            ),
            None,
        )
        if reply is None:
            logger.warning(
                "run_completed_without_reply",
                thread_ref=run.thread_ref,
                run_id=run.run_id,
            )
            return NO_USABLE_RESPONSE

        logger.info("run_completed", thread_ref=run.thread_ref, run_id=run.run_id)
        return reply.text
