import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional
from loguru import logger

from relay_bot.services.assistant_service import AssistantService, AssistantReply, JobState


class PollOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


OnComplete = Callable[[Optional[AssistantReply]], Awaitable[None]]


class RunPoller:
    """Polls an assistant run until it reaches a terminal state."""

    def __init__(
        self,
        assistant: AssistantService,
        poll_interval: float = 1.0,
        failure_backoff: float = 5.0,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        self.assistant = assistant
        self.poll_interval = poll_interval
        self.failure_backoff = failure_backoff
        self.timeout = timeout
        self.max_attempts = max_attempts

    async def poll_until_done(self, thread_id: str, run_id: str, on_complete: OnComplete) -> PollOutcome:
        """
        Queries the run status until it is terminal.

        On completion the latest reply of the run is fetched and on_complete is
        awaited exactly once with it. Failed and timed out runs return without
        calling on_complete; the outcome tells the caller which one happened.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout if self.timeout is not None else None
        attempts = 0

        while True:
            status = await self.assistant.get_run_status(thread_id, run_id)
            attempts += 1

            if status.state == JobState.COMPLETED:
                reply = await self.assistant.get_latest_reply(thread_id, run_id)
                await on_complete(reply)
                logger.info(f"Run {run_id} completed after {attempts} status checks")
                return PollOutcome.COMPLETED

            if status.state == JobState.FAILED:
                logger.error(f"Run {run_id} on thread {thread_id} ended as '{status.raw_status}': {status.error}")
                await asyncio.sleep(self.failure_backoff)
                return PollOutcome.FAILED

            if self.max_attempts is not None and attempts >= self.max_attempts:
                logger.error(f"Run {run_id} still '{status.raw_status}' after {attempts} status checks, giving up")
                return PollOutcome.TIMED_OUT

            if deadline is not None and loop.time() + self.poll_interval > deadline:
                logger.error(f"Run {run_id} still '{status.raw_status}' after {self.timeout}s, giving up")
                return PollOutcome.TIMED_OUT

            await asyncio.sleep(self.poll_interval)
