import openai
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from loguru import logger

from relay_bot.config.settings import BotSettings
from relay_bot.config.constants import NOTICES


class JobState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# Run statuses that will never change again, apart from "completed"
FAILED_RUN_STATUSES = frozenset({"failed", "cancelled", "expired", "incomplete"})


@dataclass(frozen=True)
class JobStatus:
    state: JobState
    raw_status: str
    error: Optional[str] = None

    @classmethod
    def from_run_status(cls, status: str, error: Optional[str] = None) -> "JobStatus":
        if status == "completed":
            return cls(JobState.COMPLETED, status)
        if status in FAILED_RUN_STATUSES:
            return cls(JobState.FAILED, status, error)
        return cls(JobState.PENDING, status)


@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class OtherReply:
    """Content block of a kind the chat can't show (image, refusal, unknown)."""
    kind: str
    detail: Optional[str] = None


AssistantReply = Union[TextReply, OtherReply]


def reply_from_content_block(block) -> AssistantReply:
    kind = getattr(block, "type", None) or "unknown"
    if kind == "text":
        return TextReply(block.text.value)
    if kind == "refusal":
        return OtherReply(kind, getattr(block, "refusal", None))
    return OtherReply(kind)


def render_reply(reply: AssistantReply) -> str:
    """Text to send back to the chat for an assistant reply."""
    if isinstance(reply, TextReply):
        return reply.text
    if isinstance(reply, OtherReply):
        logger.warning(f"Assistant replied with unsupported content kind '{reply.kind}'")
        return NOTICES["non_text_reply"]
    raise TypeError(f"Unknown reply type: {type(reply).__name__}")


class AssistantService:
    """Thin wrapper over the OpenAI Assistants thread/run API."""

    def __init__(self, settings: BotSettings, client: Optional[openai.AsyncOpenAI] = None):
        self.settings = settings
        self.client = client or openai.AsyncOpenAI(api_key=self.settings.openai_api_key)

    async def retrieve_thread(self, thread_id: str) -> Optional[str]:
        """Id of the thread if it still exists, None on a lookup miss."""
        try:
            thread = await self.client.beta.threads.retrieve(thread_id)
        except (openai.NotFoundError, openai.BadRequestError) as e:
            logger.warning(f"Thread {thread_id} is not available, a new one will be created: {e}")
            return None
        return thread.id

    async def create_thread(self, initial_message: str) -> str:
        thread = await self.client.beta.threads.create(
            messages=[{"role": "user", "content": initial_message}]
        )
        logger.info(f"Created thread {thread.id}")
        return thread.id

    async def append_message(self, thread_id: str, message: str) -> None:
        await self.client.beta.threads.messages.create(
            thread_id,
            role="user",
            content=message,
        )

    async def submit_run(self, thread_id: str) -> str:
        run = await self.client.beta.threads.runs.create(
            thread_id=thread_id,
            assistant_id=self.settings.assistant_id,
        )
        logger.info(f"Submitted run {run.id} on thread {thread_id}")
        return run.id

    async def get_run_status(self, thread_id: str, run_id: str) -> JobStatus:
        run = await self.client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
        last_error = getattr(run, "last_error", None)
        error = f"{last_error.code}: {last_error.message}" if last_error else None
        return JobStatus.from_run_status(run.status, error)

    async def get_latest_reply(self, thread_id: str, run_id: Optional[str] = None) -> Optional[AssistantReply]:
        """First content block of the newest message, optionally limited to one run."""
        params = {"order": "desc", "limit": 1}
        if run_id:
            params["run_id"] = run_id
        page = await self.client.beta.threads.messages.list(thread_id, **params)
        if not page.data or not page.data[0].content:
            return None
        return reply_from_content_block(page.data[0].content[0])
