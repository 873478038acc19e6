import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional
from loguru import logger

from relay_bot.config.constants import NOTICES
from relay_bot.core.transport import Transport
from relay_bot.services.assistant_service import AssistantService, AssistantReply, render_reply
from relay_bot.services.conversation_service import ConversationService
from relay_bot.services.run_poller import RunPoller, PollOutcome
from relay_bot.utils.debounce import BurstAggregator


@dataclass(frozen=True)
class IncomingMessage:
    sender: str
    text: str
    has_media: bool = False
    is_ephemeral: bool = False


class RelayOutcome(str, Enum):
    UNSUPPORTED = "unsupported"
    SUPERSEDED = "superseded"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


_POLL_NOTICES = {
    PollOutcome.FAILED: NOTICES["run_failed"],
    PollOutcome.TIMED_OUT: NOTICES["run_timed_out"],
}


class RelayService:
    """Inbound chat message -> merged burst -> assistant run -> reply."""

    def __init__(
        self,
        transport: Transport,
        aggregator: BurstAggregator,
        assistant: AssistantService,
        poller: RunPoller,
        conversations: ConversationService,
    ):
        self.transport = transport
        self.aggregator = aggregator
        self.assistant = assistant
        self.poller = poller
        self.conversations = conversations
        self._locks: Dict[str, asyncio.Lock] = {}

    def _sender_lock(self, sender: str) -> asyncio.Lock:
        return self._locks.setdefault(sender, asyncio.Lock())

    async def handle_incoming(self, incoming: IncomingMessage) -> RelayOutcome:
        sender = incoming.sender

        if incoming.has_media or incoming.is_ephemeral:
            logger.info(f"Sender {sender}: unsupported content (media={incoming.has_media}, ephemeral={incoming.is_ephemeral})")
            await self.transport.send_message(sender, NOTICES["unsupported_content"])
            return RelayOutcome.UNSUPPORTED

        merged = await self.aggregator.collect(sender, incoming.text)
        if not merged:
            # A later message of the same burst will carry the text
            return RelayOutcome.SUPERSEDED

        # One run per sender at a time: a thread rejects new messages while a run is active
        async with self._sender_lock(sender):
            return await self._relay_merged(sender, merged)

    async def _relay_merged(self, sender: str, merged: str) -> RelayOutcome:
        logger.info(f"Sender {sender}: processing merged message: {merged[:50]}...")
        state = await self.conversations.get_conversation_state(sender)
        thread_id = await self._ensure_thread(sender, state.thread_id, merged)
        await self.conversations.add_message_to_history(sender, "user", merged)

        await self.transport.send_typing(sender)
        run_id = await self.assistant.submit_run(thread_id)

        async def deliver(reply: Optional[AssistantReply]) -> None:
            if reply is None:
                logger.warning(f"Run {run_id} completed without a reply message")
                text = NOTICES["non_text_reply"]
            else:
                text = render_reply(reply)
            await self.transport.send_message(sender, text)
            await self.conversations.add_message_to_history(sender, "assistant", text)

        outcome = await self.poller.poll_until_done(thread_id, run_id, deliver)
        if outcome != PollOutcome.COMPLETED:
            await self.transport.send_message(sender, _POLL_NOTICES[outcome])

        return RelayOutcome(outcome.value)

    async def _ensure_thread(self, sender: str, stored_thread_id: Optional[str], message: str) -> str:
        """
        Reuses the stored thread and appends the message to it. If there is
        none, or it no longer exists, a new thread seeded with the message is
        created and remembered.
        """
        thread_id = None
        if stored_thread_id:
            thread_id = await self.assistant.retrieve_thread(stored_thread_id)

        if thread_id is None:
            thread_id = await self.assistant.create_thread(message)
            await self.conversations.save_thread_id(sender, thread_id)
        else:
            await self.assistant.append_message(thread_id, message)
        return thread_id
