from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from relay_bot.database.repository import ConversationRepository, ChatMessageRepository


@dataclass
class ConversationState:
    thread_id: Optional[str] = None
    messages: List[Dict[str, str]] = field(default_factory=list)


class ConversationService:
    """Per-sender conversation state: assistant thread id and message history.

    Every call opens its own session, since the relay flow outlives the
    update handler that started it.
    """

    def __init__(self, session_pool: async_sessionmaker[AsyncSession]):
        self.session_pool = session_pool

    async def get_conversation_state(self, sender_id: str) -> ConversationState:
        """Thread id and full history (oldest first) for a sender.

        A sender that was never seen gets an empty state; nothing is written.
        """
        async with self.session_pool() as session:
            conversation = await ConversationRepository(session).get_one_or_none(sender_id=sender_id)
            if conversation is None:
                return ConversationState()

            rows = await ChatMessageRepository(session).list_for_conversation(conversation.id)
            return ConversationState(
                thread_id=conversation.thread_id,
                messages=[{"role": row.role, "message": row.content} for row in rows],
            )

    async def save_thread_id(self, sender_id: str, thread_id: str) -> None:
        async with self.session_pool() as session:
            conversation = await ConversationRepository(session).get_or_create(sender_id)
            conversation.thread_id = thread_id
            await session.commit()
        logger.info(f"Sender {sender_id}: bound to thread {thread_id}")

    async def reset_thread(self, sender_id: str) -> None:
        """Forget the stored thread so the next message starts a new one."""
        async with self.session_pool() as session:
            conversation = await ConversationRepository(session).get_one_or_none(sender_id=sender_id)
            if conversation is None:
                return
            conversation.thread_id = None
            await session.commit()

    async def add_message_to_history(self, sender_id: str, role: str, message: str) -> None:
        """Append one message to the sender's history."""
        async with self.session_pool() as session:
            conversation = await ConversationRepository(session).get_or_create(sender_id)
            await ChatMessageRepository(session).add_one({
                "conversation_id": conversation.id,
                "role": role,
                "content": message,
            })
            await session.commit()
