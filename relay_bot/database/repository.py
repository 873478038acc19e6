from abc import ABC, abstractmethod
from typing import List, TypeVar, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from relay_bot.database.models import Base, Conversation, ChatMessage

T = TypeVar("T", bound=Base)


class AbstractRepository(ABC):
    @abstractmethod
    async def get_one_or_none(self, **filter_by):
        raise NotImplementedError

    @abstractmethod
    async def add_one(self, data: dict):
        raise NotImplementedError


class SQLAlchemyRepository(AbstractRepository):
    model: Type[T] = None

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_one_or_none(self, **filter_by) -> T | None:
        stmt = select(self.model).filter_by(**filter_by)
        result = await self.session.execute(stmt)
        return result.scalars().one_or_none()

    async def add_one(self, data: dict) -> T:
        instance = self.model(**data)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance


class ConversationRepository(SQLAlchemyRepository):
    model = Conversation

    async def get_or_create(self, sender_id: str) -> Conversation:
        conversation = await self.get_one_or_none(sender_id=sender_id)
        if conversation is None:
            conversation = await self.add_one({"sender_id": sender_id})
        return conversation


class ChatMessageRepository(SQLAlchemyRepository):
    model = ChatMessage

    async def list_for_conversation(self, conversation_id: int) -> List[ChatMessage]:
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.conversation_id == conversation_id)
            .order_by(ChatMessage.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())
