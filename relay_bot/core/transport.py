from typing import List, Protocol

from aiogram import Bot
from aiogram.enums import ChatAction
from aiogram.exceptions import TelegramAPIError
from loguru import logger

# Telegram's limit for one text message
MESSAGE_LIMIT = 4096


class Transport(Protocol):
    async def send_message(self, sender: str, text: str) -> None: ...

    async def send_typing(self, sender: str) -> None: ...


def split_message(text: str, limit: int = MESSAGE_LIMIT) -> List[str]:
    """Splits text into chunks of at most `limit` chars, preferring line breaks."""
    chunks = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit + 1)
        if cut <= 0:
            chunks.append(text[:limit])
            text = text[limit:]
        else:
            chunks.append(text[:cut])
            text = text[cut + 1:]
    if text:
        chunks.append(text)
    return chunks


class TelegramTransport:
    """Sends relay output to Telegram chats; the sender id is the chat id."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send_message(self, sender: str, text: str) -> None:
        # Assistant output is plain text, not HTML
        for chunk in split_message(text):
            await self.bot.send_message(chat_id=int(sender), text=chunk, parse_mode=None)

    async def send_typing(self, sender: str) -> None:
        try:
            await self.bot.send_chat_action(chat_id=int(sender), action=ChatAction.TYPING)
        except TelegramAPIError as e:
            logger.warning(f"Failed to send typing status to {sender}: {e}")
