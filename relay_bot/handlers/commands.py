from aiogram import Router
from aiogram.filters import CommandStart, Command
from aiogram.types import Message
from loguru import logger

from relay_bot.config.constants import NOTICES
from relay_bot.services.relay_service import RelayService

router = Router()


@router.message(CommandStart())
async def command_start_handler(message: Message) -> None:
    """
    Handles the `/start` command
    """
    name = message.from_user.full_name if message.from_user else ""
    await message.answer(NOTICES["greeting"].format(name=name or "there"), parse_mode=None)


@router.message(Command("help"))
async def command_help_handler(message: Message) -> None:
    await message.answer(NOTICES["help"], parse_mode=None)


@router.message(Command("reset"))
async def command_reset_handler(message: Message, relay_service: RelayService | None = None) -> None:
    """Starts a fresh assistant thread on the next message."""
    if relay_service is None:
        await message.answer(NOTICES["internal_error"], parse_mode=None)
        return
    await relay_service.conversations.reset_thread(str(message.chat.id))
    logger.info(f"Chat {message.chat.id}: thread reset")
    await message.answer(NOTICES["reset"], parse_mode=None)
