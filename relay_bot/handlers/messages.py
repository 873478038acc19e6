from aiogram import Router, F
from aiogram.enums import ContentType
from aiogram.types import Message
from loguru import logger

from relay_bot.config.constants import NOTICES
from relay_bot.services.relay_service import IncomingMessage, RelayService, RelayOutcome

router = Router()

MEDIA_CONTENT_TYPES = {
    ContentType.PHOTO,
    ContentType.VIDEO,
    ContentType.VIDEO_NOTE,
    ContentType.ANIMATION,
    ContentType.DOCUMENT,
    ContentType.AUDIO,
    ContentType.VOICE,
    ContentType.STICKER,
}


def to_incoming(message: Message) -> IncomingMessage:
    return IncomingMessage(
        sender=str(message.chat.id),
        text=message.text or message.caption or "",
        has_media=message.content_type in MEDIA_CONTENT_TYPES,
        # Telegram gives bots no "disappearing" flag; protected content is the closest
        is_ephemeral=bool(message.has_protected_content),
    )


async def relay(message: Message, relay_service: RelayService | None) -> RelayOutcome | None:
    if relay_service is None:
        await message.answer(NOTICES["internal_error"], parse_mode=None)
        return None

    try:
        outcome = await relay_service.handle_incoming(to_incoming(message))
    except Exception:
        logger.exception(f"Chat {message.chat.id}: relay failed")
        await message.answer(NOTICES["internal_error"], parse_mode=None)
        return None

    logger.debug(f"Chat {message.chat.id}: message {message.message_id} -> {outcome.value}")
    return outcome


@router.message(F.content_type.in_(MEDIA_CONTENT_TYPES))
async def handle_media_message(message: Message, relay_service: RelayService | None = None):
    await relay(message, relay_service)


@router.message(F.text & ~F.text.startswith('/'))
async def handle_text_message(message: Message, relay_service: RelayService | None = None):
    """
    Waits for the burst to settle; only the last message of a burst goes on
    to the assistant, earlier ones return as superseded.
    """
    await relay(message, relay_service)
