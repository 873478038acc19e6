from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from typing import Callable, Dict, Any, Awaitable

from relay_bot.services.relay_service import RelayService


class RelayServiceMiddleware(BaseMiddleware):
    def __init__(self, relay_service: RelayService):
        self.relay_service = relay_service

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        data["relay_service"] = self.relay_service
        return await handler(event, data)
