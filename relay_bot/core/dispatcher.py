from aiogram import Dispatcher

from relay_bot.handlers import commands, messages
from relay_bot.middleware.relay import RelayServiceMiddleware
from relay_bot.services.relay_service import RelayService


def setup_dispatcher(dp: Dispatcher, relay_service: RelayService):
    """
    Registers routers and middleware on the dispatcher.
    """
    relay_mw = RelayServiceMiddleware(relay_service=relay_service)
    for router in [commands.router, messages.router]:
        router.message.middleware(relay_mw)

    # Commands first, so "/..." never reaches the relay
    dp.include_router(commands.router)
    dp.include_router(messages.router)
