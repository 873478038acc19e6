import sys
import asyncio
import logging

from loguru import logger

from relay_bot.config.settings import BotSettings
from relay_bot.core.bot import create_bot
from relay_bot.core.dispatcher import setup_dispatcher
from relay_bot.core.transport import TelegramTransport
from relay_bot.database.engine import create_engine, create_session_factory, init_models
from relay_bot.services.assistant_service import AssistantService
from relay_bot.services.conversation_service import ConversationService
from relay_bot.services.relay_service import RelayService
from relay_bot.services.run_poller import RunPoller
from relay_bot.utils.debounce import BurstAggregator

# Proactive fix for asyncio on Windows
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


def setup_logging(settings: BotSettings) -> None:
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=handlers,
    )
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level)


async def main():
    settings = BotSettings()
    setup_logging(settings)
    logger.info(f"Starting relay bot, Python {sys.version.split()[0]}")

    missing = settings.missing_required()
    if missing:
        logger.error(f"Missing required settings: {', '.join(missing)}")
        raise SystemExit(1)

    logger.info("1. Database...")
    engine = create_engine(settings.database_url)
    await init_models(engine)
    session_pool = create_session_factory(engine)

    logger.info("2. Bot and dispatcher...")
    bot, dp = create_bot(settings)

    logger.info("3. Services...")
    assistant = AssistantService(settings)
    aggregator = BurstAggregator(quiet_period=settings.quiet_period_seconds)
    poller = RunPoller(
        assistant,
        poll_interval=settings.poll_interval_seconds,
        failure_backoff=settings.failure_backoff_seconds,
        timeout=settings.poll_timeout_seconds,
        max_attempts=settings.max_poll_attempts,
    )
    relay_service = RelayService(
        transport=TelegramTransport(bot),
        aggregator=aggregator,
        assistant=assistant,
        poller=poller,
        conversations=ConversationService(session_pool),
    )
    setup_dispatcher(dp, relay_service=relay_service)

    try:
        logger.info("--- Polling started ---")
        await dp.start_polling(bot, drop_pending_updates=True)
    finally:
        aggregator.shutdown()
        await bot.session.close()
        await engine.dispose()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
