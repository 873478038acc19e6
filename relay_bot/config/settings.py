from dataclasses import dataclass
from typing import List, Optional
import os
from dotenv import load_dotenv
from pathlib import Path

# .env lives next to the package: relay_bot/.env
# settings.py -> config -> relay_bot
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / '.env'

load_dotenv(ENV_PATH)


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    return int(raw) if raw else None


def _optional_seconds(name: str, default: str) -> Optional[float]:
    # 0 disables the limit
    value = float(os.getenv(name, default))
    return value if value > 0 else None


@dataclass
class BotSettings:
    token: str = os.getenv("BOT_TOKEN")
    openai_api_key: str = os.getenv("OPENAI_API_KEY")
    assistant_id: str = os.getenv("ASSISTANT_ID")
    database_url: str = os.getenv("DATABASE_URL")

    # Quiet period after the last message of a burst before it is sent on
    quiet_period_seconds: float = float(os.getenv("QUIET_PERIOD_SECONDS", "6"))

    # Run polling
    poll_interval_seconds: float = float(os.getenv("POLL_INTERVAL_SECONDS", "1"))
    failure_backoff_seconds: float = float(os.getenv("FAILURE_BACKOFF_SECONDS", "5"))
    poll_timeout_seconds: Optional[float] = _optional_seconds("POLL_TIMEOUT_SECONDS", "600")
    max_poll_attempts: Optional[int] = _optional_int("MAX_POLL_ATTEMPTS")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("LOG_FILE", "relay_bot/bot.log")

    def missing_required(self) -> List[str]:
        """Names of required environment variables that are not set."""
        required = {
            "BOT_TOKEN": self.token,
            "OPENAI_API_KEY": self.openai_api_key,
            "ASSISTANT_ID": self.assistant_id,
            "DATABASE_URL": self.database_url,
        }
        return [name for name, value in required.items() if not value]
