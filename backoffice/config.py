"""
Configuration for the back-office core.

Values come from environment variables so the same code runs locally, in tests
and in deployment. Anything missing falls back to a development default.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


@dataclass
class Settings:
    """Runtime settings for one admin session."""

    # Data access
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)

    # Outbound bot messages (Telegram); both must be set to send anything
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    telegram_timeout: float = 5.0

    # Audible alert resource; None means go straight to the synthesized tone
    sound_path: Optional[Path] = None

    # Orders carrying this source tag raise notifications
    website_source: str = "website"

    # Dashboard
    recent_orders_limit: int = 5

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        sound_path = os.getenv("BACKOFFICE_SOUND_PATH")
        return cls(
            data_dir=Path(os.getenv("BACKOFFICE_DATA_DIR", str(DEFAULT_DATA_DIR))),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
            telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID") or None,
            telegram_timeout=float(os.getenv("TELEGRAM_TIMEOUT", "5.0")),
            sound_path=Path(sound_path) if sound_path else None,
            website_source=os.getenv("BACKOFFICE_WEBSITE_SOURCE", "website"),
            recent_orders_limit=int(os.getenv("BACKOFFICE_RECENT_ORDERS", "5")),
            log_level=os.getenv("BACKOFFICE_LOG_LEVEL", "INFO").upper(),
        )
