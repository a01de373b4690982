from __future__ import annotations
import os
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from hoyaku.helpers import env_reader as _er

log = logging.getLogger("hoyaku.config.env")

# Posted translation replies are retired after this many seconds. Not configurable.
REPLY_TTL_SEC: float = 120.0

@dataclass(frozen=True)
class Settings:
    MODE: str = field(default_factory=lambda: _er.get("HOYAKU_MODE", _er.get("MODE", "production")))
    HOST: str = field(default_factory=lambda: _er.get("HOST", "0.0.0.0"))
    PORT: int = field(default_factory=lambda: _er.get_int("PORT", 10000))

    DISCORD_TOKEN: Optional[str] = field(
        default_factory=lambda: os.getenv("DISCORD_TOKEN") or os.getenv("DISCORD_BOT_TOKEN") or None
    )

    GUILD_SETTINGS_PATH: str = field(
        default_factory=lambda: _er.get("HOYAKU_GUILD_SETTINGS_PATH", "data/guild_settings.json")
    )
    DEFAULT_TRIGGER_EMOJI: str = field(default_factory=lambda: _er.get("HOYAKU_DEFAULT_TRIGGER_EMOJI", "🌐"))

    # fan-out pacing between launches of per-language tasks
    TRANSLATE_STAGGER_SEC: float = field(default_factory=lambda: max(0.0, _er.get_float("TRANSLATE_STAGGER_SEC", 0.1)))
    TRANSLATE_TIMEOUT_SEC: float = field(default_factory=lambda: max(1.0, _er.get_float("TRANSLATE_TIMEOUT_SEC", 15.0)))
    TRANSLATE_INFLIGHT_STALE_SEC: float = field(
        default_factory=lambda: max(1.0, _er.get_float("TRANSLATE_INFLIGHT_STALE_SEC", 90.0))
    )

    TRANSLATE_AUTO_REACT: bool = field(default_factory=lambda: _er.get_bool("TRANSLATE_AUTO_REACT", True))
    TRANSLATE_AUTO_REACT_DELAY_SEC: float = field(
        default_factory=lambda: max(0.0, _er.get_float("TRANSLATE_AUTO_REACT_DELAY_SEC", 0.2))
    )

    REPLY_TTL_SEC: float = REPLY_TTL_SEC

    def token(self) -> Optional[str]:
        return self.DISCORD_TOKEN

@lru_cache(maxsize=1)
def settings() -> Settings:
    return Settings()
