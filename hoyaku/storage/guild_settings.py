# -*- coding: utf-8 -*-
"""hoyaku.storage.guild_settings

Tiny JSON-file store for per-guild translation settings.

File schema::

    {
      "<guild_id>": {
        "trigger_emoji": "🌐",
        "listen_channels": [<channel_id>, ...],
        "role_languages": {"<role_id>": ["fr", "ja"], ...}
      }
    }

- An empty ``listen_channels`` list means every channel is listened to.
- Writes go to a temp file and are renamed into place.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any, Dict, Iterable, List, Optional

log = logging.getLogger(__name__)

DEFAULT_TRIGGER_EMOJI = "🌐"


class GuildSettingsStore:
    def __init__(self, path: str = "data/guild_settings.json", *, default_emoji: str = DEFAULT_TRIGGER_EMOJI):
        self.path = (path or "data/guild_settings.json").strip()
        self.default_emoji = default_emoji or DEFAULT_TRIGGER_EMOJI
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, Any]] = {}
        self.reload()

    # -- persistence -------------------------------------------------------

    def reload(self) -> None:
        with self._lock:
            try:
                with open(self.path, "r", encoding="utf-8") as fh:
                    raw = json.load(fh)
                self._data = raw if isinstance(raw, dict) else {}
            except FileNotFoundError:
                self._data = {}
            except Exception as e:
                log.warning("[guild-settings] unreadable %s: %r; starting empty", self.path, e)
                self._data = {}

    def _save(self) -> None:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(self._data, fh, ensure_ascii=False, indent=2, sort_keys=True)
        os.replace(tmp, self.path)

    def _guild(self, guild_id: int) -> Dict[str, Any]:
        return self._data.get(str(guild_id)) or {}

    # -- lookups -----------------------------------------------------------

    def get_trigger_emoji(self, guild_id: int) -> str:
        with self._lock:
            return str(self._guild(guild_id).get("trigger_emoji") or self.default_emoji)

    def is_channel_listening(self, channel_id: int, guild_id: int) -> bool:
        with self._lock:
            chans = self._guild(guild_id).get("listen_channels") or []
            if not chans:
                return True
            return str(channel_id) in {str(c) for c in chans}

    def get_languages_for_roles(self, guild_id: int, role_ids: Iterable[int]) -> List[str]:
        """Union of languages for the given roles; unique, first-seen order."""
        with self._lock:
            mapping = self._guild(guild_id).get("role_languages") or {}
            out: List[str] = []
            for rid in role_ids:
                for lang in mapping.get(str(rid)) or []:
                    if lang and lang not in out:
                        out.append(lang)
            return out

    # -- updates -----------------------------------------------------------

    def set_trigger_emoji(self, guild_id: int, emoji: Optional[str]) -> None:
        with self._lock:
            g = self._data.setdefault(str(guild_id), {})
            if emoji:
                g["trigger_emoji"] = emoji
            else:
                g.pop("trigger_emoji", None)
            self._save()

    def set_listen_channels(self, guild_id: int, channel_ids: Iterable[int]) -> None:
        with self._lock:
            g = self._data.setdefault(str(guild_id), {})
            g["listen_channels"] = sorted({int(c) for c in channel_ids})
            self._save()

    def set_role_languages(self, guild_id: int, role_id: int, langs: Iterable[str]) -> None:
        with self._lock:
            g = self._data.setdefault(str(guild_id), {})
            mapping = g.setdefault("role_languages", {})
            clean = [l for l in dict.fromkeys(s.strip() for s in langs) if l]
            if clean:
                mapping[str(role_id)] = clean
            else:
                mapping.pop(str(role_id), None)
            self._save()
