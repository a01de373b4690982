from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional, Tuple

from hoyaku.helpers.translation_cache import TranslationCache

log = logging.getLogger(__name__)

_Key = Tuple[int, str]


class DedupGuard:
    """At most one in-flight translation per (message, target language).

    ``try_acquire`` is a single check-and-insert under a lock: it refuses when
    the cache already holds a completed record for the key or when another
    task holds the in-flight marker. No queuing: a refused caller just drops
    the work.

    Markers older than ``stale_after`` seconds count as released, so a task
    that never reached its ``release`` can't block the key forever. The
    returned token identifies the holder; ``release`` with a token only drops
    the marker that token created, so a reclaimed key stays with its new owner.
    """

    def __init__(self, cache: TranslationCache, *, stale_after: float = 90.0):
        self.cache = cache
        self.stale_after = float(stale_after)
        self._lock = threading.RLock()
        self._inflight: Dict[_Key, float] = {}

    def try_acquire(self, message_id: int, lang: str) -> Optional[float]:
        """Return the holder token on success, None when refused."""
        key = (message_id, lang)
        with self._lock:
            if self.cache.is_completed(message_id, lang):
                return None
            now = time.monotonic()
            stamp = self._inflight.get(key)
            if stamp is not None:
                if self.stale_after <= 0 or (now - stamp) < self.stale_after:
                    return None
                log.warning(
                    "[dedup] reclaiming stale marker mid=%s lang=%s age=%.1fs", message_id, lang, now - stamp
                )
            self._inflight[key] = now
            return now

    def release(self, message_id: int, lang: str, token: Optional[float] = None) -> bool:
        key = (message_id, lang)
        with self._lock:
            if token is not None and self._inflight.get(key) != token:
                return False
            return self._inflight.pop(key, None) is not None

    def in_flight(self) -> int:
        with self._lock:
            return len(self._inflight)

    def clear(self) -> None:
        with self._lock:
            self._inflight.clear()
