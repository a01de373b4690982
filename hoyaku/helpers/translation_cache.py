# -*- coding: utf-8 -*-
"""hoyaku.helpers.translation_cache

Completed translations + the timers that retire their replies.

Record schema:
    message_id -> {target_lang -> reply_id | SKIPPED}

A reply id is terminal: once stored it is only removed by expiry, by
``remove_completion`` or by ``clear_all``. ``SKIPPED`` marks a request that was
completed without a provider call or a reply (same language, filler text).

``SKIPPED`` entries carry no reply to delete, so they get no timer: they age
out after ``skip_ttl`` seconds (the reply TTL by default) and their count is
capped at ``max_skipped``, oldest dropped first.

Each posted reply gets one expiry timer (an asyncio task) keyed by reply id.
Scheduling again for the same reply id cancels the previous timer. When a timer
fires it awaits the delete callback and then always drops the cache entry and
its own registration, even if the delete failed.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable, Dict, Optional, Tuple, Union

from hoyaku.config.env import REPLY_TTL_SEC
from hoyaku.helpers import env_reader as _er

log = logging.getLogger("hoyaku.helpers.translation_cache")

SKIPPED = "same_language"

# Bounded skip bookkeeping (same idea as the once-cache GC).
_SKIP_MAX = max(0, _er.get_int("TRANSLATE_SKIP_CACHE_MAX", 5000))
_SKIP_GC_EVERY_SEC = 10.0

ReplyRef = Union[int, str]
DeleteCallback = Callable[[], Awaitable[object]]


class TranslationCache:
    def __init__(self, *, skip_ttl: float = REPLY_TTL_SEC, max_skipped: int = _SKIP_MAX) -> None:
        self.skip_ttl = float(skip_ttl)
        self.max_skipped = int(max_skipped)
        self._lock = threading.RLock()
        self._records: Dict[int, Dict[str, ReplyRef]] = {}
        self._by_reply: Dict[int, Tuple[int, str]] = {}
        self._timers: Dict[int, asyncio.Task] = {}
        # (message_id, lang) -> monotonic expiry of a SKIPPED entry
        self._skipped_until: Dict[Tuple[int, str], float] = {}
        self._last_gc = 0.0

    # -- records -----------------------------------------------------------

    def is_completed(self, message_id: int, lang: str) -> bool:
        return bool(self.get_reply_id(message_id, lang))

    def get_reply_id(self, message_id: int, lang: str) -> Optional[ReplyRef]:
        with self._lock:
            until = self._skipped_until.get((message_id, lang))
            if until is not None and until <= time.monotonic():
                self.remove_completion(message_id, lang)
                return None
            return self._records.get(message_id, {}).get(lang)

    def record_completion(self, message_id: int, lang: str, reply: ReplyRef) -> bool:
        """Store the terminal state for (message, lang).

        Returns False and keeps the existing value when a reply id is already
        recorded for the key.
        """
        with self._lock:
            langs = self._records.setdefault(message_id, {})
            prev = langs.get(lang)
            if prev and prev != SKIPPED:
                return prev == reply
            langs[lang] = reply
            if reply != SKIPPED:
                self._skipped_until.pop((message_id, lang), None)
                self._by_reply[int(reply)] = (message_id, lang)
            else:
                now = time.monotonic()
                self._skipped_until[(message_id, lang)] = now + self.skip_ttl
                self._gc_skipped(now)
            return True

    def _gc_skipped(self, now: float) -> None:
        with self._lock:
            if (now - self._last_gc) >= min(_SKIP_GC_EVERY_SEC, self.skip_ttl):
                for key in [k for k, until in self._skipped_until.items() if until <= now]:
                    self.remove_completion(*key)
                self._last_gc = now

            # hard cap: drop the soonest expiries first
            extra = len(self._skipped_until) - self.max_skipped
            if self.max_skipped > 0 and extra > 0:
                oldest = sorted(self._skipped_until.items(), key=lambda kv: kv[1])[:extra]
                for key, _ in oldest:
                    self.remove_completion(*key)

    def remove_completion(self, message_id: int, lang: Optional[str] = None) -> None:
        """Drop one language (or every language when ``lang`` is None) for a message."""
        with self._lock:
            langs = self._records.get(message_id)
            if not langs:
                return
            if lang is None:
                victims = list(langs.items())
                self._records.pop(message_id, None)
            else:
                if lang not in langs:
                    return
                victims = [(lang, langs.pop(lang))]
                if not langs:
                    self._records.pop(message_id, None)
            for victim_lang, reply in victims:
                if reply == SKIPPED:
                    self._skipped_until.pop((message_id, victim_lang), None)
                else:
                    self._by_reply.pop(int(reply), None)

    # -- expiry ------------------------------------------------------------

    def schedule_expiry(self, reply_id: int, delete_cb: DeleteCallback, delay: float) -> asyncio.Task:
        """(Re)arm the deletion timer for ``reply_id``. Must run inside the event loop."""
        loop = asyncio.get_running_loop()
        with self._lock:
            prev = self._timers.pop(reply_id, None)
            if prev is not None and not prev.done():
                prev.cancel()
            task = loop.create_task(
                self._expire_after(reply_id, delete_cb, max(0.0, float(delay))),
                name=f"hoyaku.expire.{reply_id}",
            )
            self._timers[reply_id] = task
        return task

    def cancel_expiry(self, reply_id: int) -> bool:
        with self._lock:
            task = self._timers.pop(reply_id, None)
        if task is None:
            return False
        if not task.done():
            task.cancel()
        return True

    async def _expire_after(self, reply_id: int, delete_cb: DeleteCallback, delay: float) -> None:
        await asyncio.sleep(delay)
        me = asyncio.current_task()
        with self._lock:
            # fired: unregister first so a late cancel can't interrupt the delete
            if self._timers.get(reply_id) is me:
                self._timers.pop(reply_id, None)
            key = self._by_reply.get(reply_id)
        try:
            await delete_cb()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("[translate-cache] delete failed reply=%s err=%r", reply_id, e)
        finally:
            if key is not None:
                with self._lock:
                    if self.get_reply_id(*key) == reply_id:
                        self.remove_completion(*key)
            log.debug("[translate-cache] expired reply=%s key=%s", reply_id, key)

    def pending_timers(self) -> int:
        with self._lock:
            return sum(1 for t in self._timers.values() if not t.done())

    # -- teardown ----------------------------------------------------------

    def clear_all(self) -> None:
        """Cancel every timer and empty the cache (shutdown / tests)."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._records.clear()
            self._by_reply.clear()
            self._skipped_until.clear()
        for t in timers:
            if not t.done():
                t.cancel()

    def stats(self) -> dict:
        with self._lock:
            self._gc_skipped(time.monotonic())
            return {
                "messages": len(self._records),
                "entries": sum(len(v) for v in self._records.values()),
                "skipped": len(self._skipped_until),
                "timers": sum(1 for t in self._timers.values() if not t.done()),
            }
