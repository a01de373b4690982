import asyncio
import os
import time

import pytest

os.environ.setdefault("TRANSLATE_AUTO_REACT_DELAY_SEC", "0")
os.environ.setdefault("HOYAKU_DELETE_MIN_INTERVAL_SEC", "0")

from hoyaku.helpers import safe_delete
from hoyaku.helpers.dedup_guard import DedupGuard
from hoyaku.helpers.translation_cache import TranslationCache
from hoyaku.translate.errors import AllProvidersFailure
from hoyaku.translate.orchestrator import FanoutOrchestrator, ReactionTrigger

GUILD = 1
CHANNEL = 10
TRIGGER = "🌐"


class FakeSettings:
    def __init__(self, emoji=TRIGGER, channels=None, roles=None):
        self.emoji = emoji
        self.channels = channels
        self.roles = roles or {}

    def get_trigger_emoji(self, guild_id):
        return self.emoji

    def is_channel_listening(self, channel_id, guild_id):
        return self.channels is None or channel_id in self.channels

    def get_languages_for_roles(self, guild_id, role_ids):
        out = []
        for rid in role_ids:
            for lang in self.roles.get(rid, []):
                if lang not in out:
                    out.append(lang)
        return out


class FakeFacade:
    def __init__(self, source="en", delay=0.0, fail_langs=(), detect_error=None):
        self.source = source
        self.delay = delay
        self.fail_langs = set(fail_langs)
        self.detect_error = detect_error
        self.detect_calls = []
        self.translate_calls = []

    def available(self):
        return ["Fake"]

    async def detect(self, text):
        self.detect_calls.append(text)
        if self.detect_error is not None:
            raise self.detect_error
        return self.source

    async def translate(self, text, target, source=None):
        self.translate_calls.append((target, source, time.monotonic()))
        if self.delay:
            await asyncio.sleep(self.delay)
        if target in self.fail_langs:
            raise AllProvidersFailure([f"Fake: no {target} today"])
        return f"[{target}] {text}"


class FakeDelivery:
    """Stands in for the platform: posts replies and deletes them."""

    def __init__(self, fail=False):
        self.fail = fail
        self.next_id = 5000
        self.sent = []
        self.deleted = []

    async def send(self, event, target_lang, text):
        if self.fail:
            raise RuntimeError("channel unavailable")
        self.next_id += 1
        self.sent.append((self.next_id, event.message_id, target_lang, text))
        return self.next_id

    async def delete(self, channel_id, reply_id):
        self.deleted.append((channel_id, reply_id))
        return True


def make_event(message_id=100, content="Hello", emoji=TRIGGER, user_is_bot=False, channel_id=CHANNEL):
    return ReactionTrigger(
        message_id=message_id,
        channel_id=channel_id,
        guild_id=GUILD,
        user_id=7,
        emoji=emoji,
        content=content,
        user_is_bot=user_is_bot,
        author_id=3,
    )


def make_orchestrator(facade=None, settings=None, delivery=None, *, stagger=0.0, reply_ttl=60.0, stale_after=90.0):
    cache = TranslationCache()
    guard = DedupGuard(cache, stale_after=stale_after)
    delivery = delivery or FakeDelivery()
    orch = FanoutOrchestrator(
        facade or FakeFacade(),
        cache,
        guard,
        settings or FakeSettings(),
        send_reply=delivery.send,
        delete_reply=delivery.delete,
        stagger=stagger,
        reply_ttl=reply_ttl,
    )
    return orch, delivery


@pytest.fixture(autouse=True)
def _fresh_delete_pacing(monkeypatch):
    monkeypatch.setattr(safe_delete, "_pace_lock", None)
    monkeypatch.setattr(safe_delete, "_last_delete_ts", 0.0)
    monkeypatch.setattr(safe_delete, "_MIN_INTERVAL_SEC", 0.0)
    yield

