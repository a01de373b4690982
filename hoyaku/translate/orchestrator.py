"""
Reaction-triggered translation fan-out.

One trigger (a user reacting with the guild's trigger emoji) turns into one
independent task per target language mapped to the user's roles:

    validate -> resolve languages -> detect source once -> for each language:
        dedup acquire -> skip policy | translate -> reply -> record -> expiry

Tasks are launched ``stagger`` seconds apart to pace outbound provider calls
but run concurrently; their completion order is not defined. A failure in one
task never touches its siblings. Only a detection failure stops the whole
fan-out, because every task needs the source language.
"""
from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Pattern, Set

from hoyaku import config as _config
from hoyaku.config.env import REPLY_TTL_SEC
from hoyaku.helpers.dedup_guard import DedupGuard
from hoyaku.helpers.emoji_match import emoji_matches
from hoyaku.helpers.translation_cache import SKIPPED, TranslationCache
from hoyaku.translate.errors import AllProvidersFailure, DetectionFailure, ReplyDeliveryFailure
from hoyaku.translate.facade import ProviderFacade
from hoyaku.translate.langs import normalize_code, same_macro_language

log = logging.getLogger(__name__)

DEFAULT_STAGGER_SEC = 0.1


@dataclass(frozen=True)
class ReactionTrigger:
    """A reaction on a message, with the message text it points at."""

    message_id: int
    channel_id: int
    guild_id: Optional[int]
    user_id: int
    emoji: str
    content: str = ""
    user_is_bot: bool = False
    author_id: Optional[int] = None
    author_is_bot: bool = False


SendReply = Callable[[ReactionTrigger, str, str], Awaitable[int]]
DeleteReply = Callable[[int, int], Awaitable[Any]]
ResolveRoles = Callable[[ReactionTrigger], Any]
ResolveLanguages = Callable[[int, List[int]], Any]


def load_filler_patterns(raw: Optional[Dict[str, Iterable[str]]] = None) -> Dict[str, List[Pattern[str]]]:
    """Compile the per-target "don't bother translating" patterns."""
    if raw is None:
        raw = _config.load("filler_patterns")
    out: Dict[str, List[Pattern[str]]] = {}
    for lang, pats in (raw or {}).items():
        compiled: List[Pattern[str]] = []
        for p in pats or []:
            try:
                compiled.append(re.compile(p))
            except re.error as e:
                log.warning("[translate] bad filler pattern lang=%s pattern=%r err=%s", lang, p, e)
        if compiled:
            out[normalize_code(lang)] = compiled
    return out


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class FanoutOrchestrator:
    def __init__(
        self,
        facade: ProviderFacade,
        cache: TranslationCache,
        guard: DedupGuard,
        settings: Any,
        *,
        send_reply: SendReply,
        delete_reply: DeleteReply,
        stagger: float = DEFAULT_STAGGER_SEC,
        reply_ttl: float = REPLY_TTL_SEC,
        filler_patterns: Optional[Dict[str, List[Pattern[str]]]] = None,
    ):
        self.facade = facade
        self.cache = cache
        self.guard = guard
        # needs get_trigger_emoji(guild_id) and is_channel_listening(channel_id, guild_id)
        self.settings = settings
        self._send_reply = send_reply
        self._delete_reply = delete_reply
        self.stagger = max(0.0, float(stagger))
        self.reply_ttl = float(reply_ttl)
        self.filler_patterns = load_filler_patterns() if filler_patterns is None else filler_patterns
        self._tasks: Set[asyncio.Task] = set()

    # -- entry points --------------------------------------------------------

    def handle_trigger(
        self,
        event: ReactionTrigger,
        resolve_roles: ResolveRoles,
        resolve_languages: ResolveLanguages,
    ) -> asyncio.Task:
        """Fire-and-forget: schedule the fan-out and return immediately."""
        return self._spawn(
            self.run_trigger(event, resolve_roles, resolve_languages),
            name=f"hoyaku.trigger.{event.message_id}",
        )

    def is_trigger_reaction(self, guild_id: Optional[int], channel_id: int, emoji: Any, user_is_bot: bool) -> bool:
        if user_is_bot or guild_id is None:
            return False
        if not emoji_matches(emoji, self.settings.get_trigger_emoji(guild_id)):
            return False
        return bool(self.settings.is_channel_listening(channel_id, guild_id))

    async def run_trigger(
        self,
        event: ReactionTrigger,
        resolve_roles: ResolveRoles,
        resolve_languages: ResolveLanguages,
    ) -> List[asyncio.Task]:
        gid = event.guild_id
        if not self.is_trigger_reaction(gid, event.channel_id, event.emoji, event.user_is_bot):
            return []
        content = (event.content or "").strip()
        if not content:
            log.debug("[translate] ignore mid=%s: empty content", event.message_id)
            return []

        try:
            role_ids = list(await _maybe_await(resolve_roles(event)) or [])
            raw_targets = await _maybe_await(resolve_languages(gid, role_ids)) or []
        except Exception:
            log.exception("[translate] role/language lookup failed guild=%s user=%s", gid, event.user_id)
            return []

        targets: List[str] = []
        for t in raw_targets:
            code = normalize_code(t)
            if code and code not in targets:
                targets.append(code)
        if not targets:
            log.info("[translate] guild=%s user=%s has no translation languages; ignoring", gid, event.user_id)
            return []

        log.info("[translate] guild=%s mid=%s user=%s targets=%s", gid, event.message_id, event.user_id, ",".join(targets))

        try:
            source = await self.facade.detect(content)
        except DetectionFailure as e:
            log.error("[translate] detect failed guild=%s mid=%s: %s %s", gid, event.message_id, e, e.errors)
            return []
        except Exception:
            log.exception("[translate] detect crashed guild=%s mid=%s", gid, event.message_id)
            return []
        log.info("[translate] guild=%s mid=%s source=%s", gid, event.message_id, source)

        launched: List[asyncio.Task] = []
        for i, target in enumerate(targets):
            if i and self.stagger:
                await asyncio.sleep(self.stagger)
            launched.append(
                self._spawn(
                    self._translate_one(event, target, source),
                    name=f"hoyaku.translate.{event.message_id}.{target}",
                )
            )
        return launched

    # -- per-language task ---------------------------------------------------

    def skip_reason(self, content: str, source: str, target: str) -> Optional[str]:
        if source and normalize_code(source) == normalize_code(target):
            return "same_language"
        if same_macro_language(source, target):
            return "same_macro_language"
        text = (content or "").strip()
        for pat in self.filler_patterns.get(normalize_code(target), ()):
            if pat.search(text):
                return "filler_text"
        return None

    async def _translate_one(self, event: ReactionTrigger, target: str, source: str) -> None:
        mid, gid = event.message_id, event.guild_id
        token = self.guard.try_acquire(mid, target)
        if token is None:
            log.info("[translate] guild=%s skip lang=%s mid=%s: done or in progress", gid, target, mid)
            return
        try:
            reason = self.skip_reason(event.content, source, target)
            if reason:
                log.info("[translate] guild=%s skip lang=%s mid=%s reason=%s", gid, target, mid, reason)
                self.cache.record_completion(mid, target, SKIPPED)
                return

            log.info("[translate] guild=%s translating %s -> %s mid=%s", gid, source, target, mid)
            try:
                translated = await self.facade.translate(event.content, target, source)
            except AllProvidersFailure as e:
                log.error("[translate] guild=%s lang=%s mid=%s %s", gid, target, mid, e)
                return

            try:
                reply_id = await self._send_reply(event, target, translated)
            except Exception as e:
                log.error("[translate] guild=%s %s", gid, ReplyDeliveryFailure(target, e))
                return
            if not reply_id:
                log.error("[translate] guild=%s reply delivery returned nothing lang=%s mid=%s", gid, target, mid)
                return

            if not self.cache.record_completion(mid, target, reply_id):
                # someone else finished first (stale marker reclaimed); drop ours
                log.warning("[translate] guild=%s late duplicate lang=%s mid=%s reply=%s; discarding", gid, target, mid, reply_id)
                await self._delete_quietly(event.channel_id, reply_id)
                return

            self.cache.schedule_expiry(
                reply_id,
                functools.partial(self._delete_reply, event.channel_id, reply_id),
                self.reply_ttl,
            )
            log.info("[translate] guild=%s replied lang=%s mid=%s reply=%s", gid, target, mid, reply_id)
        except Exception:
            log.exception("[translate] guild=%s task crashed lang=%s mid=%s", gid, target, mid)
        finally:
            self.guard.release(mid, target, token)

    async def _delete_quietly(self, channel_id: int, reply_id: int) -> None:
        try:
            await self._delete_reply(channel_id, reply_id)
        except Exception as e:
            log.warning("[translate] discard delete failed reply=%s err=%r", reply_id, e)

    # -- housekeeping --------------------------------------------------------

    def _spawn(self, coro: Awaitable[Any], *, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every trigger/translation task spawned so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def shutdown(self) -> None:
        for t in list(self._tasks):
            if not t.done():
                t.cancel()
        self.cache.clear_all()
        self.guard.clear()

    def stats(self) -> dict:
        return {
            "providers": self.facade.available(),
            "in_flight": self.guard.in_flight(),
            "tasks": sum(1 for t in self._tasks if not t.done()),
            **self.cache.stats(),
        }
