# -*- coding: utf-8 -*-
"""
reaction_translate.py

Reaction translate cog (guild-only):
- Members react to a message with the guild's trigger emoji (default 🌐).
- The bot replies once per language mapped to the member's roles, then
  deletes each reply after two minutes.
- In listening channels every new text message gets the trigger emoji added
  so members can just click it.

Per-guild settings live in HOYAKU_GUILD_SETTINGS_PATH (see
hoyaku.storage.guild_settings). Provider keys are read from the environment.

Optional configs (runtime_env.json or env):
  TRANSLATE_STAGGER_SEC=0.1
  TRANSLATE_AUTO_REACT=1
  TRANSLATE_AUTO_REACT_DELAY_SEC=0.2
  TRANSLATE_INFLIGHT_STALE_SEC=90
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import discord
from discord.ext import commands

from hoyaku.config.env import settings
from hoyaku.helpers.dedup_guard import DedupGuard
from hoyaku.helpers.safe_delete import delete_message_by_id
from hoyaku.helpers.translation_cache import TranslationCache
from hoyaku.storage.guild_settings import GuildSettingsStore
from hoyaku.translate.facade import build_default_facade
from hoyaku.translate.orchestrator import FanoutOrchestrator, ReactionTrigger

log = logging.getLogger(__name__)

# Discord hard limit for message content.
_MAX_REPLY_CHARS = 2000


def _fit_reply(text: str) -> str:
    text = (text or "").strip() or "(empty)"
    if len(text) <= _MAX_REPLY_CHARS:
        return text
    return text[: _MAX_REPLY_CHARS - 1].rstrip() + "…"


class ReactionTranslate(commands.Cog):
    def __init__(
        self,
        bot: commands.Bot,
        *,
        store: Optional[GuildSettingsStore] = None,
        orchestrator: Optional[FanoutOrchestrator] = None,
    ):
        self.bot = bot
        cfg = settings()
        self.auto_react = cfg.TRANSLATE_AUTO_REACT
        self.auto_react_delay = cfg.TRANSLATE_AUTO_REACT_DELAY_SEC
        self.store = store or GuildSettingsStore(cfg.GUILD_SETTINGS_PATH, default_emoji=cfg.DEFAULT_TRIGGER_EMOJI)
        if orchestrator is None:
            cache = TranslationCache()
            orchestrator = FanoutOrchestrator(
                build_default_facade(),
                cache,
                DedupGuard(cache, stale_after=cfg.TRANSLATE_INFLIGHT_STALE_SEC),
                self.store,
                send_reply=self._send_reply,
                delete_reply=self._delete_reply,
                stagger=cfg.TRANSLATE_STAGGER_SEC,
                reply_ttl=cfg.REPLY_TTL_SEC,
            )
        self.orchestrator = orchestrator

    async def cog_unload(self) -> None:
        self.orchestrator.shutdown()
        log.info("[reaction-translate] unloaded; timers cancelled")

    # -- collaborators -------------------------------------------------------

    async def _channel(self, channel_id: int) -> Any:
        ch = self.bot.get_channel(channel_id)
        if ch is None:
            ch = await self.bot.fetch_channel(channel_id)
        return ch

    async def _send_reply(self, event: ReactionTrigger, target_lang: str, text: str) -> int:
        ch = await self._channel(event.channel_id)
        original = ch.get_partial_message(event.message_id)
        reply = await original.reply(_fit_reply(text), mention_author=False)
        return reply.id

    async def _delete_reply(self, channel_id: int, reply_id: int) -> bool:
        return await delete_message_by_id(self.bot, channel_id, reply_id, label="translation-ttl")

    async def _fetch_message(self, channel_id: int, message_id: int) -> Optional[discord.Message]:
        try:
            ch = await self._channel(channel_id)
            return await ch.fetch_message(message_id)
        except (discord.NotFound, discord.Forbidden) as e:
            log.warning("[reaction-translate] cannot fetch message ch=%s mid=%s: %r", channel_id, message_id, e)
        except discord.HTTPException as e:
            log.error("[reaction-translate] fetch message failed ch=%s mid=%s: %r", channel_id, message_id, e)
        return None

    async def _fetch_member(self, guild_id: int, user_id: int) -> Optional[discord.Member]:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return None
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.HTTPException as e:
            log.warning("[reaction-translate] cannot fetch member guild=%s user=%s: %r", guild_id, user_id, e)
            return None

    # -- listeners -----------------------------------------------------------

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        try:
            gid = payload.guild_id
            if gid is None:
                return
            if self.bot.user is not None and payload.user_id == self.bot.user.id:
                return
            member = payload.member
            user_is_bot = bool(getattr(member, "bot", False))
            emoji = str(payload.emoji)
            if not self.orchestrator.is_trigger_reaction(gid, payload.channel_id, emoji, user_is_bot):
                return

            log.info("[reaction-translate] guild=%s trigger %s on mid=%s by user=%s", gid, emoji, payload.message_id, payload.user_id)
            message = await self._fetch_message(payload.channel_id, payload.message_id)
            if message is None:
                return
            if member is None:
                member = await self._fetch_member(gid, payload.user_id)
            if member is None:
                log.info("[reaction-translate] guild=%s ignore: member %s unavailable", gid, payload.user_id)
                return

            event = ReactionTrigger(
                message_id=message.id,
                channel_id=payload.channel_id,
                guild_id=gid,
                user_id=payload.user_id,
                emoji=emoji,
                content=message.content or "",
                user_is_bot=bool(member.bot),
                author_id=message.author.id,
                author_is_bot=bool(message.author.bot),
            )
            role_ids: List[int] = [r.id for r in getattr(member, "roles", [])]
            self.orchestrator.handle_trigger(
                event,
                lambda _ev: role_ids,
                self.store.get_languages_for_roles,
            )
        except Exception:
            # Never let listener errors escape.
            log.exception("[reaction-translate] on_raw_reaction_add crashed")

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        """Pre-add the trigger emoji so members only have to click it."""
        try:
            if not self.auto_react:
                return
            if message.guild is None or message.author.bot:
                return
            if not (message.content or "").strip():
                return
            gid = message.guild.id
            if not self.store.is_channel_listening(message.channel.id, gid):
                return
            trigger = self.store.get_trigger_emoji(gid)
            if not trigger:
                log.error("[reaction-translate] guild=%s has no trigger emoji", gid)
                return

            if self.auto_react_delay:
                await asyncio.sleep(self.auto_react_delay)
            try:
                await message.add_reaction(discord.PartialEmoji.from_str(trigger))
            except discord.HTTPException as e:
                if "Unknown Emoji" in str(e):
                    log.warning(
                        "[reaction-translate] guild=%s (%s) cannot use trigger %s on mid=%s: emoji deleted or not accessible",
                        message.guild.name,
                        gid,
                        trigger,
                        message.id,
                    )
                else:
                    log.error("[reaction-translate] add trigger %s on mid=%s failed: %r", trigger, message.id, e)
        except Exception:
            log.exception("[reaction-translate] on_message handler crashed")


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(ReactionTranslate(bot))
    log.info("[reaction-translate] cog loaded")
