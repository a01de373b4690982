# -*- coding: utf-8 -*-
"""hoyaku.helpers.safe_delete

Rate-limit-friendly deletion of the bot's own translation replies.

Expiry timers for many replies can fire close together; deletes are paced
through one lock with a minimum interval between DELETE calls, and HTTP 429
responses are retried with a bounded backoff.

Public API:
    await delete_message_by_id(bot, channel_id, message_id, label="...")
    await guarded_delete(message, label="...")

Both return True when the message is gone (deleted now or already missing)
and False when it could not be removed. They never raise for platform errors;
a missing message or missing permission is only a warning.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import discord

from hoyaku.helpers import env_reader as _er

log = logging.getLogger("hoyaku.helpers.safe_delete")

_MIN_INTERVAL_SEC = max(0.0, _er.get_float("HOYAKU_DELETE_MIN_INTERVAL_SEC", 0.35))
_MAX_RETRIES = max(0, _er.get_int("HOYAKU_DELETE_MAX_RETRIES", 3))
_RETRY_BASE_SEC = max(0.1, _er.get_float("HOYAKU_DELETE_RETRY_BASE_SEC", 1.0))

_pace_lock: Optional[asyncio.Lock] = None
_last_delete_ts: float = 0.0


def _lock() -> asyncio.Lock:
    global _pace_lock
    if _pace_lock is None:
        _pace_lock = asyncio.Lock()
    return _pace_lock


async def delete_message_by_id(
    bot: Any,
    channel_id: int,
    message_id: int,
    *,
    label: str = "",
    reason: Optional[str] = None,
) -> bool:
    """Delete ``message_id`` in ``channel_id`` without fetching the message first."""
    channel = bot.get_channel(channel_id)
    if channel is None:
        try:
            channel = await bot.fetch_channel(channel_id)
        except discord.NotFound:
            log.warning("[safe_delete] channel gone label=%s mid=%s ch=%s", label, message_id, channel_id)
            return True
        except discord.HTTPException as e:
            log.warning("[safe_delete] cannot fetch channel label=%s mid=%s ch=%s err=%r", label, message_id, channel_id, e)
            return False

    get_partial = getattr(channel, "get_partial_message", None)
    if get_partial is None:
        log.warning("[safe_delete] channel has no messages label=%s mid=%s ch=%s", label, message_id, channel_id)
        return False
    return await guarded_delete(get_partial(message_id), label=label, reason=reason)


async def guarded_delete(message: Any, *, label: str = "", reason: Optional[str] = None) -> bool:
    """Delete a message with pacing and retry on 429."""
    global _last_delete_ts
    mid = getattr(message, "id", "?")
    ch = getattr(getattr(message, "channel", None), "id", "?")

    attempt = 0
    while True:
        attempt += 1
        try:
            async with _lock():
                wait = (_last_delete_ts + _MIN_INTERVAL_SEC) - time.monotonic()
                if wait > 0:
                    await asyncio.sleep(wait)
                try:
                    if reason:
                        await message.delete(reason=reason)
                    else:
                        await message.delete()
                finally:
                    _last_delete_ts = time.monotonic()
            return True

        except discord.NotFound:
            # Already gone.
            log.warning("[safe_delete] already deleted label=%s mid=%s ch=%s", label, mid, ch)
            return True

        except discord.Forbidden:
            log.warning("[safe_delete] forbidden label=%s mid=%s ch=%s", label, mid, ch)
            return False

        except discord.HTTPException as e:
            status = getattr(e, "status", None)
            if status == 429 and attempt <= max(1, _MAX_RETRIES):
                backoff = _RETRY_BASE_SEC * attempt
                retry_after = getattr(e, "retry_after", None)
                if isinstance(retry_after, (int, float)) and retry_after > 0:
                    backoff = max(backoff, float(retry_after))
                backoff = max(0.5, min(10.0, float(backoff)))
                log.warning(
                    "[safe_delete] 429 label=%s mid=%s ch=%s backoff=%.2fs attempt=%s/%s",
                    label,
                    mid,
                    ch,
                    backoff,
                    attempt,
                    _MAX_RETRIES,
                )
                await asyncio.sleep(backoff)
                continue
            log.warning("[safe_delete] delete error label=%s mid=%s ch=%s err=%r", label, mid, ch, e)
            return False
