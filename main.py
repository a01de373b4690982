# -*- coding: utf-8 -*-
"""
hoyaku main.py: reaction translate bot, ready for a web-service host & local run.
- Loads .env automatically if available.
- Exposes /healthz on PORT.
- Disables aiohttp.access spam.
- Autoloads cogs through hoyaku.cogs_loader (fail-closed on required cogs).
- No manual auto-restart loop inside discord.py (let it handle reconnects);
  only a guard loop if bot.start() ever returns.
"""
import os
import sys
import asyncio
import logging
import json
import contextlib
from datetime import datetime, timezone

# --- .env loader ----------------------------------------------------------------
from dotenv import load_dotenv

_here = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(_here, ".env"), override=False)

# --- logging: quiet down noisy loggers ---------------------------------------
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(levelname)s:%(name)s:%(message)s")
log = logging.getLogger("hoyaku.main")

# mute aiohttp access spam and per-request httpx lines
logging.getLogger("aiohttp.access").disabled = True
logging.getLogger("httpx").setLevel(logging.WARNING)

# --- discord bot --------------------------------------------------------------
import discord
from discord.ext import commands

from hoyaku.config.env import settings

INTENTS = discord.Intents.default()
INTENTS.message_content = True
INTENTS.members = True
INTENTS.guilds = True
INTENTS.reactions = True

STARTED_AT = datetime.now(tz=timezone.utc)
_last_ready = None
_loaded_cogs = 0

class HoyakuBot(commands.Bot):
    async def setup_hook(self):
        """Load cogs before the bot connects."""
        global _loaded_cogs
        from hoyaku import cogs_loader as _loader
        loaded = await _loader.autoload_all(self)
        _loaded_cogs = len(loaded)
        log.info("Cogs loaded: %d", _loaded_cogs)

    async def on_ready(self):
        global _last_ready
        _last_ready = datetime.now(tz=timezone.utc)
        me = self.user
        log.info("Bot ready as %s (%s)", getattr(me, "name", "?"), getattr(me, "id", "?"))

# No text commands: commands.Bot is only here for cogs, so the prefix is mention-only.
bot = HoyakuBot(command_prefix=commands.when_mentioned, intents=INTENTS)

# --- tiny HTTP server for healthcheck ----------------------------------------
from aiohttp import web

def _translate_stats():
    cog = bot.get_cog("ReactionTranslate")
    orch = getattr(cog, "orchestrator", None)
    return orch.stats() if orch is not None else None

async def handle_root(request: web.Request):
    return web.Response(text="HOYAKU OK", content_type="text/plain")

async def handle_healthz(request: web.Request):
    data = {
        "ok": True,
        "service": "hoyaku",
        "started_at": STARTED_AT.isoformat(),
        "last_ready": _last_ready.isoformat() if _last_ready else None,
        "loaded_cogs": _loaded_cogs,
        "translate": _translate_stats(),
        "python": sys.version,
    }
    return web.Response(text=json.dumps(data, ensure_ascii=False), content_type="application/json")

async def start_web(host: str, port: int):
    app = web.Application()
    app.add_routes([web.get("/", handle_root), web.get("/healthz", handle_healthz)])
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log.info("Web running on port %d; health: /healthz", port)
    try:
        await asyncio.Event().wait()  # run forever
    finally:
        with contextlib.suppress(Exception):
            await runner.cleanup()

# --- glue --------------------------------------------------------------

async def _run_bot(token: str):
    # Guard loop: if bot.start ever returns or crashes, we log and restart.
    while True:
        try:
            await bot.start(token, reconnect=True)
        except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
            raise
        except discord.LoginFailure:
            log.error("Discord rejected the token; not retrying")
            return
        except Exception as exc:
            log.exception("Bot crashed unexpectedly: %r; restarting in 10s", exc)
            await asyncio.sleep(10)
        else:
            log.warning("bot.start() returned without error; restarting in 10s")
            await asyncio.sleep(10)

async def _main():
    cfg = settings()
    log.info("Mode: %s", cfg.MODE)

    web_task = asyncio.create_task(start_web(cfg.HOST, cfg.PORT), name="web")
    bot_task = None

    token = cfg.token()
    if token:
        bot_task = asyncio.create_task(_run_bot(token), name="bot")

        def _on_bot_done(task: asyncio.Task) -> None:
            try:
                exc = task.exception()
            except asyncio.CancelledError:
                return
            if exc:
                log.error("Bot task terminated with error: %r", exc)

        bot_task.add_done_callback(_on_bot_done)
    else:
        log.error("DISCORD_TOKEN missing; bot will not start. Web healthz still served.")

    # Process lifetime follows web_task; /healthz stays up while web is alive.
    try:
        await web_task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        log.exception("Web task failed: %r", e)
    finally:
        if bot_task is not None and not bot_task.done():
            bot_task.cancel()
            with contextlib.suppress(Exception, asyncio.CancelledError):
                await bot_task
        with contextlib.suppress(Exception):
            await bot.close()

if __name__ == "__main__":
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        pass
