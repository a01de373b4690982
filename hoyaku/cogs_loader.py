# -*- coding: utf-8 -*-
from __future__ import annotations

import importlib
import logging
import os
import pkgutil
from typing import List, Tuple

LOGGER = logging.getLogger(__name__)

# Default "fail-closed" set: if any of these fail to load, we treat startup as unsafe.
DEFAULT_REQUIRED_COGS = (
    "hoyaku.cogs.reaction_translate",
)


def _parse_required_from_env() -> Tuple[str, ...]:
    raw = (os.getenv("HOYAKU_REQUIRED_COGS") or "").strip()
    if not raw:
        return DEFAULT_REQUIRED_COGS
    out: List[str] = []
    for part in raw.split(","):
        name = part.strip()
        if not name:
            continue
        out.append(name)
    return tuple(out) if out else DEFAULT_REQUIRED_COGS

def _iter_cog_names(package_root: str) -> List[str]:
    """Return sorted module names under package_root."""
    pkg = importlib.import_module(package_root)
    names = []
    for mod in pkgutil.iter_modules(pkg.__path__, package_root + "."):
        name = getattr(mod, "name", "")
        leaf = name.rsplit(".", 1)[-1]
        if not name or leaf.startswith("_"):
            continue
        names.append(name)
    names.sort()  # deterministic load order
    return names

async def _load_one(bot, name: str) -> None:
    await bot.load_extension(name)
    LOGGER.info("Loaded cog: %s", name)

async def autoload_all(bot, package_root: str = "hoyaku.cogs") -> List[str]:
    required = set(_parse_required_from_env())

    try:
        names = _iter_cog_names(package_root)
    except Exception as e:
        LOGGER.error("cogs_loader: cannot enumerate %s: %r", package_root, e)
        raise

    loaded: List[str] = []
    errors: List[Tuple[str, str]] = []
    for name in names:
        try:
            await _load_one(bot, name)
            loaded.append(name)
        except Exception as e:
            # Only print tracebacks for required cogs; otherwise keep logs clean.
            if name in required:
                LOGGER.error("Failed to load %s: %r", name, e, exc_info=True)
            else:
                LOGGER.error("Failed to load %s: %r", name, e)
            errors.append((name, repr(e)))

    # Fail-closed safety: required cogs must be loaded.
    missing = sorted([c for c in required if c not in loaded])
    if missing:
        summary = "; ".join([f"{n}={err}" for (n, err) in errors[:8]])
        raise RuntimeError(f"Unsafe startup: missing required cogs={missing}. First errors: {summary}")

    return loaded
