# -*- coding: utf-8 -*-
from __future__ import annotations
import os, json
from pathlib import Path

from dotenv import load_dotenv, find_dotenv

_p = find_dotenv(usecwd=True)
if _p: load_dotenv(_p)

ROOT = Path(__file__).resolve().parents[1]
ENV_JSON = ROOT / "config" / "runtime_env.json"

_SENSITIVE_EXACT = {
    "DISCORD_TOKEN", "DEEPL_API_KEY", "GOOGLE_API_KEY",
    "MICROSOFT_TRANSLATOR_KEY", "TRANSLATE_GEMINI_API_KEY",
}
_SENSITIVE_FRAGMENTS = ("API_KEY", "_TOKEN", "_SECRET", "_PASSWORD", "TRANSLATOR_KEY")
_PLACEHOLDERS = ("", "<inherit>", "<placeholder>")

def _load_json(p: Path) -> dict:
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}
    except Exception:
        return {}

def _is_sensitive(name: str) -> bool:
    n = (name or "").upper()
    if n in _SENSITIVE_EXACT: return True
    for frag in _SENSITIVE_FRAGMENTS:
        if frag in n: return True
    return False

def get(key: str, default: str = "") -> str:
    """Read a config value: environment first, then runtime_env.json.

    Secrets (API keys, tokens) are only ever read from the environment.
    """
    k = (key or "").strip().upper()
    if not k:
        return str(default)
    env_v = os.environ.get(k, None)
    if env_v is not None and str(env_v).strip() not in _PLACEHOLDERS:
        return str(env_v).strip()
    if _is_sensitive(k):
        return str(default)
    j = _load_json(ENV_JSON).get(k, None)
    if j is not None and str(j).strip() not in _PLACEHOLDERS:
        return str(j).strip()
    return str(default)

def get_int(key: str, default: int = 0) -> int:
    try:
        return int(float(get(key, str(default))))
    except Exception:
        return int(default)

def get_float(key: str, default: float = 0.0) -> float:
    try:
        return float(get(key, str(default)))
    except Exception:
        return float(default)

def get_bool(key: str, default: bool = False) -> bool:
    s = get(key, "1" if default else "0").lower()
    return s in ("1", "true", "yes", "y", "on")
