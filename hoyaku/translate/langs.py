from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class LangProfile:
    code: str
    display: str
    # provider column -> provider-specific code; None means the provider can't target it
    providers: Dict[str, Optional[str]] = field(default_factory=dict)
    aliases: List[str] = field(default_factory=list)


def _p(code: str, display: str, deepl: Optional[str], google: str, microsoft: str, *aliases: str) -> LangProfile:
    return LangProfile(
        code,
        display,
        {"deepl": deepl, "google": google, "microsoft": microsoft, "gemini": display},
        [code.lower(), *aliases],
    )


LANG_PROFILES: Dict[str, LangProfile] = {
    "en": _p("en", "English", "EN", "en", "en", "en-us", "en-gb", "english"),
    "zh-TW": _p("zh-TW", "Traditional Chinese", "ZH", "zh-TW", "zh-Hant", "zh-hant", "traditional chinese"),
    "zh-CN": _p("zh-CN", "Simplified Chinese", "ZH", "zh-CN", "zh-Hans", "zh-hans", "zh", "chinese", "mandarin"),
    "ja": _p("ja", "Japanese", "JA", "ja", "ja", "ja-jp", "jp", "japanese"),
    "ko": _p("ko", "Korean", "KO", "ko", "ko", "ko-kr", "kr", "korean"),
    "fr": _p("fr", "French", "FR", "fr", "fr", "french"),
    "de": _p("de", "German", "DE", "de", "de", "german"),
    "es": _p("es", "Spanish", "ES", "es", "es", "spanish"),
    "it": _p("it", "Italian", "IT", "it", "it", "italian"),
    "ru": _p("ru", "Russian", "RU", "ru", "ru", "russian"),
    "pt": _p("pt", "Portuguese", "PT", "pt", "pt", "portuguese"),
    "nl": _p("nl", "Dutch", "NL", "nl", "nl", "dutch"),
    "pl": _p("pl", "Polish", "PL", "pl", "pl", "polish"),
    "ar": _p("ar", "Arabic", None, "ar", "ar", "arabic"),
    "hi": _p("hi", "Hindi", None, "hi", "hi", "hindi"),
    "th": _p("th", "Thai", None, "th", "th", "thai"),
    "vi": _p("vi", "Vietnamese", None, "vi", "vi", "vietnamese"),
    "tr": _p("tr", "Turkish", "TR", "tr", "tr", "turkish"),
}

# Reverse lookup for codes that providers hand back from detection.
_FROM_PROVIDER: Dict[str, str] = {}
for _prof in LANG_PROFILES.values():
    for _col, _val in _prof.providers.items():
        if _val and _col != "gemini":
            _FROM_PROVIDER.setdefault(_val.lower(), _prof.code)
    for _alias in _prof.aliases:
        _FROM_PROVIDER.setdefault(_alias.lower(), _prof.code)
# "zh" alone is ambiguous between scripts; detectors return it for Simplified.
_FROM_PROVIDER["zh"] = "zh-CN"


def provider_code(lang: str, column: str, *, passthrough: bool = True) -> Optional[str]:
    """Map an internal code to a provider's code.

    Codes listed in the table map through the provider column (None when that
    provider lacks the language). Codes absent from the table pass through
    unchanged unless ``passthrough`` is False.
    """
    prof = LANG_PROFILES.get(lang)
    if prof is None:
        return lang if passthrough else None
    return prof.providers.get(column)


def normalize_code(code: str) -> str:
    """Map any provider/alias code back to the internal code; unknown codes pass through."""
    c = (code or "").strip()
    if not c:
        return c
    if c in LANG_PROFILES:
        return c
    return _FROM_PROVIDER.get(c.lower(), c)


def macro_language(code: str) -> str:
    return normalize_code(code).split("-", 1)[0].lower()


def same_macro_language(a: str, b: str) -> bool:
    """True for variants of one macro-language, e.g. zh-CN / zh-TW."""
    if not a or not b:
        return False
    return macro_language(a) == macro_language(b)
