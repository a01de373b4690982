"""
Translation pipeline for hoyaku: language table, providers, facade, fan-out.
"""
from .langs import LangProfile, LANG_PROFILES, normalize_code
from .errors import AllProvidersFailure, DetectionFailure, ProviderFailure, TranslateError

__all__ = [
    "LangProfile",
    "LANG_PROFILES",
    "normalize_code",
    "AllProvidersFailure",
    "DetectionFailure",
    "ProviderFailure",
    "TranslateError",
]
