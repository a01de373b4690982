"""
Provider facade: one ``detect`` / ``translate`` contract over a fixed,
priority-ordered provider chain.

- Disabled providers (no credentials) are skipped silently.
- Providers that can't target the requested language are skipped.
- The first success wins; each failure is logged once and the next
  provider is tried.
- Language codes are normalized once before dispatch; unknown codes pass
  through unchanged.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import httpx

from hoyaku.translate.errors import AllProvidersFailure, DetectionFailure, ProviderFailure
from hoyaku.translate.langs import normalize_code
from hoyaku.translate.providers import TranslationProvider, build_default_providers

log = logging.getLogger(__name__)


class ProviderFacade:
    def __init__(self, providers: Iterable[TranslationProvider]):
        self.providers: List[TranslationProvider] = list(providers)

    def available(self) -> List[str]:
        return [p.name for p in self.providers if p.enabled]

    def detectors(self) -> List[TranslationProvider]:
        return [p for p in self.providers if p.enabled and p.supports_detection]

    async def detect(self, text: str) -> str:
        detectors = self.detectors()
        if not detectors:
            raise DetectionFailure("no detector available")

        errors: List[str] = []
        for p in detectors:
            try:
                lang = await p.detect(text)
            except Exception as e:
                err = _describe(p, e)
                errors.append(err)
                log.warning("[translate] detect failed via=%s err=%s", p.name, err)
                continue
            if lang:
                log.debug("[translate] detected lang=%s via=%s", lang, p.name)
                return lang
            errors.append(f"{p.name}: empty detection result")
        raise DetectionFailure("all language detectors failed", errors)

    async def translate(self, text: str, target_lang: str, source_lang: Optional[str] = None) -> str:
        target = normalize_code(target_lang)
        source = normalize_code(source_lang) if source_lang else None

        errors: List[str] = []
        for p in self.providers:
            if not p.enabled:
                continue
            if not p.supports(target):
                log.debug("[translate] skip via=%s: no code for lang=%s", p.name, target)
                continue
            try:
                out = await p.translate(text, target, source)
            except Exception as e:
                err = _describe(p, e)
                errors.append(err)
                log.warning("[translate] provider failed via=%s lang=%s err=%s", p.name, target, err)
                continue
            return out
        raise AllProvidersFailure(errors)


def _describe(p: TranslationProvider, e: BaseException) -> str:
    if isinstance(e, ProviderFailure):
        return str(e)
    return f"{p.name}: {type(e).__name__}: {e}"


def build_default_facade(*, transport: Optional[httpx.AsyncBaseTransport] = None) -> ProviderFacade:
    return ProviderFacade(build_default_providers(transport=transport))
