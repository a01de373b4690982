"""
Translation backends.

Each provider carries its own credentials, language column and request shape.
The facade only sees the common surface: ``enabled``, ``supports``,
``supports_detection``, ``translate`` and ``detect``. Any failure inside a
provider is raised as ``ProviderFailure`` so the facade can fall back.

Secrets (.env only):
  DEEPL_API_KEY=...
  GOOGLE_API_KEY=...
  MICROSOFT_TRANSLATOR_KEY=...
  TRANSLATE_GEMINI_API_KEY=...

Optional configs (runtime_env.json or env):
  DEEPL_API_URL=https://api-free.deepl.com/v2/translate
  MICROSOFT_TRANSLATOR_REGION=global
  TRANSLATE_GEMINI_MODEL=gemini-2.5-flash-lite
  TRANSLATE_TIMEOUT_SEC=15
"""
from __future__ import annotations

import logging
import re
import uuid
from typing import Any, Dict, List, Optional

import httpx

from hoyaku.helpers import env_reader as _er
from hoyaku.translate.errors import ProviderFailure
from hoyaku.translate.langs import normalize_code, provider_code

log = logging.getLogger(__name__)


def _short(body: str, limit: int = 200) -> str:
    return re.sub(r"\s+", " ", body or "").strip()[:limit]


class TranslationProvider:
    """Base provider: credential gate + language column + HTTP plumbing."""

    name = "base"
    column = ""
    supports_detection = False
    # DeepL publishes a closed list; the others accept codes we don't know about.
    passthrough_unknown = True

    def __init__(
        self,
        api_key: str = "",
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = (api_key or "").strip()
        self.timeout = float(timeout)
        self._transport = transport

    def __repr__(self) -> str:
        return f"<{type(self).__name__} enabled={self.enabled}>"

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def code_for(self, lang: str) -> Optional[str]:
        return provider_code(lang, self.column, passthrough=self.passthrough_unknown)

    def supports(self, lang: str) -> bool:
        return self.code_for(lang) is not None

    async def translate(self, text: str, target: str, source: Optional[str] = None) -> str:
        raise NotImplementedError

    async def detect(self, text: str) -> str:
        raise ProviderFailure(self.name, "language detection not supported")

    async def _post(
        self,
        url: str,
        *,
        json: Any,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(url, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderFailure(self.name, f"request failed: {type(e).__name__}: {e}") from e
        if r.status_code >= 400:
            raise ProviderFailure(self.name, f"HTTP {r.status_code}: {_short(r.text)}")
        try:
            return r.json()
        except ValueError as e:
            raise ProviderFailure(self.name, f"invalid JSON: {_short(r.text)}") from e


class DeepLProvider(TranslationProvider):
    name = "DeepL"
    column = "deepl"
    passthrough_unknown = False

    def __init__(self, api_key: str = "", *, base_url: str = "https://api-free.deepl.com/v2/translate", **kw: Any):
        super().__init__(api_key, **kw)
        self.base_url = base_url

    async def translate(self, text: str, target: str, source: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {"text": [text], "target_lang": self.code_for(target)}
        headers = {"Authorization": f"DeepL-Auth-Key {self.api_key}"}
        j = await self._post(self.base_url, json=payload, headers=headers)
        try:
            return str(j["translations"][0]["text"])
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(self.name, f"unexpected response shape: {e!r}") from e


class GoogleProvider(TranslationProvider):
    name = "Google"
    column = "google"
    supports_detection = True

    def __init__(self, api_key: str = "", *, base_url: str = "https://translation.googleapis.com/language/translate/v2", **kw: Any):
        super().__init__(api_key, **kw)
        self.base_url = base_url.rstrip("/")

    async def translate(self, text: str, target: str, source: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {"q": text, "target": self.code_for(target), "format": "text"}
        if source:
            src = provider_code(source, self.column)
            if src:
                payload["source"] = src
        j = await self._post(self.base_url, json=payload, params={"key": self.api_key})
        try:
            return str(j["data"]["translations"][0]["translatedText"])
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(self.name, f"unexpected response shape: {e!r}") from e

    async def detect(self, text: str) -> str:
        j = await self._post(f"{self.base_url}/detect", json={"q": text}, params={"key": self.api_key})
        try:
            lang = str(j["data"]["detections"][0][0]["language"])
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(self.name, f"unexpected response shape: {e!r}") from e
        return normalize_code(lang)


class MicrosoftProvider(TranslationProvider):
    name = "Microsoft"
    column = "microsoft"
    supports_detection = True

    def __init__(
        self,
        api_key: str = "",
        *,
        region: str = "global",
        base_url: str = "https://api.cognitive.microsofttranslator.com",
        **kw: Any,
    ):
        super().__init__(api_key, **kw)
        self.region = region or "global"
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {
            "Ocp-Apim-Subscription-Key": self.api_key,
            "Ocp-Apim-Subscription-Region": self.region,
            "X-ClientTraceId": str(uuid.uuid4()),
        }

    async def translate(self, text: str, target: str, source: Optional[str] = None) -> str:
        params = {"api-version": "3.0", "to": self.code_for(target) or target}
        if source:
            src = provider_code(source, self.column)
            if src:
                params["from"] = src
        j = await self._post(f"{self.base_url}/translate", json=[{"text": text}], params=params, headers=self._headers())
        try:
            return str(j[0]["translations"][0]["text"])
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(self.name, f"unexpected response shape: {e!r}") from e

    async def detect(self, text: str) -> str:
        j = await self._post(
            f"{self.base_url}/detect",
            json=[{"text": text}],
            params={"api-version": "3.0"},
            headers=self._headers(),
        )
        try:
            lang = str(j[0]["language"])
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(self.name, f"unexpected response shape: {e!r}") from e
        return normalize_code(lang)


class GeminiProvider(TranslationProvider):
    """LLM fallback. Translate-only; never used for detection."""

    name = "Gemini"
    column = "gemini"

    def __init__(self, api_key: str = "", *, model: str = "gemini-2.5-flash-lite", **kw: Any):
        super().__init__(api_key, **kw)
        self.model = (model or "gemini-2.5-flash-lite").strip()

    async def translate(self, text: str, target: str, source: Optional[str] = None) -> str:
        target_name = self.code_for(target)
        prompt = (
            f"You are a translation engine. Translate the text to {target_name}. "
            "Return ONLY the translated text. Preserve line breaks. Do not add commentary.\n\n"
            f"TEXT:\n{text}"
        )
        url = f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.2, "topP": 0.9, "maxOutputTokens": 2048},
        }
        j = await self._post(url, json=payload, params={"key": self.api_key})
        cand = ((j or {}).get("candidates") or [{}])[0]
        parts = (cand.get("content") or {}).get("parts") or []
        out = "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict))
        out = _clean_output(out)
        if not out:
            raise ProviderFailure(self.name, "empty response")
        return out


def _clean_output(s: str) -> str:
    s = (s or "").strip()
    # strip code fences if model adds them
    if s.startswith("```"):
        s = re.sub(r"^```[a-zA-Z0-9_-]*\n?", "", s)
        s = re.sub(r"\n?```$", "", s)
    return s.strip()


def build_default_providers(*, transport: Optional[httpx.AsyncBaseTransport] = None) -> List[TranslationProvider]:
    """Priority order: DeepL, Google, Microsoft, Gemini."""
    timeout = max(1.0, _er.get_float("TRANSLATE_TIMEOUT_SEC", 15.0))
    providers: List[TranslationProvider] = [
        DeepLProvider(
            _er.get("DEEPL_API_KEY"),
            base_url=_er.get("DEEPL_API_URL", "https://api-free.deepl.com/v2/translate"),
            timeout=timeout,
            transport=transport,
        ),
        GoogleProvider(_er.get("GOOGLE_API_KEY"), timeout=timeout, transport=transport),
        MicrosoftProvider(
            _er.get("MICROSOFT_TRANSLATOR_KEY"),
            region=_er.get("MICROSOFT_TRANSLATOR_REGION", "global"),
            timeout=timeout,
            transport=transport,
        ),
        GeminiProvider(
            _er.get("TRANSLATE_GEMINI_API_KEY"),
            model=_er.get("TRANSLATE_GEMINI_MODEL", "gemini-2.5-flash-lite"),
            timeout=timeout,
            transport=transport,
        ),
    ]
    log.info("[translate] providers %s", ", ".join(f"{p.name}={'on' if p.enabled else 'off'}" for p in providers))
    return providers
