import asyncio
import json
import logging

import httpx
import pytest

from hoyaku.translate.errors import AllProvidersFailure, DetectionFailure, ProviderFailure
from hoyaku.translate.facade import ProviderFacade
from hoyaku.translate.providers import (
    DeepLProvider,
    GeminiProvider,
    GoogleProvider,
    MicrosoftProvider,
    TranslationProvider,
)


def _transport(handler, seen=None):
    def wrapped(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return handler(request)

    return httpx.MockTransport(wrapped)


def test_deepl_request_shape():
    seen = []

    def handler(request):
        return httpx.Response(200, json={"translations": [{"text": "こんにちは"}]})

    p = DeepLProvider("dl-key", transport=_transport(handler, seen))
    out = asyncio.run(p.translate("Hello", "ja", "en"))
    assert out == "こんにちは"
    req = seen[0]
    assert req.headers["Authorization"] == "DeepL-Auth-Key dl-key"
    assert json.loads(req.content) == {"text": ["Hello"], "target_lang": "JA"}


def test_deepl_only_targets_listed_languages():
    p = DeepLProvider("k")
    assert p.supports("fr")
    assert not p.supports("ar")
    assert not p.supports("sv")
    assert GoogleProvider("k").supports("sv")


def test_google_translate_and_detect():
    seen = []

    def handler(request):
        if request.url.path.endswith("/detect"):
            return httpx.Response(200, json={"data": {"detections": [[{"language": "zh"}]]}})
        return httpx.Response(200, json={"data": {"translations": [{"translatedText": "Bonjour"}]}})

    p = GoogleProvider("g-key", transport=_transport(handler, seen))
    assert asyncio.run(p.translate("Hello", "fr", "en")) == "Bonjour"
    assert asyncio.run(p.detect("你好")) == "zh-CN"

    body = json.loads(seen[0].content)
    assert body == {"q": "Hello", "target": "fr", "format": "text", "source": "en"}
    assert seen[0].url.params["key"] == "g-key"
    assert seen[1].url.path.endswith("/detect")


def test_microsoft_translate_and_detect():
    seen = []

    def handler(request):
        if request.url.path.endswith("/detect"):
            return httpx.Response(200, json=[{"language": "zh-Hant", "score": 1.0}])
        return httpx.Response(200, json=[{"translations": [{"text": "你好", "to": "zh-Hant"}]}])

    p = MicrosoftProvider("ms-key", region="eastasia", transport=_transport(handler, seen))
    assert asyncio.run(p.translate("Hello", "zh-TW", "en")) == "你好"
    assert asyncio.run(p.detect("你好")) == "zh-TW"

    req = seen[0]
    assert req.url.params["to"] == "zh-Hant"
    assert req.url.params["from"] == "en"
    assert req.url.params["api-version"] == "3.0"
    assert req.headers["Ocp-Apim-Subscription-Key"] == "ms-key"
    assert req.headers["Ocp-Apim-Subscription-Region"] == "eastasia"
    assert json.loads(req.content) == [{"text": "Hello"}]


def test_gemini_strips_code_fences():
    def handler(request):
        text = "```text\nBonjour\n```"
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})

    p = GeminiProvider("gm-key", transport=_transport(handler))
    assert asyncio.run(p.translate("Hello", "fr")) == "Bonjour"
    assert not p.supports_detection


def test_gemini_empty_output_is_a_failure():
    def handler(request):
        return httpx.Response(200, json={"candidates": []})

    p = GeminiProvider("gm-key", transport=_transport(handler))
    with pytest.raises(ProviderFailure):
        asyncio.run(p.translate("Hello", "fr"))


def test_http_error_becomes_provider_failure():
    def handler(request):
        return httpx.Response(503, text="upstream down")

    p = GoogleProvider("g-key", transport=_transport(handler))
    with pytest.raises(ProviderFailure) as ei:
        asyncio.run(p.translate("Hello", "fr"))
    assert "HTTP 503" in str(ei.value)
    assert str(ei.value).startswith("Google: ")


def test_malformed_body_becomes_provider_failure():
    def handler(request):
        return httpx.Response(200, json={"unexpected": True})

    p = DeepLProvider("k", transport=_transport(handler))
    with pytest.raises(ProviderFailure):
        asyncio.run(p.translate("Hello", "fr"))


def test_transport_error_becomes_provider_failure():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    p = MicrosoftProvider("k", transport=_transport(handler))
    with pytest.raises(ProviderFailure):
        asyncio.run(p.translate("Hello", "fr"))


def test_chain_falls_through_to_microsoft(caplog):
    def handler(request):
        host = request.url.host
        if host == "translation.googleapis.com":
            return httpx.Response(500, text="boom")
        if host == "api.cognitive.microsofttranslator.com":
            return httpx.Response(200, json=[{"translations": [{"text": "Bonjour"}]}])
        raise AssertionError(f"unexpected call to {host}")

    t = _transport(handler)
    facade = ProviderFacade(
        [
            DeepLProvider("", transport=t),
            GoogleProvider("g", transport=t),
            MicrosoftProvider("m", transport=t),
            GeminiProvider("", transport=t),
        ]
    )
    with caplog.at_level(logging.WARNING, logger="hoyaku.translate.facade"):
        out = asyncio.run(facade.translate("Hello", "fr", "en"))

    assert out == "Bonjour"
    failures = [r.getMessage() for r in caplog.records if r.name == "hoyaku.translate.facade"]
    assert len(failures) == 1
    assert "Google" in failures[0]
    assert "DeepL" not in failures[0]


class _Stub(TranslationProvider):
    column = "google"

    def __init__(self, name, *, result=None, error=None, detects=None, enabled=True):
        super().__init__("key" if enabled else "")
        self.name = name
        self.result = result
        self.error = error
        self.detects = detects
        self.supports_detection = detects is not None
        self.calls = 0

    async def translate(self, text, target, source=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result

    async def detect(self, text):
        if isinstance(self.detects, Exception):
            raise self.detects
        return self.detects


def test_first_success_wins():
    a = _Stub("A", result="one")
    b = _Stub("B", result="two")
    assert asyncio.run(ProviderFacade([a, b]).translate("x", "fr")) == "one"
    assert b.calls == 0


def test_all_failures_are_aggregated():
    a = _Stub("A", error=ProviderFailure("A", "quota"))
    b = _Stub("B", error=RuntimeError("socket closed"))
    with pytest.raises(AllProvidersFailure) as ei:
        asyncio.run(ProviderFacade([a, b]).translate("x", "fr"))
    assert ei.value.errors == ["A: quota", "B: RuntimeError: socket closed"]
    assert "all translation providers failed" in str(ei.value)


def test_no_enabled_provider():
    with pytest.raises(AllProvidersFailure) as ei:
        asyncio.run(ProviderFacade([_Stub("A", result="x", enabled=False)]).translate("x", "fr"))
    assert ei.value.errors == []
    assert ProviderFacade([_Stub("A", enabled=False)]).available() == []


def test_detect_falls_back_and_reports():
    bad = _Stub("A", detects=ProviderFailure("A", "HTTP 500: x"))
    good = _Stub("B", detects="ja")
    assert asyncio.run(ProviderFacade([bad, good]).detect("こんにちは")) == "ja"

    with pytest.raises(DetectionFailure) as ei:
        asyncio.run(ProviderFacade([bad]).detect("こんにちは"))
    assert ei.value.errors == ["A: HTTP 500: x"]

    with pytest.raises(DetectionFailure):
        asyncio.run(ProviderFacade([_Stub("C", result="x")]).detect("x"))
