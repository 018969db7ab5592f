"""Tests for the provider failover client."""

import json

import httpx
import pytest

from conftest import LANGUAGES, libretranslate_handler
from translator.exceptions import ProviderExhausted, UnsupportedLanguage, ValidationError
from translator.services.providers import FALLBACK_LANGUAGES, Exhausted, Success, split_text


def test_failover_reaches_healthy_endpoint(make_provider, sleeps):
    """A and B fail, C succeeds: the call succeeds and C becomes current."""
    calls = []
    client = make_provider(libretranslate_handler(failing_hosts={"a.test", "b.test"}, calls=calls))

    result = client._translate_chunk("hello", "en", "fr")

    assert result == Success(value="[fr] hello")
    assert [host for host, _ in calls] == ["a.test", "b.test", "c.test"]
    assert client.current_endpoint == "http://c.test"
    assert sleeps == [1.0, 2.0]


def test_rotation_persists_across_calls(make_provider):
    calls = []
    client = make_provider(libretranslate_handler(failing_hosts={"a.test", "b.test"}, calls=calls))
    client._translate_chunk("first", "en", "fr")
    calls.clear()

    client._translate_chunk("second", "en", "fr")

    assert calls == [("c.test", "/translate")]


def test_budget_smaller_than_failing_endpoints_exhausts(make_provider, sleeps):
    client = make_provider(
        libretranslate_handler(failing_hosts={"a.test", "b.test"}),
        max_attempts=2,
    )

    result = client._translate_chunk("hello", "en", "fr")

    assert isinstance(result, Exhausted)
    assert result.attempts == 2
    assert result.last_error == "provider responded with HTTP 503"
    # Pointer moved past both failures, no sleep after the last attempt
    assert client.current_endpoint == "http://c.test"
    assert sleeps == [1.0]


def test_backoff_grows_with_attempt(make_provider, sleeps):
    client = make_provider(
        libretranslate_handler(failing_hosts={"a.test", "b.test", "c.test"}),
        max_attempts=4,
        base_delay=0.5,
    )

    client._translate_chunk("hello", "en", "fr")

    assert sleeps == [0.5, 1.0, 1.5]


def test_translate_raises_exhausted_with_last_error(make_provider):
    def handler(request):
        if request.url.path == "/languages":
            return httpx.Response(200, json=LANGUAGES)
        raise httpx.ConnectError("connection refused", request=request)

    client = make_provider(handler)

    with pytest.raises(ProviderExhausted) as exc_info:
        client.translate("hello", "en", "fr")

    assert exc_info.value.last_error == "provider unreachable (ConnectError)"
    assert "a.test" not in str(exc_info.value)


def test_timeout_counts_as_failure(make_provider):
    def handler(request):
        if request.url.host == "a.test":
            raise httpx.ReadTimeout("timed out", request=request)
        return libretranslate_handler()(request)

    client = make_provider(handler)

    assert client._translate_chunk("hello", "en", "fr") == Success(value="[fr] hello")
    assert client.current_endpoint == "http://b.test"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"unexpected": "shape"}),
        httpx.Response(200, json={"translatedText": ""}),
        httpx.Response(200, content=b"<html>not json</html>"),
    ],
)
def test_malformed_payload_counts_as_failure(make_provider, response):
    def handler(request):
        if request.url.host == "a.test":
            return response
        return libretranslate_handler()(request)

    client = make_provider(handler)

    assert client._translate_chunk("hello", "en", "fr") == Success(value="[fr] hello")


def test_api_key_is_sent(make_provider):
    payloads = []

    def handler(request):
        payloads.append(json.loads(request.content))
        return httpx.Response(200, json={"translatedText": "bonjour"})

    client = make_provider(handler, api_key="secret")
    client._translate_chunk("hello", "en", "fr")

    assert payloads == [{"q": "hello", "source": "en", "target": "fr", "format": "text", "api_key": "secret"}]


def test_supported_languages_cached_after_first_fetch(make_provider):
    calls = []
    client = make_provider(libretranslate_handler(calls=calls))

    assert client.supported_languages() == LANGUAGES
    assert client.supported_languages() == LANGUAGES
    assert calls.count(("a.test", "/languages")) == 1


def test_supported_languages_fallback_is_not_cached(make_provider):
    state = {"up": False}

    def handler(request):
        if not state["up"]:
            return httpx.Response(500)
        return httpx.Response(200, json=LANGUAGES)

    client = make_provider(handler)

    assert client.supported_languages() == FALLBACK_LANGUAGES
    state["up"] = True
    assert client.supported_languages() == LANGUAGES


def test_translate_validates_languages(make_provider):
    client = make_provider(libretranslate_handler())

    with pytest.raises(UnsupportedLanguage):
        client.translate("hello", "en", "xx")
    with pytest.raises(UnsupportedLanguage):
        client.translate("hello", "xx", "fr")
    with pytest.raises(UnsupportedLanguage):
        client.translate("hello", "en", "auto")


def test_translate_accepts_auto_source(make_provider):
    client = make_provider(libretranslate_handler())

    assert client.translate("hello", "auto", "fr") == "[fr] hello"


def test_validation_uses_fallback_list_when_languages_unreachable(make_provider):
    def handler(request):
        if request.url.path == "/languages":
            return httpx.Response(502)
        return httpx.Response(200, json={"translatedText": "ciao"})

    client = make_provider(handler)

    assert client.translate("hello", "en", "it") == "ciao"
    with pytest.raises(UnsupportedLanguage):
        client.translate("hello", "en", "sv")


def test_translate_rejects_empty_text(make_provider):
    client = make_provider(libretranslate_handler())

    with pytest.raises(ValidationError):
        client.translate("   ", "en", "fr")


def test_detect_normalizes_percentage_confidence(make_provider):
    client = make_provider(libretranslate_handler())

    result = client.detect("Bonjour tout le monde")

    assert result.language == "fr"
    assert result.confidence == pytest.approx(0.92)
    assert not result.degraded


def test_detect_degrades_when_exhausted(make_provider):
    client = make_provider(lambda request: httpx.Response(503))

    result = client.detect("Bonjour tout le monde")

    assert result.degraded
    assert result.language == "en"
    assert result.confidence == 0.1


def test_requires_endpoints():
    with pytest.raises(ValueError):
        from translator.services.providers import ProviderClient

        ProviderClient(endpoints=[])


def _sentences(total_length):
    sentence = "This is a sentence about translation. "
    text = sentence * (total_length // len(sentence) + 1)
    return text[:total_length]


def test_split_text_respects_limit_and_boundaries():
    text = _sentences(1200)

    chunks = split_text(text, 450)

    assert len(chunks) >= 3
    assert all(len(chunk) <= 450 for chunk in chunks)
    # Every chunk except the last ends at a sentence boundary
    assert all(chunk.endswith(".") for chunk in chunks[:-1])


def test_split_text_cuts_oversized_sentence():
    text = "word " * 200

    chunks = split_text(text, 100)

    assert all(len(chunk) <= 100 for chunk in chunks)
    assert " ".join(chunks).split() == text.split()


def test_split_text_short_text_is_single_chunk():
    assert split_text("Short text.", 450) == ["Short text."]


def test_long_text_translated_in_order(make_provider, sleeps):
    client = make_provider(libretranslate_handler(translate=lambda p: p["q"].upper()), chunk_delay=0.25)
    text = _sentences(1200)

    result = client.translate(text, "en", "fr")

    chunks = split_text(text, 450)
    assert result == " ".join(chunk.upper() for chunk in chunks)
    assert sleeps == [0.25] * (len(chunks) - 1)


def test_long_text_keeps_original_for_failed_chunk(make_provider):
    def handler(request):
        if request.url.path == "/languages":
            return httpx.Response(200, json=LANGUAGES)
        payload = json.loads(request.content)
        # The second chunk fails on every endpoint
        if payload["q"].startswith("SECOND"):
            return httpx.Response(500)
        return httpx.Response(200, json={"translatedText": "translated"})

    client = make_provider(handler, chunk_limit=40)
    text = "First sentence is right here. SECOND sentence will fail. Third one is fine."

    result = client.translate(text, "en", "fr")

    assert result == "translated SECOND sentence will fail. translated"


@pytest.mark.parametrize("reported,expected", [(92.0, 0.92), (1.0, 0.01), (100, 1.0), (0, 0.0)])
def test_detect_confidence_is_always_a_percentage(make_provider, reported, expected):
    def handler(request):
        return httpx.Response(200, json=[{"language": "de", "confidence": reported}])

    client = make_provider(handler)

    assert client.detect("Guten Tag").confidence == pytest.approx(expected)


def test_health_check_reports_loaded_languages(make_provider):
    client = make_provider(libretranslate_handler())

    health = client.health_check()

    assert health["status"] == "healthy"
    assert health["supported_languages"] == len(LANGUAGES)
    assert health["languages_source"] == "provider"
    assert "a.test" not in json.dumps(health)


def test_health_check_degraded_on_fallback_list(make_provider):
    client = make_provider(lambda request: httpx.Response(503))

    health = client.health_check()

    assert health["status"] == "degraded"
    assert health["supported_languages"] == len(FALLBACK_LANGUAGES)
    assert health["languages_source"] == "fallback"
