"""LibreTranslate-compatible provider client with endpoint failover."""

import logging
import re
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import httpx
from pydantic import BaseModel, ConfigDict

from translator.config import settings
from translator.exceptions import ProviderExhausted, UnsupportedLanguage, ValidationError
from translator.schemas.detection import DetectionResult
from translator.services.detector import DEFAULT_LANGUAGE, MIN_CONFIDENCE

logger = logging.getLogger(__name__)

AUTO_LANGUAGE = "auto"

FALLBACK_LANGUAGES: List[Dict[str, str]] = [
    {"code": "auto", "name": "Detect Language"},
    {"code": "en", "name": "English"},
    {"code": "pt", "name": "Portuguese"},
    {"code": "es", "name": "Spanish"},
    {"code": "fr", "name": "French"},
    {"code": "de", "name": "German"},
    {"code": "it", "name": "Italian"},
    {"code": "ja", "name": "Japanese"},
    {"code": "ko", "name": "Korean"},
    {"code": "zh", "name": "Chinese"},
    {"code": "ru", "name": "Russian"},
]

SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")


class MalformedResponse(ValueError):
    """Provider answered 2xx with a body we cannot use."""


class Success(BaseModel):
    """Attempt sequence ended with a usable value."""

    model_config = ConfigDict(frozen=True)

    value: Any


class Exhausted(BaseModel):
    """Every attempt in the budget failed."""

    model_config = ConfigDict(frozen=True)

    last_error: str
    attempts: int


ProviderResult = Union[Success, Exhausted]


def _parse_translation(body: Any) -> str:
    if not isinstance(body, dict):
        raise MalformedResponse("expected an object")
    translated = body.get("translatedText")
    if not isinstance(translated, str) or not translated.strip():
        raise MalformedResponse("missing translatedText")
    return translated


def _parse_detection(body: Any) -> DetectionResult:
    if not isinstance(body, list) or not body or not isinstance(body[0], dict):
        raise MalformedResponse("expected a non-empty list of detections")
    language = body[0].get("language")
    confidence = body[0].get("confidence")
    if not isinstance(language, str) or not language:
        raise MalformedResponse("missing language")
    try:
        confidence = float(confidence)
    except (TypeError, ValueError):
        raise MalformedResponse("missing confidence") from None
    # LibreTranslate reports confidence as a percentage
    return DetectionResult(
        language=language,
        confidence=max(0.0, min(confidence / 100, 1.0)),
        provider=settings.PROVIDER_NAME,
    )


def _parse_languages(body: Any) -> List[Dict[str, str]]:
    if not isinstance(body, list) or not body:
        raise MalformedResponse("expected a non-empty list of languages")
    languages = []
    for entry in body:
        if not isinstance(entry, dict) or not entry.get("code"):
            raise MalformedResponse("language entry without code")
        languages.append({"code": str(entry["code"]), "name": str(entry.get("name") or entry["code"])})
    return languages


def split_text(text: str, max_length: int) -> List[str]:
    """
    Split text into chunks of at most max_length characters.

    Chunks are cut at sentence boundaries where possible. A sentence longer
    than the limit is cut at whitespace, and a single word longer than the
    limit is cut hard.

    Args:
        text: Text to split
        max_length: Maximum characters per chunk

    Returns:
        Chunks in original order
    """
    if max_length <= 0:
        raise ValueError("max_length must be positive")

    text = text.strip()
    if len(text) <= max_length:
        return [text] if text else []

    pieces: List[str] = []
    for sentence in SENTENCE_BOUNDARY_RE.split(text):
        sentence = sentence.strip()
        if not sentence:
            continue
        if len(sentence) <= max_length:
            pieces.append(sentence)
            continue
        for word in sentence.split():
            while len(word) > max_length:
                pieces.append(word[:max_length])
                word = word[max_length:]
            if word:
                pieces.append(word)

    chunks: List[str] = []
    current = ""
    for piece in pieces:
        if not current:
            current = piece
        elif len(current) + 1 + len(piece) <= max_length:
            current = f"{current} {piece}"
        else:
            chunks.append(current)
            current = piece
    if current:
        chunks.append(current)

    return chunks


class ProviderClient:
    """
    Client for a pool of interchangeable LibreTranslate-compatible endpoints.

    The client keeps one current-endpoint index for its whole lifetime. A
    failed attempt moves the index to the next endpoint for every later
    call, so endpoints that failed once are tried last.
    """

    def __init__(
        self,
        endpoints: Sequence[str],
        max_attempts: int = 3,
        base_delay: float = 1.0,
        timeout: float = 30.0,
        api_key: Optional[str] = None,
        chunk_limit: int = 450,
        chunk_delay: float = 0.5,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the provider client."""
        if not endpoints:
            raise ValueError("At least one provider endpoint is required")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.endpoints = [endpoint.rstrip("/") for endpoint in endpoints]
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.api_key = api_key
        self.chunk_limit = chunk_limit
        self.chunk_delay = chunk_delay
        self.current_index = 0

        self._sleep = sleep
        self._lock = threading.RLock()
        self._supported_languages: Optional[List[Dict[str, str]]] = None
        self._http = http_client or httpx.Client(
            timeout=timeout,
            headers={"User-Agent": "TranslatorApp/1.0"},
        )

    @classmethod
    def from_settings(cls) -> "ProviderClient":
        """Build a client from application settings."""
        return cls(
            endpoints=settings.provider_endpoints,
            max_attempts=settings.PROVIDER_MAX_ATTEMPTS,
            base_delay=settings.PROVIDER_BASE_DELAY,
            timeout=settings.PROVIDER_TIMEOUT,
            api_key=settings.PROVIDER_API_KEY,
            chunk_limit=settings.PROVIDER_CHUNK_LIMIT,
            chunk_delay=settings.PROVIDER_CHUNK_DELAY,
        )

    @property
    def current_endpoint(self) -> str:
        return self.endpoints[self.current_index]

    def close(self):
        self._http.close()

    def _rotate(self):
        self.current_index = (self.current_index + 1) % len(self.endpoints)
        logger.info(f"Switching to provider endpoint #{self.current_index}")

    def _attempt(self, endpoint: str, method: str, path: str, payload: Optional[Dict], parse) -> ProviderResult:
        """Run one request against one endpoint; failures come back as Exhausted."""
        try:
            if method == "GET":
                response = self._http.get(f"{endpoint}{path}")
            else:
                response = self._http.post(f"{endpoint}{path}", json=payload)
            response.raise_for_status()
            return Success(value=parse(response.json()))
        except httpx.TimeoutException:
            error = "provider request timed out"
        except httpx.HTTPStatusError as e:
            error = f"provider responded with HTTP {e.response.status_code}"
        except httpx.RequestError as e:
            error = f"provider unreachable ({type(e).__name__})"
        except MalformedResponse as e:
            error = f"malformed provider response: {e}"
        except ValueError:
            error = "malformed provider response: invalid JSON"
        return Exhausted(last_error=error, attempts=1)

    def _request(self, method: str, path: str, payload: Optional[Dict], parse) -> ProviderResult:
        """
        Run a request with failover across endpoints.

        Each failure rotates the current endpoint and waits
        attempt * base_delay before the next attempt.

        Returns:
            Success with the parsed value, or Exhausted with the last error
        """
        if payload is not None and self.api_key:
            payload = {**payload, "api_key": self.api_key}

        last_error = "no attempt made"
        for attempt in range(1, self.max_attempts + 1):
            with self._lock:
                index = self.current_index
                endpoint = self.endpoints[index]

            logger.info(f"Provider request {method} {path} on endpoint #{index} (attempt {attempt}/{self.max_attempts})")
            result = self._attempt(endpoint, method, path, payload, parse)
            if isinstance(result, Success):
                return result

            last_error = result.last_error
            logger.warning(f"Attempt {attempt} on endpoint #{index} failed: {last_error}")

            with self._lock:
                # Another thread may already have moved past this endpoint
                if self.current_index == index:
                    self._rotate()

            if attempt < self.max_attempts:
                self._sleep(attempt * self.base_delay)

        return Exhausted(last_error=last_error, attempts=self.max_attempts)

    def supported_languages(self) -> List[Dict[str, str]]:
        """
        Languages reported by the providers.

        The first successful fetch is cached for the client's lifetime. When
        the fetch fails the built-in fallback list is returned and nothing
        is cached.
        """
        with self._lock:
            if self._supported_languages is not None:
                return self._supported_languages

        result = self._request("GET", "/languages", None, _parse_languages)
        if isinstance(result, Exhausted):
            logger.warning(f"Could not fetch supported languages, using fallback list: {result.last_error}")
            return FALLBACK_LANGUAGES

        with self._lock:
            self._supported_languages = result.value
        logger.info(f"Loaded {len(result.value)} supported languages")
        return result.value

    def health_check(self) -> Dict[str, Any]:
        """
        Report provider status from the supported-language fetch.

        The client is degraded while it serves the fallback language list.
        Endpoint addresses are never included.
        """
        languages = self.supported_languages()
        with self._lock:
            loaded = self._supported_languages is not None
            index = self.current_index
        return {
            "status": "healthy" if loaded else "degraded",
            "provider": settings.PROVIDER_NAME,
            "supported_languages": len(languages),
            "languages_source": "provider" if loaded else "fallback",
            "endpoint_index": index,
        }

    def validate_languages(self, source: str, target: str):
        """
        Check a language pair against the supported set.

        Raises:
            UnsupportedLanguage: If either code is not supported
        """
        codes = {language["code"].lower() for language in self.supported_languages()}
        source = source.lower()
        target = target.lower()

        if source != AUTO_LANGUAGE and source not in codes:
            raise UnsupportedLanguage(f"Unsupported source language: {source}")
        if target == AUTO_LANGUAGE or target not in codes:
            raise UnsupportedLanguage(f"Unsupported target language: {target}")

    def _translate_chunk(self, text: str, source: str, target: str) -> ProviderResult:
        payload = {"q": text, "source": source, "target": target, "format": "text"}
        return self._request("POST", "/translate", payload, _parse_translation)

    def translate(self, text: str, source: str, target: str) -> str:
        """
        Translate text, failing over between endpoints.

        Args:
            text: Text to translate
            source: Source language code or 'auto'
            target: Target language code

        Returns:
            Translated text

        Raises:
            ValidationError: If text is empty
            UnsupportedLanguage: If the language pair is not supported
            ProviderExhausted: If every attempt failed
        """
        if not text or not text.strip():
            raise ValidationError("Text to translate cannot be empty")

        self.validate_languages(source, target)

        if len(text) > self.chunk_limit:
            return self.translate_long_text(text, source, target)

        logger.info(f"Translating {len(text)} chars from {source} to {target}")
        result = self._translate_chunk(text, source, target)
        if isinstance(result, Exhausted):
            raise ProviderExhausted(last_error=result.last_error, attempts=result.attempts)
        return result.value

    def translate_long_text(self, text: str, source: str, target: str) -> str:
        """
        Translate text above the chunk limit piece by piece.

        A chunk whose attempts are exhausted keeps its original text so the
        rest of the translation is not lost.
        """
        chunks = split_text(text, self.chunk_limit)
        logger.info(f"Translating long text in {len(chunks)} chunks")

        translated: List[str] = []
        for i, chunk in enumerate(chunks):
            result = self._translate_chunk(chunk, source, target)
            if isinstance(result, Success):
                translated.append(result.value)
            else:
                logger.error(f"Chunk {i + 1}/{len(chunks)} failed, keeping original text: {result.last_error}")
                translated.append(chunk)

            if i < len(chunks) - 1:
                self._sleep(self.chunk_delay)

        return " ".join(translated)

    def detect(self, text: str) -> DetectionResult:
        """
        Detect the language of text.

        Detection is best-effort: when every attempt fails a degraded
        default result is returned instead of raising.
        """
        if not text or not text.strip():
            return DetectionResult(language=DEFAULT_LANGUAGE, confidence=MIN_CONFIDENCE, degraded=True)

        result = self._request("POST", "/detect", {"q": text}, _parse_detection)
        if isinstance(result, Exhausted):
            logger.warning(f"Language detection degraded to default: {result.last_error}")
            return DetectionResult(
                language=DEFAULT_LANGUAGE,
                confidence=MIN_CONFIDENCE,
                provider=settings.PROVIDER_NAME,
                degraded=True,
            )
        return result.value
