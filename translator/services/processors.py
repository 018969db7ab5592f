"""Processors turning a queue message into job result fields."""

import logging
from typing import Any, Dict, Optional

from translator.config import settings
from translator.models.job import JobKind
from translator.schemas.messages import DetectionMessage, TranslationMessage
from translator.services.detector import detect_language
from translator.services.providers import ProviderClient

logger = logging.getLogger(__name__)


class TranslationProcessor:
    """Translates message text through the provider pool."""

    kind = JobKind.TRANSLATION

    def __init__(self, provider: ProviderClient, provider_name: str = None):
        self.provider = provider
        self.provider_name = provider_name or settings.PROVIDER_NAME

    def process(self, message: TranslationMessage) -> Dict[str, Any]:
        """
        Translate the message text.

        Raises:
            ProviderExhausted: If every provider attempt failed
            UnsupportedLanguage: If the language pair is not supported
        """
        translated = self.provider.translate(message.text, message.source_lang, message.target_lang)
        return {"result_text": translated, "provider": self.provider_name}


class DetectionProcessor:
    """Detects the language of message text."""

    kind = JobKind.DETECTION

    def __init__(self, provider: Optional[ProviderClient] = None, use_provider: bool = False):
        self.provider = provider
        self.use_provider = use_provider and provider is not None

    def process(self, message: DetectionMessage) -> Dict[str, Any]:
        """Detect the language; falls back to the heuristic and never raises for provider failures."""
        result = None
        if self.use_provider:
            result = self.provider.detect(message.text)
            if result.degraded:
                logger.warning(f"Provider detection unavailable for job {message.id}, using heuristic")
                result = None

        if result is None:
            result = detect_language(message.text)

        return {
            "detected_language": result.language,
            "confidence": result.confidence,
            "provider": result.provider,
        }
