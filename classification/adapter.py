"""Analyzer adapters for survey response classification.

Provides a base interface, an adapter for OpenAI-compatible APIs and a
deterministic mock for testing.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from classification.errors import (
    AnalyzerConfigurationError,
    describe_analyzer_failure,
)
from classification.prompt_builder import SYSTEM_INSTRUCTIONS, build_classification_prompt
from classification.schema import Classification
from classification.validator import validate_classification_output

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of analyzing one response: a classification or an error, never both."""

    classification: Optional[Classification] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.classification is None) == (self.error is None):
            raise ValueError("AnalysisOutcome needs exactly one of classification or error.")

    @property
    def ok(self) -> bool:
        return self.classification is not None


class BaseAnalyzer(ABC):
    """Abstract base for all analyzers."""

    @abstractmethod
    def classify(self, text: str) -> Classification:
        """Classify one response text.

        Raises:
            AnalyzerConfigurationError: If the client cannot be used at all.
            Exception: Any transport or validation failure for this text.
        """

    def analyze(self, text: str) -> AnalysisOutcome:
        """Classify *text*, returning failures as values.

        Only ``AnalyzerConfigurationError`` propagates.
        """
        try:
            return AnalysisOutcome(classification=self.classify(text))
        except AnalyzerConfigurationError:
            raise
        except Exception as exc:
            logger.warning("Error analyzing response: %s", exc)
            return AnalysisOutcome(error=describe_analyzer_failure(exc))


class OpenAIAnalyzer(BaseAnalyzer):
    """Analyzer backed by an OpenAI-compatible chat completion API.

    Configured for deterministic, non-streaming JSON output.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1024,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        """Initialise the OpenAI client.

        Raises:
            AnalyzerConfigurationError: If the SDK is missing or no API key is set.
        """
        try:
            from openai import OpenAI  # type: ignore[import-untyped]
        except ImportError as exc:
            raise AnalyzerConfigurationError(
                "openai package is required for OpenAIAnalyzer. "
                "Install it with: pip install openai"
            ) from exc

        if not api_key:
            raise AnalyzerConfigurationError(
                "Analyzer client not initialized. Check API key "
                "(set LLM_API_KEY or OPENAI_API_KEY)."
            )

        client_kwargs: dict = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model
        self._max_tokens = max_tokens

    def classify(self, text: str) -> Classification:
        response = self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": SYSTEM_INSTRUCTIONS},
                {"role": "user", "content": build_classification_prompt(text)},
            ],
            response_format={"type": "json_object"},
            temperature=0,
            max_tokens=self._max_tokens,
            stream=False,
        )
        return validate_classification_output(response.choices[0].message.content or "")


# ---------------------------------------------------------------------------
# Fixed mock classification used for local testing.
# ---------------------------------------------------------------------------
_MOCK_CLASSIFICATION = Classification(
    sentiment="neutral",
    sentiment_score=0.0,
    intent="feedback",
    emotions=[],
    topics=["Overall Experience & Brand Trust", "Overall satisfaction"],
    explanation="Mock classification for testing purposes.",
    confidence=100,
    redacted_excerpt="",
)


class MockAnalyzer(BaseAnalyzer):
    """Deterministic analyzer that returns a fixed classification.

    Used for local testing and CI pipelines where no LLM API is available.
    The redacted excerpt echoes the input text.
    """

    def classify(self, text: str) -> Classification:
        return _MOCK_CLASSIFICATION.model_copy(update={"redacted_excerpt": text or ""})
