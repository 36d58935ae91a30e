"""Analyzer error types and user-facing failure messages."""

import re
from typing import List

RATE_LIMIT_MESSAGE = (
    "API rate limit was reached. The process is being slowed down automatically. "
    "If this persists, please try a smaller file."
)
MODEL_NOT_FOUND_MESSAGE = (
    "The specified model was not found. Please ensure you are using a valid model name."
)
GENERIC_FAILURE_MESSAGE = "Failed to analyze response."

_RATE_LIMIT_PATTERN = re.compile(r"\b429\b|rate[ _-]?limit|RESOURCE_EXHAUSTED", re.IGNORECASE)
_NOT_FOUND_PATTERN = re.compile(r"\b404\b|model[^.]*not found|model_not_found", re.IGNORECASE)


class AnalyzerConfigurationError(RuntimeError):
    """Raised when the analyzer client cannot be created.

    This is the only analyzer failure that is not converted into a
    per-response error value.
    """


class ClassificationOutputError(Exception):
    """Raised when model output fails parsing or schema validation.

    Attributes:
        stage: Which validation step failed ("json_parse" or "schema").
        errors: List of human-readable error descriptions.
        raw_response: The original string that failed validation.
    """

    def __init__(
        self,
        stage: str,
        errors: List[str],
        raw_response: str,
    ) -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response
        message = (
            f"Classification output failed validation at stage '{stage}': "
            + "; ".join(errors)
        )
        super().__init__(message)


def describe_analyzer_failure(error: object) -> str:
    """Turn an analyzer exception or raw error text into a user-facing message.

    Rate-limit and missing-model failures are recognised from the error
    text; anything else passes its own message through.
    """
    message = str(error).strip() if error is not None else ""
    if not message:
        return GENERIC_FAILURE_MESSAGE
    if _RATE_LIMIT_PATTERN.search(message):
        return RATE_LIMIT_MESSAGE
    if _NOT_FOUND_PATTERN.search(message):
        return MODEL_NOT_FOUND_MESSAGE
    return message
