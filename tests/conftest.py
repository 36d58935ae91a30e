from __future__ import annotations

import os

# Must be set before app.main is imported anywhere in the session.
os.environ["LLM_ADAPTER"] = "mock"
os.environ["ANALYSIS_MIN_INTERVAL_SECONDS"] = "0"

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

import pytest

from app.domain.survey import ClassifiedRecord, SurveyRecord
from classification.schema import Classification


def _classification(**overrides: Any) -> Classification:
    payload: dict[str, Any] = {
        "sentiment": "neutral",
        "sentiment_score": 0.0,
        "intent": "feedback",
        "emotions": [],
        "topics": ["Product Experience"],
        "explanation": "fixture",
        "confidence": 80,
        "redacted_excerpt": "fixture text",
    }
    payload.update(overrides)
    return Classification(**payload)


@pytest.fixture()
def make_classification() -> Callable[..., Classification]:
    """Build a valid Classification, overriding any field."""
    return _classification


@pytest.fixture()
def make_record() -> Callable[..., ClassifiedRecord]:
    """Build a ClassifiedRecord; pass ``classified=False`` for an unclassified row."""

    def _make(
        row_id: int,
        *,
        fields: dict[str, str] | None = None,
        date: datetime | None = None,
        topics: Sequence[str] = ("Product Experience",),
        classified: bool = True,
        error: str | None = None,
        **classification_fields: Any,
    ) -> ClassifiedRecord:
        classification = None
        if classified and error is None:
            classification = _classification(topics=list(topics), **classification_fields)
        return ClassifiedRecord(
            record=SurveyRecord(row_id=row_id, fields=fields or {}),
            date=date,
            classification=classification,
            error=error,
        )

    return _make
