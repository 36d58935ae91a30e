"""
tests/test_classification_queue.py

Pytest unit tests for the sequential classification queue.
"""

from __future__ import annotations

import logging
from datetime import datetime

import pytest

from app.domain.survey import SurveyRecord
from app.services.classification_queue import (
    CancellationToken,
    ClassificationQueue,
    QueueStatus,
    progress_percent,
)
from app.services.rate_limiter import IntervalRateLimiter
from classification.adapter import BaseAnalyzer
from classification.errors import (
    MODEL_NOT_FOUND_MESSAGE,
    RATE_LIMIT_MESSAGE,
    AnalyzerConfigurationError,
)
from classification.schema import Classification


class ScriptedAnalyzer(BaseAnalyzer):
    """Classifies every text as positive, except texts mapped to an exception."""

    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.calls: list[str] = []

    def classify(self, text: str) -> Classification:
        self.calls.append(text)
        if text in self.failures:
            raise self.failures[text]
        return Classification(
            sentiment="positive",
            sentiment_score=0.5,
            intent="praise",
            emotions=["joy"],
            topics=["Product Experience"],
            explanation="scripted",
            confidence=90,
            redacted_excerpt=text,
        )


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _records(*texts: str, dates: list[str] | None = None) -> list[SurveyRecord]:
    records = []
    for index, text in enumerate(texts):
        fields = {"text": text}
        if dates is not None:
            fields["date"] = dates[index]
        records.append(SurveyRecord(row_id=index + 2, fields=fields))
    return records


def _queue(analyzer: BaseAnalyzer, clock: FakeClock | None = None) -> ClassificationQueue:
    clock = clock or FakeClock()
    limiter = IntervalRateLimiter(min_interval_seconds=1.1, clock=clock, sleep=clock.sleep)
    return ClassificationQueue(analyzer=analyzer, rate_limiter=limiter)


# ---------------------------------------------------------------------------
# progress_percent
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("processed", "total", "expected"),
    [
        (1, 3, 33),
        (2, 3, 67),
        (3, 3, 100),
        (1, 2, 50),
        (996, 1000, 99),
        (999, 1000, 99),
        (0, 5, 0),
        (0, 0, 100),
    ],
)
def test_progress_percent(processed: int, total: int, expected: int) -> None:
    assert progress_percent(processed, total) == expected


# ---------------------------------------------------------------------------
# Batch execution
# ---------------------------------------------------------------------------


def test_results_follow_input_order() -> None:
    analyzer = ScriptedAnalyzer()
    queue = _queue(analyzer)

    results = queue.run(_records("first", "second", "third"), text_field="text")

    assert [result.row_id for result in results] == [2, 3, 4]
    assert analyzer.calls == ["first", "second", "third"]
    assert all(result.classification is not None for result in results)
    assert queue.status is QueueStatus.COMPLETED


def test_failures_are_stored_per_record_and_batch_continues(caplog: pytest.LogCaptureFixture) -> None:
    analyzer = ScriptedAnalyzer(
        failures={
            "busy": RuntimeError("Error code: 429 - Too Many Requests"),
            "gone": RuntimeError("Error code: 404 - model `gpt-x` does not exist"),
            "odd": ValueError("upstream exploded"),
        }
    )
    queue = _queue(analyzer)

    with caplog.at_level(logging.WARNING, logger="app.services.classification_queue"):
        results = queue.run(_records("ok", "busy", "gone", "odd", "fine"), text_field="text")

    assert [result.error for result in results] == [
        None,
        RATE_LIMIT_MESSAGE,
        MODEL_NOT_FOUND_MESSAGE,
        "upstream exploded",
        None,
    ]
    assert results[1].classification is None
    assert results[4].classification is not None
    assert caplog.text.count("classification_item_failed") == 3


def test_progress_reported_after_each_record() -> None:
    queue = _queue(ScriptedAnalyzer())
    seen: list[tuple[int, int]] = []

    queue.run(
        _records("a", "b", "c"),
        text_field="text",
        on_result=lambda result, percent: seen.append((result.row_id, percent)),
    )

    assert seen == [(2, 33), (3, 67), (4, 100)]
    snapshot = queue.snapshot()
    assert snapshot.progress == 100
    assert snapshot.processed == snapshot.total == 3
    assert len(snapshot.results) == 3


def test_dates_are_normalized_when_date_field_given() -> None:
    queue = _queue(ScriptedAnalyzer())

    results = queue.run(
        _records("a", "b", dates=["2024-01-05", "whenever"]),
        text_field="text",
        date_field="date",
    )

    assert results[0].date == datetime(2024, 1, 5)
    assert results[1].date is None


def test_day_month_ambiguity_is_flagged_per_record() -> None:
    queue = _queue(ScriptedAnalyzer())

    results = queue.run(
        _records("a", "b", "c", "d", dates=["5/6/2024", "2024-01-05", "25/12/2024", "today"]),
        text_field="text",
        date_field="date",
    )

    assert results[0].date == datetime(2024, 5, 6)
    assert results[0].ambiguous_date
    assert not results[1].ambiguous_date
    assert results[2].date == datetime(2024, 12, 25)
    assert not results[2].ambiguous_date
    assert results[3].date is None
    assert not results[3].ambiguous_date


def test_no_dates_without_date_field() -> None:
    queue = _queue(ScriptedAnalyzer())

    results = queue.run(_records("a", dates=["2024-01-05"]), text_field="text")

    assert results[0].date is None


def test_missing_text_field_is_sent_as_empty_string() -> None:
    analyzer = ScriptedAnalyzer()
    queue = _queue(analyzer)

    queue.run([SurveyRecord(row_id=2, fields={})], text_field="text")

    assert analyzer.calls == [""]


def test_rate_limiter_spaces_calls() -> None:
    clock = FakeClock()
    queue = _queue(ScriptedAnalyzer(), clock)

    queue.run(_records("a", "b", "c", "d"), text_field="text")

    assert len(clock.sleeps) == 3
    assert all(seconds == pytest.approx(1.1) for seconds in clock.sleeps)


def test_empty_batch_completes_immediately() -> None:
    queue = _queue(ScriptedAnalyzer())

    assert queue.run([], text_field="text") == []
    assert queue.status is QueueStatus.COMPLETED
    assert queue.snapshot().progress == 100


def test_idle_snapshot_reports_zero_progress() -> None:
    snapshot = _queue(ScriptedAnalyzer()).snapshot()

    assert snapshot.status is QueueStatus.IDLE
    assert snapshot.progress == 0
    assert snapshot.results == ()


def test_cancellation_stops_between_records() -> None:
    token = CancellationToken()
    queue = _queue(ScriptedAnalyzer())

    def cancel_after_second(result, percent) -> None:
        if result.row_id == 3:
            token.cancel()

    results = queue.run(
        _records("a", "b", "c", "d"),
        text_field="text",
        on_result=cancel_after_second,
        cancel_token=token,
    )

    assert [result.row_id for result in results] == [2, 3]
    assert queue.status is QueueStatus.CANCELLED
    assert queue.snapshot().progress == 50


def test_configuration_error_aborts_batch_and_returns_to_idle() -> None:
    analyzer = ScriptedAnalyzer(failures={"b": AnalyzerConfigurationError("no key")})
    queue = _queue(analyzer)

    with pytest.raises(AnalyzerConfigurationError):
        queue.run(_records("a", "b", "c"), text_field="text")

    assert queue.status is QueueStatus.IDLE
    assert analyzer.calls == ["a", "b"]


def test_queue_can_run_again_after_completion() -> None:
    queue = _queue(ScriptedAnalyzer())

    queue.run(_records("a", "b"), text_field="text")
    results = queue.run(_records("c"), text_field="text")

    assert [result.row_id for result in results] == [2]
    assert queue.snapshot().total == 1
