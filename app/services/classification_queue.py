"""
app/services/classification_queue.py

Sequential, rate-limited classification of survey records.

Records are sent to the analyzer one at a time, in input order, with a
minimum interval between calls. A failure for one record is stored on
that record and the batch moves on; only an analyzer configuration error
aborts the run. Results are appended in input order by the single thread
running the batch, and readers get immutable snapshots.

Status flow::

    idle -> running -> completed
                    -> cancelled   (cancellation token set between items)
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from app.domain.survey import ClassifiedRecord, SurveyRecord
from app.logging_utils import log_event, preview
from app.parsing.temporal import is_ambiguous_day_month, normalize_date
from app.services.rate_limiter import IntervalRateLimiter
from classification.adapter import AnalysisOutcome, BaseAnalyzer
from classification.errors import AnalyzerConfigurationError, describe_analyzer_failure

logger = logging.getLogger(__name__)

ResultCallback = Callable[[ClassifiedRecord, int], None]


class QueueStatus(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CancellationToken:
    """
    Thread-safe flag checked by the queue between records.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def progress_percent(processed: int, total: int) -> int:
    """
    Whole-number completion percentage, rounded half up.

    Never reports 100 before every record is processed; an empty batch
    is complete.
    """

    if total <= 0:
        return 100
    percent = int(processed * 100 / total + 0.5)
    if processed < total:
        return min(percent, 99)
    return 100


@dataclass(frozen=True)
class QueueSnapshot:
    """
    Point-in-time view of a batch.
    """

    status: QueueStatus
    processed: int
    total: int
    progress: int
    results: tuple[ClassifiedRecord, ...]


class ClassificationQueue:
    """
    Drives per-record analyzer calls for one batch at a time.
    """

    def __init__(
        self,
        *,
        analyzer: BaseAnalyzer,
        rate_limiter: IntervalRateLimiter,
        log_preview_chars: int = 60,
    ) -> None:
        self._analyzer = analyzer
        self._rate_limiter = rate_limiter
        self._log_preview_chars = log_preview_chars
        self._lock = threading.Lock()
        self._status = QueueStatus.IDLE
        self._results: list[ClassifiedRecord] = []
        self._processed = 0
        self._total = 0

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def status(self) -> QueueStatus:
        return self._status

    def snapshot(self) -> QueueSnapshot:
        with self._lock:
            return QueueSnapshot(
                status=self._status,
                processed=self._processed,
                total=self._total,
                progress=progress_percent(self._processed, self._total)
                if self._status is not QueueStatus.IDLE
                else 0,
                results=tuple(self._results),
            )

    # ------------------------------------------------------------------
    # Batch execution
    # ------------------------------------------------------------------

    def run(
        self,
        records: Sequence[SurveyRecord],
        *,
        text_field: str,
        date_field: str | None = None,
        on_result: ResultCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> list[ClassifiedRecord]:
        """
        Classify *records* in order and return the accumulated results.

        ``on_result`` is called after each record with the record and the
        new progress percentage.

        Raises:
            RuntimeError: if a batch is already running on this queue.
            AnalyzerConfigurationError: if the analyzer cannot be used at all.
        """

        with self._lock:
            if self._status is QueueStatus.RUNNING:
                raise RuntimeError("A classification batch is already running.")
            self._status = QueueStatus.RUNNING
            self._results = []
            self._processed = 0
            self._total = len(records)

        started = time.monotonic()
        log_event(
            logger,
            logging.INFO,
            "classification_batch_started",
            total=len(records),
            text_field=text_field,
            date_field=date_field,
            min_interval_seconds=self._rate_limiter.min_interval_seconds,
        )

        try:
            for record in records:
                self._rate_limiter.wait()
                if cancel_token is not None and cancel_token.cancelled:
                    return self._finish(QueueStatus.CANCELLED, started)

                result = self._classify_one(record, text_field=text_field, date_field=date_field)

                with self._lock:
                    self._processed += 1
                    self._results.append(result)
                    percent = progress_percent(self._processed, self._total)

                if on_result is not None:
                    on_result(result, percent)
        except AnalyzerConfigurationError:
            with self._lock:
                self._status = QueueStatus.IDLE
            raise

        return self._finish(QueueStatus.COMPLETED, started)

    def _finish(self, status: QueueStatus, started: float) -> list[ClassifiedRecord]:
        with self._lock:
            self._status = status
            results = list(self._results)
            failed = sum(1 for result in results if result.error is not None)
        log_event(
            logger,
            logging.INFO,
            "classification_batch_completed"
            if status is QueueStatus.COMPLETED
            else "classification_batch_cancelled",
            processed=len(results),
            total=self._total,
            failed=failed,
            elapsed_seconds=round(time.monotonic() - started, 3),
        )
        return results

    def _classify_one(
        self,
        record: SurveyRecord,
        *,
        text_field: str,
        date_field: str | None,
    ) -> ClassifiedRecord:
        text = record.get(text_field) or ""
        try:
            outcome = self._analyzer.analyze(text)
        except AnalyzerConfigurationError:
            raise
        except Exception as exc:
            outcome = AnalysisOutcome(error=describe_analyzer_failure(exc))

        if outcome.error is not None:
            log_event(
                logger,
                logging.WARNING,
                "classification_item_failed",
                row_id=record.row_id,
                error=outcome.error,
                text=preview(text, self._log_preview_chars),
            )

        raw_date = record.get(date_field) if date_field else None
        parsed_date = normalize_date(raw_date)
        return ClassifiedRecord(
            record=record,
            date=parsed_date,
            classification=outcome.classification,
            error=outcome.error,
            ambiguous_date=parsed_date is not None and is_ambiguous_day_month(raw_date),
        )
