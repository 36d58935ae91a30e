"""
app/services/analysis_service.py

Runs the classification queue for a workspace and feeds each finished
record back into the workspace snapshot.

Starting a run is synchronous (phase check, cancellation token); the batch
itself is meant to run in a background task. An analyzer configuration
error ends the run and returns the workspace to the mapping phase with a
message, as does any unexpected crash of the run; analyzer failures on
single records stay per record.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial

from app.config import LLMSettings, get_analysis_settings, get_llm_settings
from app.domain.survey import ClassifiedRecord
from app.services.classification_queue import ClassificationQueue, QueueStatus
from app.services.rate_limiter import IntervalRateLimiter
from app.services.workspace import (
    WorkspaceState,
    WorkspaceStateError,
    begin_analysis,
    complete_analysis,
    fail_analysis,
    record_result,
)
from app.services.workspace_store import WorkspaceStore
from classification.adapter import BaseAnalyzer, MockAnalyzer, OpenAIAnalyzer
from classification.errors import AnalyzerConfigurationError, describe_analyzer_failure

logger = logging.getLogger(__name__)

AnalyzerFactory = Callable[[], BaseAnalyzer]
RateLimiterFactory = Callable[[], IntervalRateLimiter]


def build_analyzer(settings: LLMSettings | None = None) -> BaseAnalyzer:
    """Instantiate the analyzer selected by the LLM_ADAPTER env var.

    LLM_ADAPTER=mock   -> MockAnalyzer   (testing, no API key required)
    LLM_ADAPTER=openai -> OpenAIAnalyzer (default)
    """
    settings = settings or get_llm_settings()
    if settings.adapter == "mock":
        return MockAnalyzer()

    return OpenAIAnalyzer(
        model=settings.model,
        max_tokens=settings.max_tokens,
        api_key=settings.api_key,
        base_url=settings.base_url,
    )


def build_rate_limiter() -> IntervalRateLimiter:
    return IntervalRateLimiter(
        min_interval_seconds=get_analysis_settings().min_interval_seconds
    )


class AnalysisService:
    """
    Starts, runs and cancels classification batches for workspaces.
    """

    def __init__(
        self,
        *,
        store: WorkspaceStore,
        analyzer_factory: AnalyzerFactory = build_analyzer,
        rate_limiter_factory: RateLimiterFactory = build_rate_limiter,
        log_preview_chars: int = 60,
    ) -> None:
        self._store = store
        self._analyzer_factory = analyzer_factory
        self._rate_limiter_factory = rate_limiter_factory
        self._log_preview_chars = log_preview_chars

    def start(self, workspace_id: str) -> WorkspaceState:
        """
        Move the workspace into the analyzing phase.

        Raises:
            WorkspaceStateError: if no mapping is set or a run is in progress.
            WorkspaceNotFoundError: for an unknown workspace id.
        """

        state = self._store.update(workspace_id, begin_analysis)
        self._store.new_cancellation_token(workspace_id)
        return state

    def cancel(self, workspace_id: str) -> WorkspaceState:
        state = self._store.get(workspace_id)
        token = self._store.cancellation_token(workspace_id)
        if not state.is_analyzing or token is None:
            raise WorkspaceStateError("No analysis is running for this workspace.")
        token.cancel()
        return state

    def run(self, workspace_id: str) -> WorkspaceState:
        """
        Classify every record of a workspace already started with :meth:`start`.
        """

        state = self._store.get(workspace_id)
        if not state.is_analyzing or state.dataset is None or state.mapping is None:
            raise WorkspaceStateError("Analysis has not been started for this workspace.")

        mapping = state.mapping
        token = self._store.cancellation_token(workspace_id)

        def _on_result(result: ClassifiedRecord, progress: int) -> None:
            self._store.update(workspace_id, partial(record_result, result=result, progress=progress))

        try:
            queue = ClassificationQueue(
                analyzer=self._analyzer_factory(),
                rate_limiter=self._rate_limiter_factory(),
                log_preview_chars=self._log_preview_chars,
            )
            queue.run(
                state.dataset.records,
                text_field=mapping.text_column,
                date_field=mapping.date_column,
                on_result=_on_result,
                cancel_token=token,
            )
        except AnalyzerConfigurationError as exc:
            logger.error("Analysis aborted for workspace %s: %s", workspace_id, exc)
            return self._store.update(workspace_id, partial(fail_analysis, message=str(exc)))
        except Exception as exc:
            logger.exception("Analysis crashed for workspace %s", workspace_id)
            return self._store.update(
                workspace_id, partial(fail_analysis, message=describe_analyzer_failure(exc))
            )

        cancelled = queue.status is QueueStatus.CANCELLED
        return self._store.update(workspace_id, partial(complete_analysis, cancelled=cancelled))

