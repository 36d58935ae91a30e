"""
app/services/workspace.py

Explicit application state for one survey analysis session.

``WorkspaceState`` is an immutable snapshot; every transition is a pure
function returning a new snapshot. The HTTP layer stores snapshots and
never mutates them.

Phases::

    upload -> mapping -> analyzing -> results

Starting over is ``initial_state()``.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, replace

from app.domain.survey import ClassifiedRecord, SurveyDataset
from app.services.ingestion_service import ColumnMapping, ingest_csv_text, validate_mapping


class WorkspacePhase(str, enum.Enum):
    UPLOAD = "upload"
    MAPPING = "mapping"
    ANALYZING = "analyzing"
    RESULTS = "results"


class WorkspaceStateError(RuntimeError):
    """
    Raised when a transition is not allowed from the current phase.
    """


@dataclass(frozen=True)
class WorkspaceState:
    """
    Snapshot of one session: uploaded data, mapping, analysis progress and results.
    """

    phase: WorkspacePhase = WorkspacePhase.UPLOAD
    file_name: str = ""
    dataset: SurveyDataset | None = None
    mapping: ColumnMapping | None = None
    results: tuple[ClassifiedRecord, ...] = ()
    progress: int = 0
    cancelled: bool = False
    error: str = ""

    @property
    def headers(self) -> tuple[str, ...]:
        return self.dataset.headers if self.dataset is not None else ()

    @property
    def is_analyzing(self) -> bool:
        return self.phase is WorkspacePhase.ANALYZING


def _require_phase(state: WorkspaceState, *phases: WorkspacePhase) -> None:
    if state.phase not in phases:
        allowed = ", ".join(phase.value for phase in phases)
        raise WorkspaceStateError(
            f"Action not allowed in phase '{state.phase.value}' (expected: {allowed})."
        )


def initial_state() -> WorkspaceState:
    return WorkspaceState()


def load_csv(state: WorkspaceState, *, file_name: str, text: str) -> WorkspaceState:
    """
    Parse an upload and move to the mapping phase.

    On failure the error propagates and *state* is left as it was.
    """

    _require_phase(state, WorkspacePhase.UPLOAD)
    dataset = ingest_csv_text(text)
    return WorkspaceState(
        phase=WorkspacePhase.MAPPING,
        file_name=file_name,
        dataset=dataset,
    )


def apply_mapping(
    state: WorkspaceState,
    *,
    text_column: str | None,
    date_column: str | None = None,
    dimension_columns: Sequence[str] = (),
) -> WorkspaceState:
    _require_phase(state, WorkspacePhase.MAPPING)
    mapping = validate_mapping(
        state.headers,
        text_column=text_column,
        date_column=date_column,
        dimension_columns=dimension_columns,
    )
    return replace(state, mapping=mapping, error="")


def begin_analysis(state: WorkspaceState) -> WorkspaceState:
    _require_phase(state, WorkspacePhase.MAPPING)
    if state.mapping is None:
        raise WorkspaceStateError("Please select the column for response text.")
    return replace(
        state,
        phase=WorkspacePhase.ANALYZING,
        results=(),
        progress=0,
        cancelled=False,
        error="",
    )


def record_result(state: WorkspaceState, result: ClassifiedRecord, progress: int) -> WorkspaceState:
    """
    Append one finished record; results only ever grow, in input order.
    """

    _require_phase(state, WorkspacePhase.ANALYZING)
    return replace(
        state,
        results=state.results + (result,),
        progress=max(state.progress, progress),
    )


def complete_analysis(state: WorkspaceState, *, cancelled: bool = False) -> WorkspaceState:
    _require_phase(state, WorkspacePhase.ANALYZING)
    return replace(
        state,
        phase=WorkspacePhase.RESULTS,
        progress=state.progress if cancelled else 100,
        cancelled=cancelled,
    )


def fail_analysis(state: WorkspaceState, message: str) -> WorkspaceState:
    """
    Return to mapping after a fatal analyzer error, keeping the message for display.
    """

    _require_phase(state, WorkspacePhase.ANALYZING)
    return replace(state, phase=WorkspacePhase.MAPPING, results=(), progress=0, error=message)
