"""
app/schemas/survey.py

Request and response schemas for the survey workspace endpoints.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from app.domain.survey import ClassifiedRecord
from app.services.workspace import WorkspaceState
from classification.schema import Classification


class WorkspaceResponse(BaseModel):
    """
    API response model for one workspace snapshot (without results).
    """

    workspace_id: str
    phase: str
    file_name: str = ""
    headers: list[str] = Field(default_factory=list)
    row_count: int = Field(default=0, ge=0)
    ragged_row_ids: list[int] = Field(default_factory=list)
    text_column: str | None = None
    date_column: str | None = None
    dimension_columns: list[str] = Field(default_factory=list)
    available_dimensions: list[str] = Field(default_factory=list)
    progress: int = Field(default=0, ge=0, le=100)
    processed: int = Field(default=0, ge=0)
    ambiguous_dates: int = Field(default=0, ge=0)
    cancelled: bool = False
    error: str = ""

    @classmethod
    def from_state(
        cls,
        workspace_id: str,
        state: WorkspaceState,
        available_dimensions: list[str],
    ) -> "WorkspaceResponse":
        dataset = state.dataset
        mapping = state.mapping
        return cls(
            workspace_id=workspace_id,
            phase=state.phase.value,
            file_name=state.file_name,
            headers=list(state.headers),
            row_count=len(dataset.records) if dataset is not None else 0,
            ragged_row_ids=list(dataset.ragged_row_ids) if dataset is not None else [],
            text_column=mapping.text_column if mapping else None,
            date_column=mapping.date_column if mapping else None,
            dimension_columns=list(mapping.dimension_columns) if mapping else [],
            available_dimensions=available_dimensions,
            progress=state.progress,
            processed=len(state.results),
            ambiguous_dates=sum(1 for result in state.results if result.ambiguous_date),
            cancelled=state.cancelled,
            error=state.error,
        )


class ColumnMappingRequest(BaseModel):
    text_column: str
    date_column: str | None = None
    dimension_columns: list[str] = Field(default_factory=list)


class ResultQueryRequest(BaseModel):
    """
    Dimension filters plus an optional inclusive day range.
    """

    filters: dict[str, str] = Field(default_factory=dict)
    date_from: date | None = None
    date_to: date | None = None


class ResultsQueryRequest(ResultQueryRequest):
    selected_topic: str | None = None


class TrendQueryRequest(ResultQueryRequest):
    period: Literal["day", "week", "month"] = "day"
    group_by: Literal["sentiment", "intent", "topics"] = "sentiment"


class ClassifiedRecordResponse(BaseModel):
    row_id: int
    fields: dict[str, str]
    date: datetime | None = None
    classification: Classification | None = None
    error: str | None = None
    ambiguous_date: bool = False

    @classmethod
    def from_record(cls, record: ClassifiedRecord) -> "ClassifiedRecordResponse":
        return cls(
            row_id=record.row_id,
            fields=dict(record.record.fields),
            date=record.date,
            classification=record.classification,
            error=record.error,
            ambiguous_date=record.ambiguous_date,
        )


class CountResponse(BaseModel):
    value: str
    count: int = Field(..., ge=0)


class ResultsSummaryResponse(BaseModel):
    """
    Aggregates over the filtered result set.
    """

    total_responses: int = Field(..., ge=0)
    filter_description: str
    sentiment_counts: list[CountResponse] = Field(default_factory=list)
    sentiment_total: int = Field(default=0, ge=0)
    intent_counts: list[CountResponse] = Field(default_factory=list)
    emotion_counts: list[CountResponse] = Field(default_factory=list)
    topic_chart: list[CountResponse] = Field(default_factory=list)
    topic_tree: list[dict[str, Any]] = Field(default_factory=list)
    available_filters: dict[str, list[str]] = Field(default_factory=dict)
    min_date: datetime | None = None
    max_date: datetime | None = None
    records: list[ClassifiedRecordResponse] = Field(default_factory=list)


class TrendPointResponse(BaseModel):
    date: datetime
    value: int


class TrendSeriesResponse(BaseModel):
    name: str
    values: list[TrendPointResponse]


class StackedBucketResponse(BaseModel):
    date: datetime
    counts: dict[str, int]


class TrendResponse(BaseModel):
    period: str
    group_by: str
    dates: list[datetime] = Field(default_factory=list)
    keys: list[str] = Field(default_factory=list)
    series: list[TrendSeriesResponse] = Field(default_factory=list)
    stacked: list[StackedBucketResponse] = Field(default_factory=list)


def counts_response(counts: list[tuple[str, int]]) -> list[CountResponse]:
    return [CountResponse(value=value, count=count) for value, count in counts]
