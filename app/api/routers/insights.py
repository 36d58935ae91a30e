"""
app/api/routers/insights.py

Filtered aggregates, trend series and CSV export for a workspace.

Every endpoint works on the current result snapshot, so it can be called
while analysis is still running. All transformation logic lives in the
filter, aggregation and export services; this router only handles HTTP
plumbing.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from app.api.dependencies import get_store
from app.config import get_export_settings
from app.domain.survey import ClassifiedRecord, DateRange, FilterSet
from app.schemas.survey import (
    ClassifiedRecordResponse,
    ResultQueryRequest,
    ResultsQueryRequest,
    ResultsSummaryResponse,
    StackedBucketResponse,
    TrendPointResponse,
    TrendQueryRequest,
    TrendResponse,
    TrendSeriesResponse,
    counts_response,
)
from app.services.aggregation_service import (
    build_topic_tree,
    count_by,
    time_series,
    topic_chart_data,
    total_count,
)
from app.services.export_service import export_csv
from app.services.filter_service import apply_filters, available_filters, date_bounds, describe_filters
from app.services.workspace import WorkspaceState
from app.services.workspace_store import WorkspaceNotFoundError, WorkspaceStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["insights"])


def _load_state(store: WorkspaceStore, workspace_id: str) -> WorkspaceState:
    try:
        state = store.get(workspace_id)
    except WorkspaceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if state.dataset is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Upload a CSV file before requesting results.",
        )
    return state


def _filtered(state: WorkspaceState, query: ResultQueryRequest) -> Sequence[ClassifiedRecord]:
    return apply_filters(
        state.results,
        FilterSet(values=query.filters),
        DateRange.from_dates(query.date_from, query.date_to),
    )


@router.post("/{workspace_id}/results", response_model=ResultsSummaryResponse)
def query_results(
    workspace_id: str,
    query: ResultsQueryRequest,
    include_records: bool = False,
    store: WorkspaceStore = Depends(get_store),
) -> ResultsSummaryResponse:
    """
    Counts, topic chart and topic tree for the filtered results.
    """

    state = _load_state(store, workspace_id)
    records = _filtered(state, query)
    dimensions = list(state.mapping.dimension_columns) if state.mapping else []
    min_date, max_date = date_bounds(state.results)
    sentiment_counts = count_by(records, "sentiment")

    return ResultsSummaryResponse(
        total_responses=len(records),
        filter_description=describe_filters(query.filters),
        sentiment_counts=counts_response(sentiment_counts),
        sentiment_total=total_count(sentiment_counts),
        intent_counts=counts_response(count_by(records, "intent")),
        emotion_counts=counts_response(count_by(records, "emotions")),
        topic_chart=counts_response(topic_chart_data(records, query.selected_topic)),
        topic_tree=build_topic_tree(records).to_dicts(),
        available_filters=available_filters(state.results, dimensions),
        min_date=min_date,
        max_date=max_date,
        records=[ClassifiedRecordResponse.from_record(record) for record in records]
        if include_records
        else [],
    )


@router.post("/{workspace_id}/trend", response_model=TrendResponse)
def query_trend(
    workspace_id: str,
    query: TrendQueryRequest,
    store: WorkspaceStore = Depends(get_store),
) -> TrendResponse:
    """
    Time-bucketed counts for the filtered results.
    """

    state = _load_state(store, workspace_id)
    if state.mapping is None or state.mapping.date_column is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Map a date column to build a trend.",
        )

    trend = time_series(_filtered(state, query), period=query.period, group_by=query.group_by)
    return TrendResponse(
        period=trend.period,
        group_by=trend.group_by,
        dates=list(trend.dates),
        keys=list(trend.keys),
        series=[
            TrendSeriesResponse(
                name=item.name,
                values=[TrendPointResponse(date=point.date, value=point.value) for point in item.values],
            )
            for item in trend.series
        ],
        stacked=[
            StackedBucketResponse(date=bucket.date, counts=bucket.counts) for bucket in trend.stacked
        ],
    )


@router.post("/{workspace_id}/export")
def export_results(
    workspace_id: str,
    query: ResultQueryRequest,
    store: WorkspaceStore = Depends(get_store),
) -> StreamingResponse:
    """
    Download the filtered results with their classification as CSV.
    """

    state = _load_state(store, workspace_id)
    records = _filtered(state, query)
    content = export_csv(records, state.headers)
    filename = get_export_settings().filename
    logger.info("Exporting %d row(s) from workspace %s", len(records), workspace_id)
    return StreamingResponse(
        io.StringIO(content),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
