"""
app/schemas package marker.
"""

from app.schemas.survey import (
    ColumnMappingRequest,
    ResultQueryRequest,
    ResultsQueryRequest,
    ResultsSummaryResponse,
    TrendQueryRequest,
    TrendResponse,
    WorkspaceResponse,
)

__all__ = [
    "ColumnMappingRequest",
    "ResultQueryRequest",
    "ResultsQueryRequest",
    "ResultsSummaryResponse",
    "TrendQueryRequest",
    "TrendResponse",
    "WorkspaceResponse",
]
