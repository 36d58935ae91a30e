"""
app/services package marker.
"""

from app.services.analysis_service import AnalysisService, build_analyzer, build_rate_limiter
from app.services.classification_queue import (
    CancellationToken,
    ClassificationQueue,
    QueueStatus,
    progress_percent,
)
from app.services.ingestion_service import (
    ColumnMapping,
    ColumnMappingError,
    CSVDecodeError,
    ingest_csv_text,
    validate_mapping,
)
from app.services.rate_limiter import IntervalRateLimiter
from app.services.workspace import WorkspacePhase, WorkspaceState, WorkspaceStateError
from app.services.workspace_store import (
    WorkspaceNotFoundError,
    WorkspaceStore,
    get_workspace_store,
)

__all__ = [
    "AnalysisService",
    "build_analyzer",
    "build_rate_limiter",
    "CancellationToken",
    "ClassificationQueue",
    "QueueStatus",
    "progress_percent",
    "ColumnMapping",
    "ColumnMappingError",
    "CSVDecodeError",
    "ingest_csv_text",
    "validate_mapping",
    "IntervalRateLimiter",
    "WorkspacePhase",
    "WorkspaceState",
    "WorkspaceStateError",
    "WorkspaceNotFoundError",
    "WorkspaceStore",
    "get_workspace_store",
]
