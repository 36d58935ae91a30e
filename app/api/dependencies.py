"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation and service wiring.
"""

from __future__ import annotations

from fastapi import Depends, File, HTTPException, UploadFile, status

from app.config import get_analysis_settings
from app.services.analysis_service import AnalysisService
from app.services.workspace_store import WorkspaceStore, get_workspace_store

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
}


def get_csv_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Accept an upload whose name ends in ``.csv`` or whose MIME type is a CSV type.
    """

    name = (file.filename or "").strip().lower()
    mime = (file.content_type or "").split(";")[0].strip().lower()
    if name.endswith(".csv") or mime in CSV_CONTENT_TYPES:
        return file

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Please upload a valid .csv file.",
    )


def get_store() -> WorkspaceStore:
    return get_workspace_store()


def get_analysis(store: WorkspaceStore = Depends(get_store)) -> AnalysisService:
    return AnalysisService(
        store=store,
        log_preview_chars=get_analysis_settings().log_preview_chars,
    )
