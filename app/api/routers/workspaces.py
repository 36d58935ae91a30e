"""
app/api/routers/workspaces.py

Survey workspace lifecycle endpoints: upload, column mapping, analysis.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, UploadFile, status

from app.api.dependencies import get_analysis, get_csv_upload, get_store
from app.parsing.csv_codec import EmptyInputError
from app.schemas.survey import ColumnMappingRequest, WorkspaceResponse
from app.services.analysis_service import AnalysisService
from app.services.ingestion_service import (
    ColumnMappingError,
    CSVDecodeError,
    available_dimensions,
    decode_upload,
)
from app.services.workspace import (
    WorkspaceState,
    WorkspaceStateError,
    apply_mapping,
    initial_state,
    load_csv,
)
from app.services.workspace_store import WorkspaceNotFoundError, WorkspaceStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def _to_response(workspace_id: str, state: WorkspaceState) -> WorkspaceResponse:
    return WorkspaceResponse.from_state(
        workspace_id,
        state,
        available_dimensions(state.headers, state.mapping),
    )


def _not_found(exc: WorkspaceNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _conflict(exc: WorkspaceStateError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post("/upload", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
def upload_csv(
    file: UploadFile = Depends(get_csv_upload),
    store: WorkspaceStore = Depends(get_store),
) -> WorkspaceResponse:
    """
    Parse one CSV file into a new workspace in the mapping phase.

    Nothing is stored when parsing fails.
    """

    try:
        text = decode_upload(file.file.read())
        state = load_csv(initial_state(), file_name=file.filename or "", text=text)
    except (EmptyInputError, CSVDecodeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    finally:
        file.file.close()

    workspace_id = store.create(state)
    logger.info("Created workspace %s from %s", workspace_id, state.file_name)
    return _to_response(workspace_id, state)


@router.post("/{workspace_id}/upload", response_model=WorkspaceResponse)
def reupload_csv(
    workspace_id: str,
    file: UploadFile = Depends(get_csv_upload),
    store: WorkspaceStore = Depends(get_store),
) -> WorkspaceResponse:
    """
    Load a new CSV into a workspace that was reset.
    """

    try:
        text = decode_upload(file.file.read())
        state = store.update(
            workspace_id,
            lambda current: load_csv(current, file_name=file.filename or "", text=text),
        )
    except WorkspaceNotFoundError as exc:
        raise _not_found(exc) from exc
    except (EmptyInputError, CSVDecodeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except WorkspaceStateError as exc:
        raise _conflict(exc) from exc
    finally:
        file.file.close()
    return _to_response(workspace_id, state)


@router.get("/{workspace_id}", response_model=WorkspaceResponse)
def get_workspace(
    workspace_id: str,
    store: WorkspaceStore = Depends(get_store),
) -> WorkspaceResponse:
    """
    Current snapshot, including analysis progress.
    """

    try:
        return _to_response(workspace_id, store.get(workspace_id))
    except WorkspaceNotFoundError as exc:
        raise _not_found(exc) from exc


@router.put("/{workspace_id}/mapping", response_model=WorkspaceResponse)
def set_mapping(
    workspace_id: str,
    payload: ColumnMappingRequest,
    store: WorkspaceStore = Depends(get_store),
) -> WorkspaceResponse:
    try:
        state = store.update(
            workspace_id,
            lambda current: apply_mapping(
                current,
                text_column=payload.text_column,
                date_column=payload.date_column,
                dimension_columns=payload.dimension_columns,
            ),
        )
    except WorkspaceNotFoundError as exc:
        raise _not_found(exc) from exc
    except ColumnMappingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except WorkspaceStateError as exc:
        raise _conflict(exc) from exc
    return _to_response(workspace_id, state)


@router.post(
    "/{workspace_id}/analysis",
    response_model=WorkspaceResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def start_analysis(
    workspace_id: str,
    background_tasks: BackgroundTasks,
    analysis: AnalysisService = Depends(get_analysis),
) -> WorkspaceResponse:
    """
    Start classifying every row; poll ``GET /workspaces/{id}`` for progress.
    """

    try:
        state = analysis.start(workspace_id)
    except WorkspaceNotFoundError as exc:
        raise _not_found(exc) from exc
    except WorkspaceStateError as exc:
        raise _conflict(exc) from exc

    background_tasks.add_task(analysis.run, workspace_id)
    return _to_response(workspace_id, state)


@router.post("/{workspace_id}/analysis/cancel", response_model=WorkspaceResponse)
def cancel_analysis(
    workspace_id: str,
    analysis: AnalysisService = Depends(get_analysis),
) -> WorkspaceResponse:
    """
    Stop the running batch before its next row; finished rows are kept.
    """

    try:
        state = analysis.cancel(workspace_id)
    except WorkspaceNotFoundError as exc:
        raise _not_found(exc) from exc
    except WorkspaceStateError as exc:
        raise _conflict(exc) from exc
    return _to_response(workspace_id, state)


@router.post("/{workspace_id}/reset", response_model=WorkspaceResponse)
def reset_workspace(
    workspace_id: str,
    store: WorkspaceStore = Depends(get_store),
) -> WorkspaceResponse:
    """
    Discard the upload and results; not allowed while analysis is running.
    """

    def _reset(current: WorkspaceState) -> WorkspaceState:
        if current.is_analyzing:
            raise WorkspaceStateError("Cannot reset while analysis is running.")
        return initial_state()

    try:
        state = store.update(workspace_id, _reset)
    except WorkspaceNotFoundError as exc:
        raise _not_found(exc) from exc
    except WorkspaceStateError as exc:
        raise _conflict(exc) from exc
    return _to_response(workspace_id, state)
