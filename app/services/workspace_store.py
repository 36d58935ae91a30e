"""
app/services/workspace_store.py

Thread-safe in-memory registry of workspace snapshots.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from functools import lru_cache

from app.services.classification_queue import CancellationToken
from app.services.workspace import WorkspaceState, initial_state

Transition = Callable[[WorkspaceState], WorkspaceState]


class WorkspaceNotFoundError(KeyError):
    """
    Raised when a workspace id is unknown.
    """

    def __init__(self, workspace_id: str) -> None:
        super().__init__(workspace_id)
        self.workspace_id = workspace_id

    def __str__(self) -> str:
        return f"Workspace '{self.workspace_id}' was not found."


class WorkspaceStore:
    """
    Holds the latest snapshot per workspace; transitions are applied under a lock.
    """

    def __init__(self) -> None:
        self._states: dict[str, WorkspaceState] = {}
        self._tokens: dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    def create(self, state: WorkspaceState | None = None) -> str:
        workspace_id = uuid.uuid4().hex
        with self._lock:
            self._states[workspace_id] = state if state is not None else initial_state()
        return workspace_id

    def get(self, workspace_id: str) -> WorkspaceState:
        with self._lock:
            try:
                return self._states[workspace_id]
            except KeyError:
                raise WorkspaceNotFoundError(workspace_id) from None

    def update(self, workspace_id: str, transition: Transition) -> WorkspaceState:
        """
        Apply *transition* to the current snapshot and store the result.

        If the transition raises, the stored snapshot is unchanged.
        """

        with self._lock:
            try:
                current = self._states[workspace_id]
            except KeyError:
                raise WorkspaceNotFoundError(workspace_id) from None
            updated = transition(current)
            self._states[workspace_id] = updated
            return updated

    def new_cancellation_token(self, workspace_id: str) -> CancellationToken:
        token = CancellationToken()
        with self._lock:
            if workspace_id not in self._states:
                raise WorkspaceNotFoundError(workspace_id)
            self._tokens[workspace_id] = token
        return token

    def cancellation_token(self, workspace_id: str) -> CancellationToken | None:
        with self._lock:
            return self._tokens.get(workspace_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)


@lru_cache(maxsize=1)
def get_workspace_store() -> WorkspaceStore:
    """
    Return the process-wide workspace store.
    """

    return WorkspaceStore()
