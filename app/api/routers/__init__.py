"""
app/api/routers package marker.
"""

from app.api.routers.insights import router as insights_router
from app.api.routers.workspaces import router as workspaces_router

__all__ = [
    "insights_router",
    "workspaces_router",
]
