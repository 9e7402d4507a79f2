"""Viewer identity middleware using ContextVar.

Extracts the acting user from the X-User-ID request header. The id is stored
in a ContextVar so that routers and services can call get_current_viewer()
without explicit parameter passing. Authentication happens upstream; this
layer only trusts the header it is given.
"""

from contextvars import ContextVar
from typing import Optional

from fastapi import Depends, HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from verticals.tasks.config import TaskConfig
from verticals.tasks.models.schemas import Viewer
from verticals.tasks.service import get_task_config

VIEWER_HEADER = "X-User-ID"

# ---------------------------------------------------------------------------
# Context variable: task-safe viewer state
# ---------------------------------------------------------------------------

_current_user: ContextVar[Optional[str]] = ContextVar("current_user", default=None)


def get_current_user_id() -> Optional[str]:
    """Return the user id for the current request, or None if absent."""
    return _current_user.get()


def get_current_viewer(config: TaskConfig = Depends(get_task_config)) -> Viewer:
    """FastAPI dependency: the acting viewer, 401 when no identity was sent.

    Usage::

        @router.get("/tasks")
        async def list_tasks(viewer: Viewer = Depends(get_current_viewer)):
            ...
    """
    user_id = get_current_user_id()
    if not user_id:
        raise HTTPException(status_code=401, detail=f"Missing {VIEWER_HEADER} header")
    return Viewer(user_id=user_id, is_admin=config.is_admin(user_id))


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class ViewerMiddleware(BaseHTTPMiddleware):
    """Bind the X-User-ID header to the request context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        user_id = (request.headers.get(VIEWER_HEADER) or "").strip() or None
        token = _current_user.set(user_id)
        try:
            response = await call_next(request)
            return response
        finally:
            _current_user.reset(token)
