"""Admin API endpoints with simple token auth."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from skilltrail_live.api.models import CancelSessionRequest, CreateSessionRequest
from skilltrail_live.services.payloads import session_payload

if TYPE_CHECKING:
    from skilltrail_live.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.post(
    "/sessions",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_session(
    body: CreateSessionRequest, request: Request
) -> dict[str, object]:
    """Schedule a live session over an ordered list of challenges."""
    container: AppContainer = request.app.state.container
    session = await container.controller.create_session(
        trail_id=body.trail_id,
        challenge_ids=body.challenge_ids,
        max_participants=body.max_participants,
    )
    return session_payload(session)


@router.post("/sessions/{session_id}/activate", dependencies=[Depends(require_admin)])
async def activate_session(session_id: UUID, request: Request) -> dict[str, object]:
    """Make a scheduled session the single active one."""
    container: AppContainer = request.app.state.container
    session = await container.controller.activate_session(session_id)
    return session_payload(session)


@router.post("/sessions/{session_id}/cancel", dependencies=[Depends(require_admin)])
async def cancel_session(
    session_id: UUID, request: Request, body: CancelSessionRequest | None = None
) -> dict[str, object]:
    """Cancel a scheduled or active session."""
    container: AppContainer = request.app.state.container
    session = await container.controller.cancel_session(
        session_id, reason=body.reason if body else None
    )
    return session_payload(session)


@router.get("/archive", dependencies=[Depends(require_admin)])
async def list_archive(request: Request, limit: int = 20) -> dict[str, object]:
    """Return recently archived sessions."""
    container: AppContainer = request.app.state.container
    sessions = await asyncio.to_thread(
        container.session_archive.list_archived_sessions, limit
    )
    return {"sessions": sessions}
