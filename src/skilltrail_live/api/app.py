"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from fastapi.websockets import WebSocketState

from skilltrail_live.api.admin import router as admin_router
from skilltrail_live.api.models import ActionRequest, JoinSessionRequest
from skilltrail_live.app_logging import configure_logging
from skilltrail_live.containers import AppContainer
from skilltrail_live.domain.errors import (
    ChallengeNotFoundError,
    LiveChallengeError,
    ParticipantNotFoundError,
    SessionNotFoundError,
    TipNotFoundError,
    TipNotYetAvailableError,
)
from skilltrail_live.services.broadcaster import Subscription
from skilltrail_live.services.payloads import (
    event_payload,
    leaderboard_payload,
    participant_payload,
    session_payload,
)

_NOT_FOUND_ERRORS = (
    SessionNotFoundError,
    ChallengeNotFoundError,
    ParticipantNotFoundError,
    TipNotFoundError,
)

# Close code sent to viewers of an unknown session.
WS_CLOSE_SESSION_NOT_FOUND = 4404


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        stop = asyncio.Event()
        sweeper = asyncio.create_task(
            state_container.controller.run_sweeper(
                stop, state_container.settings.sweep_interval_seconds
            )
        )
        yield
        stop.set()
        try:
            await sweeper
        except Exception:
            logger.exception("Sweeper stopped with an error")
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(LiveChallengeError)
    async def live_challenge_error_handler(
        request: Request, exc: LiveChallengeError
    ) -> JSONResponse:
        """Report a rejected operation to its caller."""
        body: dict[str, object] = {
            "error": exc.code,
            "detail": exc.detail,
            "retryable": exc.retryable,
        }
        headers: dict[str, str] = {}
        if isinstance(exc, TipNotYetAvailableError):
            body["retry_after_seconds"] = exc.retry_after_seconds
            headers["Retry-After"] = str(max(1, round(exc.retry_after_seconds)))
        status_code = (
            status.HTTP_404_NOT_FOUND
            if isinstance(exc, _NOT_FOUND_ERRORS)
            else status.HTTP_409_CONFLICT
        )
        return JSONResponse(status_code=status_code, content=body, headers=headers)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/sessions/active")
    async def active_session(request: Request) -> dict[str, object]:
        """Return the currently active session, if any."""
        state_container: AppContainer = request.app.state.container
        session = state_container.controller.get_active_session()
        return {"session": session_payload(session) if session else None}

    @app.get("/sessions/{session_id}")
    async def session_detail(session_id: UUID, request: Request) -> dict[str, object]:
        """Return the full current state of a session."""
        state_container: AppContainer = request.app.state.container
        return state_container.controller.snapshot(session_id)

    @app.get("/sessions/{session_id}/leaderboard")
    async def session_leaderboard(
        session_id: UUID, request: Request
    ) -> dict[str, object]:
        """Rank participants by score, then by time spent."""
        state_container: AppContainer = request.app.state.container
        entries = state_container.controller.leaderboard(session_id)
        return {"leaderboard": leaderboard_payload(entries)}

    @app.post(
        "/sessions/{session_id}/participants", status_code=status.HTTP_201_CREATED
    )
    async def join_session(
        session_id: UUID, body: JoinSessionRequest, request: Request
    ) -> dict[str, object]:
        """Enroll a user in the active session."""
        state_container: AppContainer = request.app.state.container
        participant = await state_container.controller.join_session(
            session_id, body.user_id
        )
        return participant_payload(participant)

    @app.post("/sessions/{session_id}/actions")
    async def submit_action(
        session_id: UUID, body: ActionRequest, request: Request
    ) -> dict[str, object]:
        """Apply a participant action to its current challenge."""
        state_container: AppContainer = request.app.state.container
        participant = await state_container.controller.submit_action(
            session_id, body.user_id, body.to_action()
        )
        return participant_payload(participant)

    @app.websocket("/sessions/{session_id}/events")
    async def session_events(websocket: WebSocket, session_id: UUID) -> None:
        """Stream a snapshot, then every later event of the session."""
        state_container: AppContainer = websocket.app.state.container
        controller = state_container.controller
        try:
            subscription = controller.subscribe(session_id)
        except SessionNotFoundError:
            await websocket.close(code=WS_CLOSE_SESSION_NOT_FOUND)
            return

        await websocket.accept()
        watcher = asyncio.create_task(_close_on_disconnect(websocket, subscription))
        try:
            async for event in subscription:
                await websocket.send_json(event_payload(event))
            if websocket.client_state == WebSocketState.CONNECTED:
                await websocket.close()
        except WebSocketDisconnect:
            logger.info("Viewer of session %s disconnected", session_id)
        finally:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
            controller.unsubscribe(subscription)

    return app


async def _close_on_disconnect(
    websocket: WebSocket, subscription: Subscription
) -> None:
    """Ends the subscription once the viewer goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            subscription.close()
            return
