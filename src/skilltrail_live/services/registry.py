"""Single-slot registry of the globally active live session."""

import logging
import threading
from uuid import UUID

from skilltrail_live.domain.errors import AlreadyActiveError
from skilltrail_live.domain.live import EVENT_SESSION_STATUS_CHANGED, SESSION_ACTIVE
from skilltrail_live.services.broadcaster import EventPublisher

STATUS_RELEASED = "RELEASED"

_logger = logging.getLogger(__name__)


class SessionRegistry:
    """Holds at most one active session id system-wide."""

    def __init__(self, publisher: EventPublisher) -> None:
        self._publisher = publisher
        self._lock = threading.Lock()
        self._active_session_id: UUID | None = None

    @property
    def active_session_id(self) -> UUID | None:
        return self._active_session_id

    def try_activate(self, session_id: UUID) -> None:
        """Claim the active slot or raise AlreadyActiveError."""
        with self._lock:
            current = self._active_session_id
            if current == session_id:
                return
            if current is not None:
                raise AlreadyActiveError(current)
            self._active_session_id = session_id
        _logger.info("Session %s claimed the active slot", session_id)
        self._publisher.publish(
            session_id, EVENT_SESSION_STATUS_CHANGED, {"status": SESSION_ACTIVE}
        )

    def release(self, session_id: UUID) -> bool:
        """Free the slot if this session holds it; return whether it did."""
        with self._lock:
            if self._active_session_id != session_id:
                return False
            self._active_session_id = None
        _logger.info("Session %s released the active slot", session_id)
        self._publisher.publish(
            session_id, EVENT_SESSION_STATUS_CHANGED, {"status": STATUS_RELEASED}
        )
        return True
