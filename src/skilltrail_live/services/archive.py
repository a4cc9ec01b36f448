"""Durable record of finished sessions for analytics."""

from typing import Protocol

from skilltrail_live.domain.live import LiveSessionRecord, Participant


class SessionArchive(Protocol):
    """Persistence interface for completed and cancelled sessions."""

    def archive_session(
        self, session: LiveSessionRecord, participants: list[Participant]
    ) -> None:
        """Persist a terminal session together with its participants."""

    def list_archived_sessions(self, limit: int) -> list[dict[str, object]]:
        """Return the most recently archived sessions."""
