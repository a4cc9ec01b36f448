"""Storage for live sessions and their participants."""

from typing import Protocol
from uuid import UUID

from skilltrail_live.domain.live import LiveSessionRecord, Participant


class LiveSessionStore(Protocol):
    """Storage interface for in-flight session state."""

    def add_session(self, session: LiveSessionRecord) -> None:
        """Store a newly created session."""

    def get_session(self, session_id: UUID) -> LiveSessionRecord | None:
        """Return a session by id, if present."""

    def replace_session(self, session: LiveSessionRecord) -> None:
        """Replace the stored record of an existing session."""

    def list_sessions(self, status: str | None = None) -> list[LiveSessionRecord]:
        """Return sessions, optionally filtered by status."""

    def add_participant(self, participant: Participant) -> None:
        """Store a participant that just joined."""

    def get_participant(self, session_id: UUID, user_id: UUID) -> Participant | None:
        """Return a participant of a session, if present."""

    def replace_participant(self, participant: Participant) -> None:
        """Replace the stored record of an existing participant."""

    def list_participants(self, session_id: UUID) -> list[Participant]:
        """Return a point-in-time copy of the session's participants."""

    def count_participants(self, session_id: UUID) -> int:
        """Return the number of participants in the session."""


class InMemoryLiveSessionStore(LiveSessionStore):
    """Process-local store. Records are immutable and swapped whole."""

    def __init__(self) -> None:
        self._sessions: dict[UUID, LiveSessionRecord] = {}
        self._participants: dict[UUID, dict[UUID, Participant]] = {}

    def add_session(self, session: LiveSessionRecord) -> None:
        self._sessions[session.id] = session
        self._participants[session.id] = {}

    def get_session(self, session_id: UUID) -> LiveSessionRecord | None:
        return self._sessions.get(session_id)

    def replace_session(self, session: LiveSessionRecord) -> None:
        if session.id not in self._sessions:
            raise KeyError(session.id)
        self._sessions[session.id] = session

    def list_sessions(self, status: str | None = None) -> list[LiveSessionRecord]:
        sessions = list(self._sessions.values())
        if status is None:
            return sessions
        return [session for session in sessions if session.status == status]

    def add_participant(self, participant: Participant) -> None:
        self._participants[participant.session_id][participant.user_id] = participant

    def get_participant(self, session_id: UUID, user_id: UUID) -> Participant | None:
        return self._participants.get(session_id, {}).get(user_id)

    def replace_participant(self, participant: Participant) -> None:
        participants = self._participants[participant.session_id]
        if participant.user_id not in participants:
            raise KeyError(participant.user_id)
        participants[participant.user_id] = participant

    def list_participants(self, session_id: UUID) -> list[Participant]:
        return list(self._participants.get(session_id, {}).values())

    def count_participants(self, session_id: UUID) -> int:
        return len(self._participants.get(session_id, {}))
