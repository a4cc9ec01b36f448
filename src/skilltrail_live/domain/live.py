"""Domain models for live challenge sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

SESSION_SCHEDULED = "SCHEDULED"
SESSION_ACTIVE = "ACTIVE"
SESSION_COMPLETED = "COMPLETED"
SESSION_CANCELLED = "CANCELLED"

SESSION_TERMINAL_STATUSES = frozenset({SESSION_COMPLETED, SESSION_CANCELLED})

PARTICIPANT_ACTIVE = "ACTIVE"
PARTICIPANT_COMPLETED = "COMPLETED"
PARTICIPANT_ABANDONED = "ABANDONED"

PARTICIPANT_TERMINAL_STATUSES = frozenset(
    {PARTICIPANT_COMPLETED, PARTICIPANT_ABANDONED}
)

ACTION_START_CHALLENGE = "start_challenge"
ACTION_REQUEST_TIP = "request_tip"
ACTION_SUBMIT_SOLUTION = "submit_solution"

ACTION_KINDS = frozenset(
    {ACTION_START_CHALLENGE, ACTION_REQUEST_TIP, ACTION_SUBMIT_SOLUTION}
)

EVENT_SNAPSHOT = "snapshot"
EVENT_SESSION_STATUS_CHANGED = "session_status_changed"
EVENT_PARTICIPANT_JOINED = "participant_joined"
EVENT_PARTICIPANT_PROGRESS = "participant_progress"
EVENT_LEADERBOARD_UPDATE = "leaderboard_update"
EVENT_CHALLENGE_COMPLETED = "challenge_completed"
EVENT_SESSION_CANCELLED = "session_cancelled"

END_REASON_FINISHED = "finished"
END_REASON_TIME_LIMIT = "time_limit_exceeded"


@dataclass(frozen=True)
class LiveSessionRecord:
    """A live challenge session as stored by the engine."""

    id: UUID
    trail_id: UUID
    challenge_ids: tuple[UUID, ...]
    max_participants: int
    time_limit_seconds: int
    status: str
    created_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None
    winner_user_id: UUID | None = None
    cancel_reason: str | None = None


@dataclass(frozen=True)
class ChallengeCompletionRecord:
    """Outcome of one solved challenge. Never modified after creation."""

    challenge_id: UUID
    challenge_index: int
    completed_at: datetime
    score: int
    time_spent_seconds: float
    tips_used: tuple[UUID, ...]
    attempts: int


@dataclass(frozen=True)
class Participant:
    """Progress of one user inside one session."""

    session_id: UUID
    user_id: UUID
    joined_at: datetime
    status: str
    challenge_started_at: datetime
    current_challenge_index: int = 0
    score: int = 0
    time_spent_seconds: float = 0.0
    challenge_opened: bool = False
    current_tips: tuple[UUID, ...] = ()
    current_attempts: int = 0
    completions: tuple[ChallengeCompletionRecord, ...] = ()
    finished_at: datetime | None = None
    end_reason: str | None = None


@dataclass(frozen=True)
class ParticipantAction:
    """An action submitted by a participant for its current challenge."""

    kind: str
    challenge_index: int
    tip_id: UUID | None = None
    passed: bool = True


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked row of a session leaderboard."""

    rank: int
    user_id: UUID
    score: int
    time_spent_seconds: float
    status: str
    current_challenge_index: int


@dataclass(frozen=True)
class SessionEvent:
    """State change delivered to live viewers of a session."""

    session_id: UUID
    sequence: int
    kind: str
    occurred_at: datetime
    payload: dict[str, object] = field(default_factory=dict)
