"""Errors raised by the live challenge engine."""

from uuid import UUID


class LiveChallengeError(Exception):
    """Base class for caller-facing, recoverable live challenge errors."""

    code = "live_challenge_error"
    retryable = False

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class SessionNotFoundError(LiveChallengeError):
    code = "session_not_found"


class ChallengeNotFoundError(LiveChallengeError):
    code = "challenge_not_found"


class AlreadyActiveError(LiveChallengeError):
    """Another session currently holds the global active slot."""

    code = "already_active"
    retryable = True

    def __init__(self, active_session_id: UUID) -> None:
        super().__init__(f"Session {active_session_id} is already active")
        self.active_session_id = active_session_id


class SessionNotActiveError(LiveChallengeError):
    code = "session_not_active"


class InvalidTransitionError(LiveChallengeError):
    code = "invalid_transition"


class ParticipantNotFoundError(LiveChallengeError):
    code = "participant_not_found"


class ParticipantTerminalError(LiveChallengeError):
    code = "participant_terminal"


class InvalidChallengeIndexError(LiveChallengeError):
    code = "invalid_challenge_index"


class TipNotFoundError(LiveChallengeError):
    code = "tip_not_found"


class TipNotYetAvailableError(LiveChallengeError):
    """The tip unlocks later; the same request can be retried."""

    code = "tip_not_yet_available"
    retryable = True

    def __init__(self, retry_after_seconds: float) -> None:
        super().__init__(f"Tip becomes available in {retry_after_seconds:.0f}s")
        self.retry_after_seconds = retry_after_seconds


class CapacityExceededError(LiveChallengeError):
    code = "capacity_exceeded"


class AlreadyJoinedError(LiveChallengeError):
    code = "already_joined"


class RegistryInvariantError(RuntimeError):
    """The single-active-session invariant no longer holds."""
