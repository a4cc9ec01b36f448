"""Participant state machine for live challenge sessions."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import UUID

from skilltrail_live.domain.challenges import ChallengeDefinition
from skilltrail_live.domain.errors import (
    AlreadyJoinedError,
    CapacityExceededError,
    InvalidChallengeIndexError,
    ParticipantNotFoundError,
    ParticipantTerminalError,
    SessionNotActiveError,
    SessionNotFoundError,
    TipNotFoundError,
    TipNotYetAvailableError,
)
from skilltrail_live.domain.live import (
    ACTION_REQUEST_TIP,
    ACTION_START_CHALLENGE,
    ACTION_SUBMIT_SOLUTION,
    END_REASON_FINISHED,
    END_REASON_TIME_LIMIT,
    EVENT_LEADERBOARD_UPDATE,
    EVENT_PARTICIPANT_JOINED,
    EVENT_PARTICIPANT_PROGRESS,
    PARTICIPANT_ABANDONED,
    PARTICIPANT_ACTIVE,
    PARTICIPANT_COMPLETED,
    PARTICIPANT_TERMINAL_STATUSES,
    SESSION_ACTIVE,
    ChallengeCompletionRecord,
    LiveSessionRecord,
    Participant,
    ParticipantAction,
)
from skilltrail_live.services.broadcaster import EventPublisher
from skilltrail_live.services.challenges import ChallengeService
from skilltrail_live.services.clock import Clock
from skilltrail_live.services.leaderboard import rank_participants
from skilltrail_live.services.payloads import leaderboard_payload, participant_payload
from skilltrail_live.services.scoring import (
    compute_score,
    is_session_expired,
    is_time_exceeded,
    seconds_on_current_challenge,
    seconds_until_tip,
)
from skilltrail_live.services.session_store import LiveSessionStore

_logger = logging.getLogger(__name__)


@dataclass
class ParticipantTracker:
    """Applies participant actions, one at a time per participant."""

    store: LiveSessionStore
    challenge_service: ChallengeService
    publisher: EventPublisher
    clock: Clock
    _locks: dict[tuple[UUID, UUID], asyncio.Lock] = field(
        default_factory=dict, init=False, repr=False
    )

    def join(self, session_id: UUID, user_id: UUID) -> Participant:
        """Enroll a user in an active session."""
        session = self._require_session(session_id)
        if session.status != SESSION_ACTIVE:
            raise SessionNotActiveError(f"Session {session_id} is {session.status}")
        now = self.clock.now()
        if is_session_expired(session, now):
            raise SessionNotActiveError(f"Session {session_id} ran out of time")
        if self.store.get_participant(session_id, user_id) is not None:
            raise AlreadyJoinedError(f"User {user_id} already joined {session_id}")
        if self.store.count_participants(session_id) >= session.max_participants:
            raise CapacityExceededError(
                f"Session {session_id} is full ({session.max_participants})"
            )

        participant = Participant(
            session_id=session_id,
            user_id=user_id,
            joined_at=now,
            status=PARTICIPANT_ACTIVE,
            challenge_started_at=now,
        )
        self.store.add_participant(participant)
        self.publisher.publish(
            session_id,
            EVENT_PARTICIPANT_JOINED,
            {"participant": participant_payload(participant)},
        )
        self._publish_leaderboard(session_id)
        return participant

    async def record_action(
        self, session_id: UUID, user_id: UUID, action: ParticipantAction
    ) -> Participant:
        """Apply an action to the participant's current challenge."""
        self._require_active_session(session_id)
        async with self._lock_for(session_id, user_id):
            session = self._require_active_session(session_id)
            participant = self._require_participant(session_id, user_id)
            _ensure_not_terminal(participant)
            if self._expire(session, participant, self.clock.now()):
                raise ParticipantTerminalError(
                    f"User {user_id} ran out of time in session {session_id}"
                )
            if action.challenge_index != participant.current_challenge_index:
                raise InvalidChallengeIndexError(
                    f"Expected challenge {participant.current_challenge_index}, "
                    f"got {action.challenge_index}"
                )

            challenge = await self.challenge_service.get_challenge(
                session.challenge_ids[participant.current_challenge_index]
            )
            # The session may have been cancelled or completed during the lookup.
            session = self._require_active_session(session_id)
            now = self.clock.now()

            if action.kind == ACTION_START_CHALLENGE:
                updated = replace(participant, challenge_opened=True)
            elif action.kind == ACTION_REQUEST_TIP:
                updated = _apply_tip(participant, challenge, action, now)
            elif action.kind == ACTION_SUBMIT_SOLUTION:
                updated = _apply_submission(
                    session, participant, challenge, action, now
                )
            else:
                raise ValueError(f"Unknown action kind: {action.kind}")

            if updated != participant:
                self.store.replace_participant(updated)
                self._publish_progress(updated, action.kind)
            return updated

    async def expire_if_timed_out(self, session_id: UUID, user_id: UUID) -> bool:
        """Abandon the participant if its time budget ran out."""
        session = self.store.get_session(session_id)
        if session is None or session.status != SESSION_ACTIVE:
            return False
        async with self._lock_for(session_id, user_id):
            session = self.store.get_session(session_id)
            participant = self.store.get_participant(session_id, user_id)
            if session is None or session.status != SESSION_ACTIVE:
                return False
            if participant is None or participant.status != PARTICIPANT_ACTIVE:
                return False
            return self._expire(session, participant, self.clock.now())

    def abandon_remaining(self, session: LiveSessionRecord, now: datetime) -> int:
        """Abandon every still-active participant of an expired session.

        Runs without the per-participant locks. An action holding a lock
        re-checks the session status after its last await and never writes
        once the session has left ACTIVE.
        """
        abandoned = 0
        for participant in self.store.list_participants(session.id):
            if participant.status == PARTICIPANT_ACTIVE:
                self._abandon(participant, now)
                abandoned += 1
        return abandoned

    def forget_session(self, session_id: UUID) -> None:
        """Drop per-participant locks of a finished session."""
        for key in [key for key in self._locks if key[0] == session_id]:
            del self._locks[key]

    def _expire(
        self, session: LiveSessionRecord, participant: Participant, now: datetime
    ) -> bool:
        if is_time_exceeded(
            participant, session.time_limit_seconds, now
        ) or is_session_expired(session, now):
            self._abandon(participant, now)
            return True
        return False

    def _abandon(self, participant: Participant, now: datetime) -> Participant:
        abandoned = replace(
            participant,
            status=PARTICIPANT_ABANDONED,
            finished_at=now,
            end_reason=END_REASON_TIME_LIMIT,
        )
        self.store.replace_participant(abandoned)
        _logger.info(
            "Participant %s abandoned session %s: time limit exceeded",
            participant.user_id,
            participant.session_id,
        )
        self._publish_progress(abandoned, None)
        return abandoned

    def _publish_progress(
        self, participant: Participant, action_kind: str | None
    ) -> None:
        self.publisher.publish(
            participant.session_id,
            EVENT_PARTICIPANT_PROGRESS,
            {"participant": participant_payload(participant), "action": action_kind},
        )
        self._publish_leaderboard(participant.session_id)

    def _publish_leaderboard(self, session_id: UUID) -> None:
        ranked = rank_participants(self.store.list_participants(session_id))
        self.publisher.publish(
            session_id,
            EVENT_LEADERBOARD_UPDATE,
            {"leaderboard": leaderboard_payload(ranked)},
        )

    def _lock_for(self, session_id: UUID, user_id: UUID) -> asyncio.Lock:
        key = (session_id, user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _require_session(self, session_id: UUID) -> LiveSessionRecord:
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} does not exist")
        return session

    def _require_active_session(self, session_id: UUID) -> LiveSessionRecord:
        session = self._require_session(session_id)
        if session.status != SESSION_ACTIVE:
            raise SessionNotActiveError(f"Session {session_id} is {session.status}")
        return session

    def _require_participant(self, session_id: UUID, user_id: UUID) -> Participant:
        participant = self.store.get_participant(session_id, user_id)
        if participant is None:
            raise ParticipantNotFoundError(
                f"User {user_id} has not joined session {session_id}"
            )
        return participant


def _ensure_not_terminal(participant: Participant) -> None:
    if participant.status in PARTICIPANT_TERMINAL_STATUSES:
        raise ParticipantTerminalError(
            f"User {participant.user_id} is {participant.status}"
        )


def _apply_tip(
    participant: Participant,
    challenge: ChallengeDefinition,
    action: ParticipantAction,
    now: datetime,
) -> Participant:
    if action.tip_id is None:
        raise TipNotFoundError("request_tip requires a tip_id")
    tip = challenge.find_tip(action.tip_id)
    if tip is None:
        raise TipNotFoundError(
            f"Tip {action.tip_id} is not part of challenge {challenge.id}"
        )
    if tip.id in participant.current_tips:
        return participant
    remaining = seconds_until_tip(participant, tip, now)
    if remaining > 0:
        raise TipNotYetAvailableError(retry_after_seconds=remaining)
    return replace(
        participant,
        challenge_opened=True,
        current_tips=(*participant.current_tips, tip.id),
    )


def _apply_submission(
    session: LiveSessionRecord,
    participant: Participant,
    challenge: ChallengeDefinition,
    action: ParticipantAction,
    now: datetime,
) -> Participant:
    attempts = participant.current_attempts + 1
    if not action.passed:
        return replace(participant, challenge_opened=True, current_attempts=attempts)

    time_spent = seconds_on_current_challenge(participant, now)
    deductions = [
        tip.points_deduction
        for tip_id in participant.current_tips
        if (tip := challenge.find_tip(tip_id)) is not None
    ]
    score = compute_score(challenge.base_points, deductions, time_spent)
    record = ChallengeCompletionRecord(
        challenge_id=challenge.id,
        challenge_index=participant.current_challenge_index,
        completed_at=now,
        score=score,
        time_spent_seconds=time_spent,
        tips_used=participant.current_tips,
        attempts=attempts,
    )
    next_index = participant.current_challenge_index + 1
    finished = next_index >= len(session.challenge_ids)
    return replace(
        participant,
        current_challenge_index=next_index,
        score=participant.score + score,
        time_spent_seconds=participant.time_spent_seconds + time_spent,
        challenge_started_at=now,
        challenge_opened=False,
        current_tips=(),
        current_attempts=0,
        completions=(*participant.completions, record),
        status=PARTICIPANT_COMPLETED if finished else PARTICIPANT_ACTIVE,
        finished_at=now if finished else None,
        end_reason=END_REASON_FINISHED if finished else None,
    )
