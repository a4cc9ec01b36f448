"""Lifecycle controller for live challenge sessions.

Sessions move SCHEDULED -> ACTIVE -> COMPLETED, and may be CANCELLED from
SCHEDULED or ACTIVE. Status checks and the writes that follow them run
without awaiting in between, so each transition happens exactly once.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from uuid import UUID, uuid4

from skilltrail_live.domain.errors import (
    InvalidTransitionError,
    RegistryInvariantError,
    SessionNotFoundError,
)
from skilltrail_live.domain.live import (
    EVENT_CHALLENGE_COMPLETED,
    EVENT_SESSION_CANCELLED,
    PARTICIPANT_ACTIVE,
    PARTICIPANT_TERMINAL_STATUSES,
    SESSION_ACTIVE,
    SESSION_CANCELLED,
    SESSION_COMPLETED,
    SESSION_SCHEDULED,
    SESSION_TERMINAL_STATUSES,
    LeaderboardEntry,
    LiveSessionRecord,
    Participant,
    ParticipantAction,
)
from skilltrail_live.services.archive import SessionArchive
from skilltrail_live.services.broadcaster import SessionBroadcaster, Subscription
from skilltrail_live.services.challenges import ChallengeService
from skilltrail_live.services.clock import Clock
from skilltrail_live.services.leaderboard import rank_participants, select_winner
from skilltrail_live.services.participants import ParticipantTracker
from skilltrail_live.services.payloads import (
    leaderboard_payload,
    participant_payload,
    session_payload,
)
from skilltrail_live.services.registry import SessionRegistry
from skilltrail_live.services.scoring import is_session_expired
from skilltrail_live.services.session_store import LiveSessionStore

_logger = logging.getLogger(__name__)


@dataclass
class LiveChallengeController:
    """Entry point for every live session operation."""

    store: LiveSessionStore
    registry: SessionRegistry
    tracker: ParticipantTracker
    broadcaster: SessionBroadcaster
    challenge_service: ChallengeService
    archive: SessionArchive
    clock: Clock
    default_max_participants: int = 100

    async def create_session(
        self,
        trail_id: UUID,
        challenge_ids: list[UUID],
        max_participants: int | None = None,
    ) -> LiveSessionRecord:
        """Schedule a new session over an ordered list of challenges."""
        if not challenge_ids:
            raise ValueError("A live session needs at least one challenge")
        challenges = await self.challenge_service.get_sequence(challenge_ids)
        session = LiveSessionRecord(
            id=uuid4(),
            trail_id=trail_id,
            challenge_ids=tuple(challenge_ids),
            max_participants=max_participants or self.default_max_participants,
            time_limit_seconds=sum(
                challenge.time_limit_seconds for challenge in challenges
            ),
            status=SESSION_SCHEDULED,
            created_at=self.clock.now(),
        )
        self.store.add_session(session)
        _logger.info(
            "Scheduled session %s with %s challenges (%ss)",
            session.id,
            len(challenges),
            session.time_limit_seconds,
        )
        return session

    async def activate_session(self, session_id: UUID) -> LiveSessionRecord:
        """Start a scheduled session if no other session is active."""
        session = self.get_session(session_id)
        if session.status != SESSION_SCHEDULED:
            raise InvalidTransitionError(
                f"Cannot activate session {session_id} from {session.status}"
            )
        self.registry.try_activate(session_id)
        activated = replace(session, status=SESSION_ACTIVE, started_at=self.clock.now())
        self.store.replace_session(activated)
        self._verify_single_active()
        _logger.info("Activated session %s", session_id)
        return activated

    async def cancel_session(
        self, session_id: UUID, reason: str | None = None
    ) -> LiveSessionRecord:
        """Cancel a scheduled or active session."""
        session = self.get_session(session_id)
        if session.status in SESSION_TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Cannot cancel session {session_id} from {session.status}"
            )
        cancelled = replace(
            session,
            status=SESSION_CANCELLED,
            ended_at=self.clock.now(),
            cancel_reason=reason,
        )
        self.store.replace_session(cancelled)
        self.registry.release(session_id)
        self._verify_single_active()
        self.broadcaster.publish(
            session_id,
            EVENT_SESSION_CANCELLED,
            {
                "session": session_payload(cancelled),
                "leaderboard": leaderboard_payload(self.leaderboard(session_id)),
            },
        )
        _logger.info("Cancelled session %s (reason=%s)", session_id, reason)
        await self._finalize(cancelled)
        return cancelled

    async def join_session(self, session_id: UUID, user_id: UUID) -> Participant:
        """Enroll a user; a join after the deadline completes the session."""
        try:
            return self.tracker.join(session_id, user_id)
        finally:
            completed = self._complete_if_finished(session_id)
            if completed is not None:
                await self._finalize(completed)

    async def submit_action(
        self, session_id: UUID, user_id: UUID, action: ParticipantAction
    ) -> Participant:
        """Apply a participant action, then check whether the session is over."""
        try:
            return await self.tracker.record_action(session_id, user_id, action)
        finally:
            completed = self._complete_if_finished(session_id)
            if completed is not None:
                await self._finalize(completed)

    async def sweep(self) -> list[LiveSessionRecord]:
        """Expire idle participants and complete sessions that are over."""
        completed: list[LiveSessionRecord] = []
        for session in self.store.list_sessions(SESSION_ACTIVE):
            for participant in self.store.list_participants(session.id):
                if participant.status == PARTICIPANT_ACTIVE:
                    await self.tracker.expire_if_timed_out(
                        session.id, participant.user_id
                    )
            finished = self._complete_if_finished(session.id)
            if finished is not None:
                await self._finalize(finished)
                completed.append(finished)
        self._verify_single_active()
        return completed

    async def run_sweeper(self, stop: asyncio.Event, interval_seconds: float) -> None:
        """Sweep periodically until the stop event is set."""
        while not stop.is_set():
            try:
                await self.sweep()
            except RegistryInvariantError:
                _logger.exception("Active session invariant violated")
                raise
            except Exception:
                _logger.exception("Live session sweep failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except TimeoutError:
                continue

    def get_session(self, session_id: UUID) -> LiveSessionRecord:
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} does not exist")
        return session

    def get_active_session(self) -> LiveSessionRecord | None:
        session_id = self.registry.active_session_id
        if session_id is None:
            return None
        return self.store.get_session(session_id)

    def list_participants(self, session_id: UUID) -> list[Participant]:
        self.get_session(session_id)
        return self.store.list_participants(session_id)

    def leaderboard(self, session_id: UUID) -> list[LeaderboardEntry]:
        """Rank a point-in-time copy of the session's participants."""
        return rank_participants(self.list_participants(session_id))

    def snapshot(self, session_id: UUID) -> dict[str, object]:
        """Full current state of a session, as sent to new viewers."""
        session = self.get_session(session_id)
        participants = self.store.list_participants(session_id)
        return {
            "session": session_payload(session),
            "participants": [participant_payload(item) for item in participants],
            "leaderboard": leaderboard_payload(rank_participants(participants)),
            "last_sequence": self.broadcaster.last_sequence(session_id),
        }

    def subscribe(self, session_id: UUID) -> Subscription:
        """Open a live feed: a snapshot first, then later events only."""
        snapshot = self.snapshot(session_id)
        subscription = self.broadcaster.subscribe(session_id, snapshot)
        if self.get_session(session_id).status in SESSION_TERMINAL_STATUSES:
            self.broadcaster.unsubscribe(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self.broadcaster.unsubscribe(subscription)

    def _complete_if_finished(self, session_id: UUID) -> LiveSessionRecord | None:
        session = self.store.get_session(session_id)
        if session is None or session.status != SESSION_ACTIVE:
            return None
        now = self.clock.now()
        participants = self.store.list_participants(session_id)
        all_terminal = bool(participants) and all(
            participant.status in PARTICIPANT_TERMINAL_STATUSES
            for participant in participants
        )
        expired = is_session_expired(session, now)
        if not (all_terminal or expired):
            return None
        if expired:
            self.tracker.abandon_remaining(session, now)

        participants = self.store.list_participants(session_id)
        ranked = rank_participants(participants)
        winner = select_winner(participants)
        completed = replace(
            session,
            status=SESSION_COMPLETED,
            ended_at=now,
            winner_user_id=winner.user_id if winner else None,
        )
        self.store.replace_session(completed)
        self.registry.release(session_id)
        self._verify_single_active()
        self.broadcaster.publish(
            session_id,
            EVENT_CHALLENGE_COMPLETED,
            {
                "session": session_payload(completed),
                "winner": leaderboard_payload([winner])[0] if winner else None,
                "leaderboard": leaderboard_payload(ranked),
            },
        )
        _logger.info(
            "Completed session %s (winner=%s, expired=%s)",
            session_id,
            completed.winner_user_id,
            expired,
        )
        return completed

    async def _finalize(self, session: LiveSessionRecord) -> None:
        self.broadcaster.close_session(session.id)
        self.tracker.forget_session(session.id)
        participants = self.store.list_participants(session.id)
        try:
            await asyncio.to_thread(self.archive.archive_session, session, participants)
        except Exception:
            _logger.exception("Failed to archive session %s", session.id)

    def _verify_single_active(self) -> None:
        active = self.store.list_sessions(SESSION_ACTIVE)
        if len(active) > 1:
            raise RegistryInvariantError(
                f"{len(active)} sessions are active at once: "
                f"{[str(session.id) for session in active]}"
            )
        expected = active[0].id if active else None
        holder = self.registry.active_session_id
        if holder != expected:
            raise RegistryInvariantError(
                f"Registry holds {holder} but the active session is {expected}"
            )
