"""JSON payload builders shared by events and API responses."""

from datetime import datetime

from skilltrail_live.domain.live import (
    ChallengeCompletionRecord,
    LeaderboardEntry,
    LiveSessionRecord,
    Participant,
    SessionEvent,
)


def session_payload(session: LiveSessionRecord) -> dict[str, object]:
    return {
        "id": str(session.id),
        "trail_id": str(session.trail_id),
        "challenge_ids": [str(challenge_id) for challenge_id in session.challenge_ids],
        "max_participants": session.max_participants,
        "time_limit_seconds": session.time_limit_seconds,
        "status": session.status,
        "created_at": _isoformat(session.created_at),
        "started_at": _isoformat(session.started_at),
        "ended_at": _isoformat(session.ended_at),
        "winner_user_id": (
            str(session.winner_user_id) if session.winner_user_id else None
        ),
        "cancel_reason": session.cancel_reason,
    }


def completion_payload(record: ChallengeCompletionRecord) -> dict[str, object]:
    return {
        "challenge_id": str(record.challenge_id),
        "challenge_index": record.challenge_index,
        "completed_at": _isoformat(record.completed_at),
        "score": record.score,
        "time_spent_seconds": record.time_spent_seconds,
        "tips_used": [str(tip_id) for tip_id in record.tips_used],
        "attempts": record.attempts,
    }


def participant_payload(participant: Participant) -> dict[str, object]:
    return {
        "session_id": str(participant.session_id),
        "user_id": str(participant.user_id),
        "status": participant.status,
        "joined_at": _isoformat(participant.joined_at),
        "current_challenge_index": participant.current_challenge_index,
        "score": participant.score,
        "time_spent_seconds": participant.time_spent_seconds,
        "challenge_started_at": _isoformat(participant.challenge_started_at),
        "challenge_opened": participant.challenge_opened,
        "current_tips": [str(tip_id) for tip_id in participant.current_tips],
        "current_attempts": participant.current_attempts,
        "completions": [completion_payload(item) for item in participant.completions],
        "finished_at": _isoformat(participant.finished_at),
        "end_reason": participant.end_reason,
    }


def leaderboard_payload(entries: list[LeaderboardEntry]) -> list[dict[str, object]]:
    return [
        {
            "rank": entry.rank,
            "user_id": str(entry.user_id),
            "score": entry.score,
            "time_spent_seconds": entry.time_spent_seconds,
            "status": entry.status,
            "current_challenge_index": entry.current_challenge_index,
        }
        for entry in entries
    ]


def event_payload(event: SessionEvent) -> dict[str, object]:
    """Wire format of an event sent to live viewers."""
    return {
        "session_id": str(event.session_id),
        "sequence": event.sequence,
        "kind": event.kind,
        "occurred_at": _isoformat(event.occurred_at),
        "payload": event.payload,
    }


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
