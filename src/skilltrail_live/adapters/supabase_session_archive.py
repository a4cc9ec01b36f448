"""Supabase repository for finished live sessions."""

from dataclasses import dataclass

from supabase import Client

from skilltrail_live.domain.live import LiveSessionRecord, Participant
from skilltrail_live.services.archive import SessionArchive
from skilltrail_live.services.payloads import completion_payload


@dataclass
class SupabaseSessionArchive(SessionArchive):
    """Writes terminal sessions and their participants for analytics."""

    client: Client

    def archive_session(
        self, session: LiveSessionRecord, participants: list[Participant]
    ) -> None:
        """Upsert the session row and insert one row per participant."""
        self.client.table("live_sessions").upsert(
            {
                "id": str(session.id),
                "trail_id": str(session.trail_id),
                "challenge_ids": [str(item) for item in session.challenge_ids],
                "max_participants": session.max_participants,
                "time_limit_seconds": session.time_limit_seconds,
                "status": session.status,
                "created_at": session.created_at.isoformat(),
                "started_at": (
                    session.started_at.isoformat() if session.started_at else None
                ),
                "ended_at": session.ended_at.isoformat() if session.ended_at else None,
                "winner_user_id": (
                    str(session.winner_user_id) if session.winner_user_id else None
                ),
                "cancel_reason": session.cancel_reason,
            }
        ).execute()
        if not participants:
            return
        self.client.table("live_session_participants").insert(
            [
                {
                    "session_id": str(participant.session_id),
                    "user_id": str(participant.user_id),
                    "status": participant.status,
                    "score": participant.score,
                    "time_spent_seconds": participant.time_spent_seconds,
                    "current_challenge_index": participant.current_challenge_index,
                    "joined_at": participant.joined_at.isoformat(),
                    "finished_at": (
                        participant.finished_at.isoformat()
                        if participant.finished_at
                        else None
                    ),
                    "end_reason": participant.end_reason,
                    "completions_json": [
                        completion_payload(record) for record in participant.completions
                    ],
                }
                for participant in participants
            ]
        ).execute()

    def list_archived_sessions(self, limit: int) -> list[dict[str, object]]:
        """Return recently finished sessions, newest first."""
        response = (
            self.client.table("live_sessions")
            .select(
                "id, trail_id, status, started_at, ended_at, winner_user_id, "
                "cancel_reason"
            )
            .order("ended_at", desc=True)
            .limit(limit)
            .execute()
        )
        return response.data or []
