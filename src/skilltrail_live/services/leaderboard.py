"""Leaderboard ranking for live sessions."""

from collections.abc import Iterable

from skilltrail_live.domain.live import LeaderboardEntry, Participant


def rank_participants(participants: Iterable[Participant]) -> list[LeaderboardEntry]:
    """Rank by score descending, then time spent ascending, then join order."""
    ordered = sorted(
        participants,
        key=lambda participant: (
            -participant.score,
            participant.time_spent_seconds,
            participant.joined_at,
            str(participant.user_id),
        ),
    )
    return [
        LeaderboardEntry(
            rank=position,
            user_id=participant.user_id,
            score=participant.score,
            time_spent_seconds=participant.time_spent_seconds,
            status=participant.status,
            current_challenge_index=participant.current_challenge_index,
        )
        for position, participant in enumerate(ordered, start=1)
    ]


def select_winner(participants: Iterable[Participant]) -> LeaderboardEntry | None:
    """Return the top-ranked participant, if anyone joined."""
    ranked = rank_participants(participants)
    return ranked[0] if ranked else None
