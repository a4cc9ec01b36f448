"""Time and score accounting for live challenge participants."""

from collections.abc import Iterable
from datetime import datetime, timedelta

from skilltrail_live.domain.challenges import TipDefinition
from skilltrail_live.domain.live import LiveSessionRecord, Participant


def compute_score(
    base_points: int, tip_deductions: Iterable[int], time_spent_seconds: float
) -> int:
    """Return the awarded score for a solved challenge.

    The score is the challenge's base points minus every used tip's deduction,
    floored at zero. Time spent is part of the contract but does not reduce
    the score; it only feeds ranking and the time limit.
    """
    del time_spent_seconds
    return max(0, base_points - sum(tip_deductions))


def seconds_on_current_challenge(participant: Participant, now: datetime) -> float:
    """Seconds since the participant's current challenge became current."""
    return max(0.0, (now - participant.challenge_started_at).total_seconds())


def elapsed_seconds(participant: Participant, now: datetime) -> float:
    """Cumulative time spent, including the challenge in progress."""
    if participant.finished_at is not None:
        return participant.time_spent_seconds
    return participant.time_spent_seconds + seconds_on_current_challenge(
        participant, now
    )


def is_time_exceeded(
    participant: Participant, time_limit_seconds: int, now: datetime
) -> bool:
    """Return true once the participant has used more than the session budget."""
    return elapsed_seconds(participant, now) > time_limit_seconds


def session_deadline(session: LiveSessionRecord) -> datetime | None:
    """Moment the session's time budget runs out, once it has started."""
    if session.started_at is None:
        return None
    return session.started_at + timedelta(seconds=session.time_limit_seconds)


def is_session_expired(session: LiveSessionRecord, now: datetime) -> bool:
    deadline = session_deadline(session)
    return deadline is not None and now > deadline


def seconds_until_tip(
    participant: Participant, tip: TipDefinition, now: datetime
) -> float:
    """Seconds left before the tip unlocks; zero or less means available."""
    return tip.available_after_seconds - seconds_on_current_challenge(
        participant, now
    )
