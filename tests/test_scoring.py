"""Tests for time and score accounting."""

from dataclasses import replace
from datetime import timedelta
from uuid import uuid4

import pytest

from skilltrail_live.domain.live import (
    PARTICIPANT_ACTIVE,
    PARTICIPANT_COMPLETED,
    SESSION_ACTIVE,
    LiveSessionRecord,
    Participant,
)
from skilltrail_live.services.scoring import (
    compute_score,
    elapsed_seconds,
    is_session_expired,
    is_time_exceeded,
    seconds_until_tip,
)
from tests.conftest import START_TIME, make_tip


def _participant(**overrides) -> Participant:  # type: ignore[no-untyped-def]
    participant = Participant(
        session_id=uuid4(),
        user_id=uuid4(),
        joined_at=START_TIME,
        status=PARTICIPANT_ACTIVE,
        challenge_started_at=START_TIME,
    )
    return replace(participant, **overrides)


@pytest.mark.parametrize(
    ("base_points", "deductions", "expected"),
    [
        (100, [], 100),
        (100, [20, 30], 50),
        (100, [60, 60], 0),
        (0, [10], 0),
    ],
)
def test_compute_score_subtracts_tips_and_floors_at_zero(
    base_points: int, deductions: list[int], expected: int
) -> None:
    assert compute_score(base_points, deductions, time_spent_seconds=42) == expected
    assert expected == max(0, base_points - sum(deductions))


def test_elapsed_includes_current_challenge() -> None:
    participant = _participant(time_spent_seconds=30.0)
    now = START_TIME + timedelta(seconds=12)

    assert elapsed_seconds(participant, now) == 42.0


def test_elapsed_is_frozen_once_finished() -> None:
    participant = _participant(
        status=PARTICIPANT_COMPLETED,
        time_spent_seconds=50.0,
        finished_at=START_TIME + timedelta(seconds=50),
    )

    assert elapsed_seconds(participant, START_TIME + timedelta(hours=1)) == 50.0


def test_time_exceeded_is_strictly_greater_than_limit() -> None:
    participant = _participant()

    assert not is_time_exceeded(participant, 60, START_TIME + timedelta(seconds=60))
    assert is_time_exceeded(participant, 60, START_TIME + timedelta(seconds=61))


def test_session_expiry_uses_start_and_budget() -> None:
    session = LiveSessionRecord(
        id=uuid4(),
        trail_id=uuid4(),
        challenge_ids=(uuid4(),),
        max_participants=5,
        time_limit_seconds=120,
        status=SESSION_ACTIVE,
        created_at=START_TIME,
        started_at=START_TIME,
    )

    assert not is_session_expired(session, START_TIME + timedelta(seconds=120))
    assert is_session_expired(session, START_TIME + timedelta(seconds=121))
    assert not is_session_expired(
        replace(session, started_at=None), START_TIME + timedelta(days=1)
    )


def test_seconds_until_tip_counts_from_current_challenge() -> None:
    tip = make_tip(available_after_seconds=300)
    participant = _participant(
        challenge_started_at=START_TIME + timedelta(seconds=100)
    )

    assert seconds_until_tip(
        participant, tip, START_TIME + timedelta(seconds=220)
    ) == pytest.approx(180)
    assert seconds_until_tip(participant, tip, START_TIME + timedelta(seconds=400)) <= 0
