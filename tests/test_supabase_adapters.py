"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from datetime import timedelta
from uuid import uuid4

from skilltrail_live.adapters.supabase_challenge_catalog import (
    SupabaseChallengeCatalog,
)
from skilltrail_live.adapters.supabase_session_archive import SupabaseSessionArchive
from skilltrail_live.domain.live import (
    PARTICIPANT_COMPLETED,
    SESSION_COMPLETED,
    ChallengeCompletionRecord,
    LiveSessionRecord,
    Participant,
)
from tests.conftest import START_TIME


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "upsert": []}
    )
    payloads: list[tuple[str, object]] = field(default_factory=list)
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    orders: list[tuple[str, bool]] = field(default_factory=list)

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.payloads.append(("insert", payload))
        return self

    def upsert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "upsert"
        self.payloads.append(("upsert", payload))
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, column: str, desc: bool = False) -> "FakeTable":
        self.orders.append((column, desc))
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def test_challenge_catalog_reads_challenge_and_tips() -> None:
    client = FakeSupabaseClient()
    challenge_id = uuid4()
    tip_id = uuid4()
    client.table("challenges").queue(
        "select",
        [
            {
                "id": str(challenge_id),
                "title": "Reverse a list",
                "base_points": 100,
                "time_limit_seconds": 600,
            }
        ],
    )
    client.table("challenge_tips").queue(
        "select",
        [
            {
                "id": str(tip_id),
                "points_deduction": 15,
                "available_after_seconds": 300,
            }
        ],
    )

    challenge = SupabaseChallengeCatalog(client).get_challenge(challenge_id)

    assert challenge is not None
    assert challenge.id == challenge_id
    assert challenge.base_points == 100
    assert challenge.time_limit_seconds == 600
    assert challenge.find_tip(tip_id) is not None
    assert challenge.tips[0].available_after_seconds == 300
    assert ("challenge_id", str(challenge_id)) in client.table(
        "challenge_tips"
    ).last_filters


def test_challenge_catalog_missing_challenge() -> None:
    client = FakeSupabaseClient()

    assert SupabaseChallengeCatalog(client).get_challenge(uuid4()) is None
    assert "challenge_tips" not in client.tables


def test_session_archive_writes_session_and_participants() -> None:
    client = FakeSupabaseClient()
    session = LiveSessionRecord(
        id=uuid4(),
        trail_id=uuid4(),
        challenge_ids=(uuid4(),),
        max_participants=10,
        time_limit_seconds=60,
        status=SESSION_COMPLETED,
        created_at=START_TIME,
        started_at=START_TIME,
        ended_at=START_TIME + timedelta(seconds=50),
    )
    user_id = uuid4()
    participant = Participant(
        session_id=session.id,
        user_id=user_id,
        joined_at=START_TIME,
        status=PARTICIPANT_COMPLETED,
        challenge_started_at=START_TIME,
        current_challenge_index=1,
        score=100,
        time_spent_seconds=50.0,
        completions=(
            ChallengeCompletionRecord(
                challenge_id=session.challenge_ids[0],
                challenge_index=0,
                completed_at=START_TIME + timedelta(seconds=50),
                score=100,
                time_spent_seconds=50.0,
                tips_used=(),
                attempts=1,
            ),
        ),
        finished_at=START_TIME + timedelta(seconds=50),
        end_reason="finished",
    )

    SupabaseSessionArchive(client).archive_session(session, [participant])

    action, session_row = client.table("live_sessions").payloads[0]
    assert action == "upsert"
    assert isinstance(session_row, dict)
    assert session_row["status"] == SESSION_COMPLETED
    assert session_row["winner_user_id"] is None
    action, rows = client.table("live_session_participants").payloads[0]
    assert action == "insert"
    assert isinstance(rows, list)
    assert rows[0]["user_id"] == str(user_id)
    assert rows[0]["completions_json"][0]["score"] == 100


def test_session_archive_skips_empty_participant_list() -> None:
    client = FakeSupabaseClient()
    session = LiveSessionRecord(
        id=uuid4(),
        trail_id=uuid4(),
        challenge_ids=(uuid4(),),
        max_participants=10,
        time_limit_seconds=60,
        status=SESSION_COMPLETED,
        created_at=START_TIME,
    )

    SupabaseSessionArchive(client).archive_session(session, [])

    assert "live_session_participants" not in client.tables


def test_session_archive_lists_recent_sessions() -> None:
    client = FakeSupabaseClient()
    table = client.table("live_sessions")
    table.queue("select", [{"id": "session-1", "status": SESSION_COMPLETED}])

    sessions = SupabaseSessionArchive(client).list_archived_sessions(limit=5)

    assert sessions == [{"id": "session-1", "status": SESSION_COMPLETED}]
    assert table.orders == [("ended_at", True)]
