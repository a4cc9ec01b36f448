"""Tests for cached challenge lookups."""

import asyncio
from uuid import UUID, uuid4

import pytest

from skilltrail_live.domain.challenges import ChallengeDefinition
from skilltrail_live.domain.errors import ChallengeNotFoundError
from skilltrail_live.services.cache import InMemoryCache
from skilltrail_live.services.challenges import ChallengeCatalog, ChallengeService
from tests.conftest import InMemoryChallengeCatalog, ManualClock


class FlakyCatalog(ChallengeCatalog):
    def __init__(self, challenge: ChallengeDefinition, failures: int) -> None:
        self.challenge = challenge
        self.failures = failures
        self.calls = 0

    def get_challenge(self, challenge_id: UUID) -> ChallengeDefinition | None:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError("timeout")
        return self.challenge


def test_lookup_is_cached_until_ttl(
    catalog: InMemoryChallengeCatalog, clock: ManualClock
) -> None:
    challenge = catalog.add()
    service = ChallengeService(catalog, InMemoryCache(clock), ttl_seconds=60)

    asyncio.run(service.get_challenge(challenge.id))
    asyncio.run(service.get_challenge(challenge.id))
    assert catalog.lookups == [challenge.id]

    clock.advance(61)
    asyncio.run(service.get_challenge(challenge.id))
    assert catalog.lookups == [challenge.id, challenge.id]


def test_unknown_challenge_raises(catalog: InMemoryChallengeCatalog) -> None:
    service = ChallengeService(catalog, InMemoryCache())

    with pytest.raises(ChallengeNotFoundError):
        asyncio.run(service.get_challenge(uuid4()))


def test_sequence_keeps_order(catalog: InMemoryChallengeCatalog) -> None:
    first = catalog.add(title="first")
    second = catalog.add(title="second")
    service = ChallengeService(catalog, InMemoryCache())

    sequence = asyncio.run(service.get_sequence([second.id, first.id]))

    assert [item.title for item in sequence] == ["second", "first"]


def test_lookup_retries_once(catalog: InMemoryChallengeCatalog) -> None:
    challenge = catalog.add()
    flaky = FlakyCatalog(challenge, failures=1)
    service = ChallengeService(flaky, InMemoryCache(), retry_delay_seconds=0)

    assert asyncio.run(service.get_challenge(challenge.id)) == challenge
    assert flaky.calls == 2


def test_lookup_gives_up_after_retries(catalog: InMemoryChallengeCatalog) -> None:
    challenge = catalog.add()
    flaky = FlakyCatalog(challenge, failures=5)
    service = ChallengeService(flaky, InMemoryCache(), retry_delay_seconds=0)

    with pytest.raises(RuntimeError):
        asyncio.run(service.get_challenge(challenge.id))
    assert flaky.calls == 2

