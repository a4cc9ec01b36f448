"""Challenge metadata lookup with caching."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from skilltrail_live.domain.challenges import ChallengeDefinition
from skilltrail_live.domain.errors import ChallengeNotFoundError
from skilltrail_live.services.cache import Cache

_logger = logging.getLogger(__name__)


class ChallengeCatalog(Protocol):
    """Lookup interface for challenge metadata owned by the content service."""

    def get_challenge(self, challenge_id: UUID) -> ChallengeDefinition | None:
        """Return the challenge definition, if it exists."""


@dataclass
class ChallengeService:
    """Resolves challenge metadata through the catalog with a TTL cache."""

    catalog: ChallengeCatalog
    cache: Cache
    ttl_seconds: int = 300
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    async def get_challenge(self, challenge_id: UUID) -> ChallengeDefinition:
        """Return a challenge definition or raise ChallengeNotFoundError."""
        cache_key = f"challenge:{challenge_id}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, ChallengeDefinition):
            return cached

        challenge = await self._lookup_with_retry(challenge_id)
        if challenge is None:
            raise ChallengeNotFoundError(f"Challenge {challenge_id} does not exist")
        self.cache.set(cache_key, challenge, ttl_seconds=self.ttl_seconds)
        return challenge

    async def get_sequence(
        self, challenge_ids: list[UUID] | tuple[UUID, ...]
    ) -> list[ChallengeDefinition]:
        """Resolve an ordered list of challenges."""
        return [await self.get_challenge(item) for item in challenge_ids]

    async def _lookup_with_retry(
        self, challenge_id: UUID
    ) -> ChallengeDefinition | None:
        attempt = 0
        while True:
            try:
                return await asyncio.to_thread(self.catalog.get_challenge, challenge_id)
            except Exception as exc:
                attempt += 1
                _logger.warning(
                    "Challenge lookup failed (attempt %s/%s): %s: %s",
                    attempt,
                    self.retry_attempts + 1,
                    challenge_id,
                    exc,
                )
                if attempt > self.retry_attempts:
                    raise
                await asyncio.sleep(self.retry_delay_seconds)
