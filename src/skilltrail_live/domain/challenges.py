"""Domain models for challenge metadata."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class TipDefinition:
    """Hint that unlocks after a delay and costs points when used."""

    id: UUID
    points_deduction: int
    available_after_seconds: int


@dataclass(frozen=True)
class ChallengeDefinition:
    """Scoring and timing metadata for a single challenge."""

    id: UUID
    title: str
    base_points: int
    time_limit_seconds: int
    tips: tuple[TipDefinition, ...] = ()

    def find_tip(self, tip_id: UUID) -> TipDefinition | None:
        """Return the tip with the given id, if the challenge defines it."""
        for tip in self.tips:
            if tip.id == tip_id:
                return tip
        return None
