"""Supabase-backed challenge metadata lookup."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from skilltrail_live.domain.challenges import ChallengeDefinition, TipDefinition
from skilltrail_live.services.challenges import ChallengeCatalog


@dataclass
class SupabaseChallengeCatalog(ChallengeCatalog):
    """Reads challenges and their tips from the content tables."""

    client: Client

    def get_challenge(self, challenge_id: UUID) -> ChallengeDefinition | None:
        """Return a challenge with its tips, if present."""
        response = (
            self.client.table("challenges")
            .select("id, title, base_points, time_limit_seconds")
            .eq("id", str(challenge_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        tips_response = (
            self.client.table("challenge_tips")
            .select("id, points_deduction, available_after_seconds")
            .eq("challenge_id", str(challenge_id))
            .order("available_after_seconds")
            .execute()
        )
        tips = tuple(
            TipDefinition(
                id=UUID(tip["id"]),
                points_deduction=int(tip["points_deduction"]),
                available_after_seconds=int(tip["available_after_seconds"]),
            )
            for tip in tips_response.data or []
        )
        return ChallengeDefinition(
            id=UUID(row["id"]),
            title=row.get("title") or "",
            base_points=int(row["base_points"]),
            time_limit_seconds=int(row["time_limit_seconds"]),
            tips=tips,
        )
