"""Pydantic request models for the live challenge API."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from skilltrail_live.domain.live import ParticipantAction


class CreateSessionRequest(BaseModel):
    """Payload for scheduling a live session."""

    trail_id: UUID
    challenge_ids: list[UUID] = Field(min_length=1)
    max_participants: int | None = Field(default=None, ge=1)


class CancelSessionRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class JoinSessionRequest(BaseModel):
    user_id: UUID


class ActionRequest(BaseModel):
    """Participant action against its current challenge."""

    user_id: UUID
    kind: Literal["start_challenge", "request_tip", "submit_solution"]
    challenge_index: int = Field(ge=0)
    tip_id: UUID | None = None
    passed: bool = True

    def to_action(self) -> ParticipantAction:
        return ParticipantAction(
            kind=self.kind,
            challenge_index=self.challenge_index,
            tip_id=self.tip_id,
            passed=self.passed,
        )
