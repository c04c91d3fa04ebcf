from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from liquidvote.models.proposal import ProposalOption


class DelegateInfo(BaseModel):
    unique_id: str
    name: str = ""


class VotingStatus(BaseModel):
    """Server-confirmed participation of the current user on one proposal."""

    has_voted: bool = False
    voted_option: int | None = None
    selected_option: ProposalOption | None = None
    has_delegated: bool = False
    delegate_info: DelegateInfo | None = None
    can_act: bool = False
    cooldown_active: bool = False


class VotingStatusResponse(BaseModel):
    proposal_id: str | None = None
    proposal_title: str | None = None
    voting_deadline: datetime | None = None
    time_remaining_seconds: float = 0
    is_active: bool = True
    user_status: VotingStatus
    options: list[ProposalOption] = Field(default_factory=list)
