from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProposalOption(BaseModel):
    option_number: int
    option_text: str


class VoteResultsMetadata(BaseModel):
    """Aggregate counters computed by the tally service."""

    model_config = ConfigDict(populate_by_name=True)

    total_voting_power: int = Field(default=0, alias="totalVotingPower")
    total_votes_cast: int = Field(default=0, alias="totalVotesCast")
    winning_option: int | None = Field(default=None, alias="winningOption")


class VoteResults(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    option_results: dict[str, int] = Field(default_factory=dict, alias="optionResults")
    metadata: VoteResultsMetadata = Field(default_factory=VoteResultsMetadata)
    computed_at: datetime | None = Field(default=None, alias="computedAt")

    def votes_for(self, option_number: int) -> int:
        return int(self.option_results.get(str(option_number), 0))


class Proposal(BaseModel):
    proposal_id: str
    title: str
    description: str = ""
    options: list[ProposalOption] = Field(default_factory=list)
    voting_deadline: datetime
    created_by: str | None = None
    vote_results: VoteResults | None = None

    def option(self, option_number: int) -> ProposalOption | None:
        for option in self.options:
            if option.option_number == option_number:
                return option
        return None

    def has_option(self, option_number: int) -> bool:
        return self.option(option_number) is not None
