from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from liquidvote.models.proposal import ProposalOption

SuggestionType = Literal["vote_option", "delegate"]


class SuggestionCategory(BaseModel):
    category_id: str
    title: str = ""


class SuggestedUser(BaseModel):
    unique_id: str
    first_name: str = ""
    last_name: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Suggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    suggestion_id: str
    suggestion_type: SuggestionType
    target_option_number: int | None = None
    target_user: str | None = None
    created_at: datetime
    category: SuggestionCategory = Field(alias="categories")
    user: SuggestedUser | None = Field(default=None, alias="users")
    proposal_option: ProposalOption | None = None


class SuggestionCreate(BaseModel):
    proposal_id: str
    category_id: str
    suggestion_type: SuggestionType
    target_option_number: int | None = None
    target_user: str | None = None

    def request_body(self) -> dict[str, str | int]:
        body: dict[str, str | int] = {
            "proposal_id": self.proposal_id,
            "suggestion_type": self.suggestion_type,
        }
        if self.suggestion_type == "delegate" and self.target_user:
            body["target_user"] = self.target_user
        if self.suggestion_type == "vote_option" and self.target_option_number is not None:
            body["target_option_number"] = self.target_option_number
        return body
