from liquidvote.models.category import Category
from liquidvote.models.proposal import Proposal, ProposalOption, VoteResults, VoteResultsMetadata
from liquidvote.models.status import DelegateInfo, VotingStatus, VotingStatusResponse
from liquidvote.models.suggestion import (
    SuggestedUser,
    Suggestion,
    SuggestionCategory,
    SuggestionCreate,
    SuggestionType,
)
from liquidvote.models.user import OrganizationUser

__all__ = [
    "Category",
    "DelegateInfo",
    "OrganizationUser",
    "Proposal",
    "ProposalOption",
    "SuggestedUser",
    "Suggestion",
    "SuggestionCategory",
    "SuggestionCreate",
    "SuggestionType",
    "VoteResults",
    "VoteResultsMetadata",
    "VotingStatus",
    "VotingStatusResponse",
]
