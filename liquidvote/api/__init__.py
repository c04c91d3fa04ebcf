from liquidvote.api.client import GovernanceClient
from liquidvote.api.errors import (
    ActionNotAllowed,
    GovernanceError,
    NetworkFailure,
    NotFound,
    PeriodEnded,
    RateLimited,
    StatusUnknown,
    TargetNotFound,
    classify_action_response,
)

__all__ = [
    "ActionNotAllowed",
    "GovernanceClient",
    "GovernanceError",
    "NetworkFailure",
    "NotFound",
    "PeriodEnded",
    "RateLimited",
    "StatusUnknown",
    "TargetNotFound",
    "classify_action_response",
]
