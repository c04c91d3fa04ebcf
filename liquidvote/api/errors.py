from __future__ import annotations

from typing import Any, Literal

ActionName = Literal["vote", "delegate"]


class GovernanceError(Exception):
    """Base class for failures talking to the governance API."""

    kind = "generic"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RateLimited(GovernanceError):
    kind = "rate_limited"

    def __init__(self, message: str, *, retry_after: int, status_code: int | None = 429) -> None:
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class ActionNotAllowed(GovernanceError):
    kind = "not_allowed"

    def __init__(
        self,
        reason: str,
        *,
        category: Literal["delegation_policy", "invalid_option", "invalid_target"] = "invalid_target",
        status_code: int | None = 400,
    ) -> None:
        super().__init__(reason, status_code=status_code)
        self.reason = reason
        self.category = category


class PeriodEnded(GovernanceError):
    kind = "period_ended"


class TargetNotFound(GovernanceError):
    kind = "target_not_found"


class NotFound(GovernanceError):
    kind = "not_found"


class NetworkFailure(GovernanceError):
    kind = "network"


class StatusUnknown(GovernanceError):
    kind = "status_unknown"


def _error_text(payload: dict[str, Any] | None) -> str:
    if not payload:
        return ""
    value = payload.get("error") or payload.get("detail") or ""
    return str(value)


def classify_action_response(
    status_code: int,
    payload: dict[str, Any] | None,
    action: ActionName,
    *,
    default_retry_after: int = 60,
) -> GovernanceError:
    """Map a non-2xx response of a write endpoint to its error kind."""
    error = _error_text(payload)
    if status_code == 429:
        raw = (payload or {}).get("cooldown_seconds")
        try:
            retry_after = int(raw) if raw is not None else default_retry_after
        except (TypeError, ValueError):
            retry_after = default_retry_after
        return RateLimited(error or "Cooldown active", retry_after=retry_after)
    if status_code == 410:
        return PeriodEnded(error or "Voting period has ended", status_code=410)
    if status_code == 404 and action == "delegate":
        return TargetNotFound(error or "Target user not found", status_code=404)
    if status_code == 400:
        if "Delegation not allowed" in error:
            return ActionNotAllowed(error, category="delegation_policy")
        if action == "vote" and "Option" in error:
            return ActionNotAllowed(error, category="invalid_option")
        return ActionNotAllowed(error or "Invalid request", category="invalid_target")
    return NetworkFailure(error or f"Unexpected response {status_code}", status_code=status_code)
