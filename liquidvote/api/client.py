from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from liquidvote.api.errors import (
    ActionName,
    GovernanceError,
    NetworkFailure,
    NotFound,
    StatusUnknown,
    classify_action_response,
)
from liquidvote.config import Settings, get_settings
from liquidvote.models.category import Category
from liquidvote.models.proposal import Proposal
from liquidvote.models.status import VotingStatusResponse
from liquidvote.models.suggestion import Suggestion, SuggestionCreate
from liquidvote.models.user import OrganizationUser
from liquidvote.ops.events import CORRELATION_ID_HEADER, get_correlation_id, new_correlation_id

logger = logging.getLogger(__name__)


class GovernanceClient:
    """Thin async wrapper over the proposal, suggestion and category endpoints."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        headers = {"Accept": "application/json"}
        if self.settings.api_token:
            headers["Authorization"] = f"Bearer {self.settings.api_token}"
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.http_timeout_seconds,
            headers=headers,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> GovernanceClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _request_headers(self) -> dict[str, str]:
        return {CORRELATION_ID_HEADER: get_correlation_id() or new_correlation_id()}

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            return await self.client.get(path, params=params, headers=self._request_headers())
        except httpx.RequestError as exc:
            logger.warning("GET %s failed: %s", path, exc)
            raise NetworkFailure(str(exc) or type(exc).__name__) from exc

    async def get_proposal(self, proposal_id: str) -> Proposal:
        response = await self._get(f"/proposals/{proposal_id}")
        if response.status_code == 404:
            raise NotFound(f"Proposal {proposal_id} not found", status_code=404)
        if response.is_error:
            raise NetworkFailure(
                f"Failed to load proposal {proposal_id}", status_code=response.status_code
            )
        payload = response.json()
        if isinstance(payload, dict) and "proposal" in payload:
            merged = dict(payload["proposal"])
            if payload.get("vote_results") is not None:
                merged["vote_results"] = payload["vote_results"]
            payload = merged
        return Proposal.model_validate(payload)

    async def get_voting_status(self, proposal_id: str) -> VotingStatusResponse:
        try:
            response = await self._get(f"/proposals/{proposal_id}/voting-status")
        except NetworkFailure as exc:
            raise StatusUnknown(exc.message) from exc
        if response.is_error:
            raise StatusUnknown(
                f"Voting status unavailable for {proposal_id}", status_code=response.status_code
            )
        try:
            return VotingStatusResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.warning("Malformed voting status for %s: %s", proposal_id, exc)
            raise StatusUnknown(f"Malformed voting status for {proposal_id}") from exc

    async def list_suggestions(self, proposal_id: str) -> list[Suggestion]:
        response = await self._get(f"/proposals/{proposal_id}/suggestions")
        if response.is_error:
            raise NetworkFailure(
                f"Failed to load suggestions for {proposal_id}", status_code=response.status_code
            )
        payload = response.json()
        items = payload.get("suggestions", []) if isinstance(payload, dict) else payload
        return [Suggestion.model_validate(item) for item in items]

    async def list_organization_categories(self) -> list[Category]:
        response = await self._get(
            "/categories/organization",
            params={"limit": self.settings.categories_page_limit, "offset": 0},
        )
        if response.is_error:
            raise NetworkFailure("Failed to load categories", status_code=response.status_code)
        payload = response.json()
        items = payload.get("categories", []) if isinstance(payload, dict) else payload
        return [Category.model_validate(item) for item in items]

    async def list_organization_users(self) -> list[OrganizationUser]:
        response = await self._get("/user/organization/users")
        if response.is_error:
            raise NetworkFailure("Failed to load organization users", status_code=response.status_code)
        payload = response.json()
        items = payload.get("users", []) if isinstance(payload, dict) else payload
        return [OrganizationUser.model_validate(item) for item in items]

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        try:
            return await self.client.post(path, json=body, headers=self._request_headers())
        except httpx.RequestError as exc:
            logger.warning("POST %s failed: %s", path, exc)
            raise NetworkFailure(str(exc) or type(exc).__name__) from exc

    async def _submit_action(self, action: ActionName, proposal_id: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self._post(f"/proposals/{proposal_id}/{action}", body)
        payload = _json_or_none(response)
        if response.is_success:
            return payload or {}
        raise classify_action_response(
            response.status_code,
            payload,
            action,
            default_retry_after=self.settings.default_retry_after_seconds,
        )

    async def cast_vote(self, proposal_id: str, option_number: int) -> dict[str, Any]:
        return await self._submit_action("vote", proposal_id, {"option_number": option_number})

    async def delegate(self, proposal_id: str, target_user: str) -> dict[str, Any]:
        return await self._submit_action("delegate", proposal_id, {"target_user": target_user})

    async def create_suggestion(self, draft: SuggestionCreate) -> dict[str, Any]:
        response = await self._post(f"/categories/{draft.category_id}/suggest", draft.request_body())
        payload = _json_or_none(response)
        if response.is_error:
            error = (payload or {}).get("error") or "Failed to create suggestion"
            raise GovernanceError(str(error), status_code=response.status_code)
        return payload or {}


def _json_or_none(response: httpx.Response) -> dict[str, Any] | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None
