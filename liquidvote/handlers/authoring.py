from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from liquidvote.api.client import GovernanceClient
from liquidvote.api.errors import GovernanceError
from liquidvote.handlers.deadline import Clock, can_create_suggestions, utc_now
from liquidvote.models.category import Category
from liquidvote.models.proposal import Proposal
from liquidvote.models.suggestion import SuggestionCreate, SuggestionType

logger = logging.getLogger(__name__)


class SuggestionDraft(BaseModel):
    category_id: str = ""
    suggestion_type: SuggestionType = "vote_option"
    target_option_number: int | None = None
    target_user: str = ""


class AuthoringResult(BaseModel):
    ok: bool
    errors: list[str] = Field(default_factory=list)


def validate_draft(draft: SuggestionDraft, proposal: Proposal) -> list[str]:
    errors: list[str] = []
    if not draft.category_id:
        errors.append("Please select a category")
    if draft.suggestion_type == "vote_option":
        if draft.target_option_number is None or not proposal.has_option(draft.target_option_number):
            errors.append("Please select a valid voting option")
    if draft.suggestion_type == "delegate" and not draft.target_user.strip():
        errors.append("Please select or enter a user to delegate to")
    return errors


class SuggestionAuthoring:
    """Decides whether the viewer may publish suggestions on a proposal and submits them.

    Only owners of a category created by the proposal's author may suggest, and
    only until the suggestion cutoff before the voting deadline.
    """

    def __init__(
        self,
        client: GovernanceClient,
        proposal: Proposal,
        *,
        cutoff_minutes: int = 60,
        clock: Clock = utc_now,
        on_created: Callable[[], Awaitable[object]] | None = None,
    ) -> None:
        self.client = client
        self.proposal = proposal
        self.cutoff_minutes = cutoff_minutes
        self._clock = clock
        self._on_created = on_created
        self.categories: list[Category] = []
        self.loading = False
        self._loaded = False

    async def load_categories(self) -> list[Category]:
        self.loading = True
        try:
            self.categories = await self.client.list_organization_categories()
        except GovernanceError as exc:
            logger.warning("Could not load categories: %s", exc)
            self.categories = []
        finally:
            self.loading = False
        self._loaded = True
        return self.categories

    def window_open(self) -> bool:
        return can_create_suggestions(
            self.proposal.voting_deadline, self._clock(), cutoff_minutes=self.cutoff_minutes
        )

    def owns_matching_category(self) -> bool:
        if self.loading or not self._loaded or self.proposal.created_by is None:
            return False
        return any(category.created_by == self.proposal.created_by for category in self.categories)

    @property
    def can_create(self) -> bool:
        return self.window_open() and self.owns_matching_category()

    def eligible_categories(self) -> list[Category]:
        return [c for c in self.categories if c.created_by == self.proposal.created_by]

    async def submit(self, draft: SuggestionDraft) -> AuthoringResult:
        if not self.window_open():
            return AuthoringResult(
                ok=False,
                errors=["Suggestion creation period has ended (within 1 hour of voting deadline)"],
            )
        errors = validate_draft(draft, self.proposal)
        if errors:
            return AuthoringResult(ok=False, errors=errors)

        payload = SuggestionCreate(
            proposal_id=self.proposal.proposal_id,
            category_id=draft.category_id,
            suggestion_type=draft.suggestion_type,
            target_option_number=draft.target_option_number,
            target_user=draft.target_user.strip() or None,
        )
        try:
            await self.client.create_suggestion(payload)
        except GovernanceError as exc:
            logger.warning("Failed to create suggestion on %s: %s", self.proposal.proposal_id, exc)
            return AuthoringResult(ok=False, errors=[exc.message])

        logger.info(
            "Suggestion created on proposal %s",
            self.proposal.proposal_id,
            extra={
                "event_type": "suggestion.created",
                "ops_payload": {"proposal_id": self.proposal.proposal_id, "type": draft.suggestion_type},
            },
        )
        if self._on_created is not None:
            await self._on_created()
        return AuthoringResult(ok=True)
