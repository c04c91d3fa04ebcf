from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel

from liquidvote.api.client import GovernanceClient
from liquidvote.api.errors import GovernanceError
from liquidvote.handlers.actions import (
    BUSY_MESSAGE,
    COOLDOWN_MESSAGE,
    STATUS_UNKNOWN_MESSAGE,
    ActionController,
    ActionOutcome,
)
from liquidvote.handlers.deadline import Clock, as_utc, classify_deadline, utc_now
from liquidvote.handlers.status_store import StatusSnapshot, VotingStatusStore
from liquidvote.models.status import VotingStatus
from liquidvote.models.suggestion import Suggestion
from liquidvote.ops.events import StatusChanged, StatusEventBus

logger = logging.getLogger(__name__)

ApplyLabel = Literal["Apply", "Applying...", "Applied", "Voting Ended"]

_TYPE_ORDER = {"vote_option": 0, "delegate": 1}


def is_applied(suggestion: Suggestion, status: VotingStatus | None) -> bool:
    """Whether the user's confirmed status already matches the suggestion.

    An absent status never matches, so no suggestion is reported as applied
    while the status is unknown.
    """
    if status is None:
        return False
    if suggestion.suggestion_type == "vote_option":
        return status.has_voted and status.voted_option == suggestion.target_option_number
    if suggestion.suggestion_type == "delegate":
        return (
            status.has_delegated
            and status.delegate_info is not None
            and status.delegate_info.unique_id == suggestion.target_user
        )
    return False


def sort_suggestions(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """Vote suggestions first, then delegations; newest first within each type."""
    newest_first = sorted(suggestions, key=lambda s: as_utc(s.created_at), reverse=True)
    return sorted(newest_first, key=lambda s: _TYPE_ORDER.get(s.suggestion_type, len(_TYPE_ORDER)))


def can_apply(
    suggestion: Suggestion,
    snapshot: StatusSnapshot,
    *,
    expired: bool,
    applying: bool = False,
) -> bool:
    if expired or applying or not snapshot.known:
        return False
    if snapshot.cooldown_active:
        return False
    return not is_applied(suggestion, snapshot.status)


def format_time_since(created_at: datetime, now: datetime) -> str:
    hours = (as_utc(now) - as_utc(created_at)) // timedelta(hours=1)
    if hours < 1:
        return "Just now"
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"
    days = hours // 24
    return "1 day ago" if days == 1 else f"{days} days ago"


def describe_target(suggestion: Suggestion) -> str:
    if suggestion.suggestion_type == "delegate":
        handle = f"@{suggestion.target_user}"
        if suggestion.user is not None and suggestion.user.display_name:
            return f"Delegate to: {suggestion.user.display_name} ({handle})"
        return f"Delegate to: {handle}"
    text = f"Vote for: Option {suggestion.target_option_number}"
    if suggestion.proposal_option is not None:
        text += f' "{suggestion.proposal_option.option_text}"'
    return text


class SuggestionItem(BaseModel):
    suggestion: Suggestion
    category_title: str
    target_text: str
    created_text: str
    applied: bool
    applying: bool
    actionable: bool
    label: ApplyLabel


class SuggestionPanel:
    """Suggestion list for one proposal, re-derived from the shared status store."""

    def __init__(
        self,
        client: GovernanceClient,
        controller: ActionController,
        store: VotingStatusStore,
        bus: StatusEventBus,
        *,
        clock: Clock = utc_now,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.client = client
        self.controller = controller
        self.store = store
        self.proposal = controller.proposal
        self._clock = clock
        self._on_change = on_change
        self._suggestions: list[Suggestion] = []
        self._applying: set[str] = set()
        self._generation = 0
        self._closed = False
        self.loading = False
        self._unsubscribe_store = store.subscribe(lambda _snapshot: self._changed())
        self._unsubscribe_bus = bus.subscribe(self.proposal.proposal_id, self._on_status_changed)

    @property
    def suggestions(self) -> list[Suggestion]:
        return list(self._suggestions)

    def expired(self) -> bool:
        if classify_deadline(self.proposal.voting_deadline, self._clock()) == "EXPIRED":
            return True
        return self.store.snapshot.is_active is False

    async def load(self) -> list[Suggestion]:
        if self._closed:
            return self.suggestions
        self._generation += 1
        generation = self._generation
        self.loading = True
        try:
            fetched = await self.client.list_suggestions(self.proposal.proposal_id)
        except GovernanceError as exc:
            logger.warning("Could not load suggestions for %s: %s", self.proposal.proposal_id, exc)
            fetched = None
        if self._closed or generation != self._generation:
            return self.suggestions
        self.loading = False
        if fetched is not None:
            self._suggestions = sort_suggestions(fetched)
        self._changed()
        return self.suggestions

    def items(self) -> list[SuggestionItem]:
        snapshot = self.store.snapshot
        expired = self.expired()
        now = self._clock()
        rows: list[SuggestionItem] = []
        for suggestion in self._suggestions:
            applied = is_applied(suggestion, snapshot.status if snapshot.known else None)
            applying = suggestion.suggestion_id in self._applying
            if applying:
                label: ApplyLabel = "Applying..."
            elif applied:
                label = "Applied"
            elif expired:
                label = "Voting Ended"
            else:
                label = "Apply"
            rows.append(
                SuggestionItem(
                    suggestion=suggestion,
                    category_title=suggestion.category.title,
                    target_text=describe_target(suggestion),
                    created_text=format_time_since(suggestion.created_at, now),
                    applied=applied,
                    applying=applying,
                    actionable=can_apply(suggestion, snapshot, expired=expired, applying=applying)
                    and not self.controller.busy,
                    label=label,
                )
            )
        return rows

    async def apply(self, suggestion_id: str) -> ActionOutcome:
        suggestion = next((s for s in self._suggestions if s.suggestion_id == suggestion_id), None)
        if suggestion is None:
            raise KeyError(suggestion_id)
        if self._applying or self.controller.busy:
            return ActionOutcome(ok=False, kind="busy", message=BUSY_MESSAGE)

        self._applying.add(suggestion_id)
        self._changed()
        try:
            snapshot = await self.store.retry_if_unknown()
            if not snapshot.known:
                return ActionOutcome(ok=False, kind="status_unknown", message=STATUS_UNKNOWN_MESSAGE)
            if is_applied(suggestion, snapshot.status):
                return ActionOutcome(ok=False, kind="already_applied", message="Suggestion already applied.")
            if snapshot.cooldown_active:
                return ActionOutcome(ok=False, kind="rate_limited", message=COOLDOWN_MESSAGE)
            if suggestion.suggestion_type == "delegate":
                outcome = await self.controller.delegate(
                    suggestion.target_user or "",
                    display_name=suggestion.user.display_name if suggestion.user else None,
                    cause="suggestion_applied",
                )
            else:
                if suggestion.target_option_number is None:
                    return ActionOutcome(
                        ok=False, kind="invalid_option", message="No target option specified for voting"
                    )
                outcome = await self.controller.cast_vote(
                    suggestion.target_option_number, cause="suggestion_applied"
                )
        finally:
            self._applying.discard(suggestion_id)
            self._changed()
        return outcome

    def close(self) -> None:
        self._closed = True
        self._unsubscribe_store()
        self._unsubscribe_bus()

    def _on_status_changed(self, event: StatusChanged) -> None:
        logger.debug("Re-deriving suggestions for %s after %s", event.proposal_id, event.cause)
        self._changed()

    def _changed(self) -> None:
        if not self._closed and self._on_change is not None:
            self._on_change()
