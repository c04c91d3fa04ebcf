from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any, Literal

from pydantic import BaseModel

from liquidvote.api.client import GovernanceClient
from liquidvote.api.errors import (
    ActionName,
    ActionNotAllowed,
    GovernanceError,
    PeriodEnded,
    RateLimited,
    TargetNotFound,
)
from liquidvote.handlers.cooldown import CooldownGate
from liquidvote.handlers.deadline import Clock, classify_deadline, utc_now
from liquidvote.handlers.status_store import VotingStatusStore
from liquidvote.models.proposal import Proposal
from liquidvote.ops.events import ChangeCause, StatusChanged, StatusEventBus

logger = logging.getLogger(__name__)

OutcomeKind = Literal[
    "success",
    "busy",
    "rate_limited",
    "delegation_policy",
    "invalid_option",
    "invalid_target",
    "target_not_found",
    "period_ended",
    "network",
    "already_applied",
    "status_unknown",
]

PERIOD_ENDED_MESSAGE = "Voting period has ended for this proposal."
TARGET_NOT_FOUND_MESSAGE = "Delegate target not found in your organization."
BUSY_MESSAGE = "Another action is still being submitted."
BLANK_TARGET_MESSAGE = "Please enter a username"
STATUS_UNKNOWN_MESSAGE = "Your voting status could not be determined yet. Please try again."
COOLDOWN_MESSAGE = "Please wait 60 seconds before your next action"


class ActionOutcome(BaseModel):
    ok: bool
    kind: OutcomeKind
    message: str
    retry_after: int | None = None


class ActionController:
    """Submits votes and delegations for one proposal, one at a time."""

    def __init__(
        self,
        client: GovernanceClient,
        proposal: Proposal,
        store: VotingStatusStore,
        bus: StatusEventBus,
        *,
        gate: CooldownGate | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.client = client
        self.proposal = proposal
        self.store = store
        self.bus = bus
        self.gate = gate
        self._clock = clock
        self._in_flight: ActionName | None = None

    @property
    def busy(self) -> bool:
        return self._in_flight is not None

    def _expired(self) -> bool:
        if classify_deadline(self.proposal.voting_deadline, self._clock()) == "EXPIRED":
            return True
        return self.store.snapshot.is_active is False

    async def cast_vote(self, option_number: int, *, cause: ChangeCause = "vote") -> ActionOutcome:
        if self.busy:
            return ActionOutcome(ok=False, kind="busy", message=BUSY_MESSAGE)
        if self._expired():
            return ActionOutcome(ok=False, kind="period_ended", message=PERIOD_ENDED_MESSAGE)
        option = self.proposal.option(option_number)
        if option is None:
            return ActionOutcome(
                ok=False,
                kind="invalid_option",
                message=f"Option {option_number} does not exist on this proposal.",
            )
        return await self._submit(
            "vote",
            cause,
            self.client.cast_vote(self.proposal.proposal_id, option_number),
            success_message=f'Successfully voted for: "{option.option_text}"',
        )

    async def delegate(
        self,
        target_user: str,
        *,
        display_name: str | None = None,
        cause: ChangeCause = "delegate",
    ) -> ActionOutcome:
        if self.busy:
            return ActionOutcome(ok=False, kind="busy", message=BUSY_MESSAGE)
        if self._expired():
            return ActionOutcome(ok=False, kind="period_ended", message=PERIOD_ENDED_MESSAGE)
        target = target_user.strip()
        if not target:
            return ActionOutcome(ok=False, kind="invalid_target", message=BLANK_TARGET_MESSAGE)
        return await self._submit(
            "delegate",
            cause,
            self.client.delegate(self.proposal.proposal_id, target),
            success_message=f"Successfully delegated your vote to {display_name or target} (@{target})",
        )

    async def _submit(
        self,
        action: ActionName,
        cause: ChangeCause,
        request: Awaitable[dict[str, Any]],
        *,
        success_message: str,
    ) -> ActionOutcome:
        self._in_flight = action
        try:
            try:
                await request
            except GovernanceError as exc:
                outcome = self._failure(action, exc)
                logger.warning(
                    "%s on proposal %s rejected: %s",
                    action,
                    self.proposal.proposal_id,
                    outcome.kind,
                    extra={
                        "event_type": f"action.{action}.failed",
                        "ops_payload": {"proposal_id": self.proposal.proposal_id, "kind": outcome.kind},
                    },
                )
                if isinstance(exc, RateLimited):
                    if self.gate is not None:
                        self.gate.activate()
                    await self.store.refresh()
                return outcome

            logger.info(
                "%s on proposal %s accepted",
                action,
                self.proposal.proposal_id,
                extra={
                    "event_type": f"action.{action}.succeeded",
                    "ops_payload": {"proposal_id": self.proposal.proposal_id},
                },
            )
            await self.store.refresh()
        finally:
            self._in_flight = None
        self.bus.publish(StatusChanged(proposal_id=self.proposal.proposal_id, cause=cause))
        return ActionOutcome(ok=True, kind="success", message=success_message)

    def _failure(self, action: ActionName, exc: GovernanceError) -> ActionOutcome:
        verb = "vote" if action == "vote" else "delegate"
        if isinstance(exc, RateLimited):
            return ActionOutcome(
                ok=False,
                kind="rate_limited",
                message=f"Rate limit: {exc.message}. Please wait {exc.retry_after} seconds before trying again.",
                retry_after=exc.retry_after,
            )
        if isinstance(exc, PeriodEnded):
            return ActionOutcome(ok=False, kind="period_ended", message=PERIOD_ENDED_MESSAGE)
        if isinstance(exc, TargetNotFound):
            return ActionOutcome(ok=False, kind="target_not_found", message=TARGET_NOT_FOUND_MESSAGE)
        if isinstance(exc, ActionNotAllowed):
            return ActionOutcome(ok=False, kind=exc.category, message=exc.reason)
        return ActionOutcome(ok=False, kind="network", message=f"Failed to {verb}: {exc.message or 'Unknown error'}")
