from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, Field

from liquidvote.api.client import GovernanceClient
from liquidvote.api.errors import GovernanceError
from liquidvote.config import Settings, get_settings
from liquidvote.handlers.actions import (
    COOLDOWN_MESSAGE,
    PERIOD_ENDED_MESSAGE,
    STATUS_UNKNOWN_MESSAGE,
    ActionController,
    ActionOutcome,
)
from liquidvote.handlers.cooldown import CooldownGate
from liquidvote.handlers.deadline import Clock, DeadlineView, describe_deadline, utc_now
from liquidvote.handlers.results import ResultsView, results_for
from liquidvote.handlers.status_store import StatusSnapshot, VotingStatusStore
from liquidvote.models.proposal import Proposal
from liquidvote.ops.events import StatusChanged, StatusEventBus
from liquidvote.scheduler.timers import Scheduler

logger = logging.getLogger(__name__)

PanelPhase = Literal["LOADING", "READY", "EXPIRED"]
NoticeLevel = Literal["success", "warning", "error"]

RESULTS_PENDING_TEXT = "Results are being calculated"


class Notice(BaseModel):
    level: NoticeLevel
    message: str
    kind: str
    dismissible: bool = True


class PanelView(BaseModel):
    phase: PanelPhase
    state: str
    deadline: DeadlineView
    actions_enabled: bool
    show_action_controls: bool
    busy: bool
    banners: list[str] = Field(default_factory=list)
    participation: str
    results: ResultsView | None = None
    results_pending: bool = False
    notices: list[Notice] = Field(default_factory=list)


def describe_participation(snapshot: StatusSnapshot) -> str:
    if snapshot.state == "loading":
        return "Loading voting status..."
    status = snapshot.status
    if not snapshot.known or status is None:
        return "Voting status unavailable"
    if status.has_voted:
        option = status.selected_option
        number = option.option_number if option is not None else status.voted_option
        text = f"You voted for Option {number}"
        if option is not None and option.option_text:
            text += f' "{option.option_text}"'
        return text
    if status.has_delegated and status.delegate_info is not None:
        text = f"You delegated to @{status.delegate_info.unique_id}"
        if status.delegate_info.name:
            text += f" ({status.delegate_info.name})"
        return text
    return "You have not voted yet"


class VotingPanelController:
    """Voting surface for one proposal.

    Owns the status store, cooldown gate and action controller, and folds the
    deadline, the confirmed status and the gate into a single view. Once the
    proposal is seen as expired it stays expired.
    """

    def __init__(
        self,
        client: GovernanceClient,
        proposal: Proposal,
        *,
        settings: Settings | None = None,
        bus: StatusEventBus | None = None,
        scheduler: Scheduler | None = None,
        clock: Clock = utc_now,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client
        self.proposal = proposal
        self.bus = bus or StatusEventBus()
        self._clock = clock
        self._on_change = on_change
        self.store = VotingStatusStore(client, proposal.proposal_id)
        self.gate = CooldownGate(
            proposal.proposal_id,
            self._cooldown_elapsed,
            delay_seconds=self.settings.cooldown_timer_delay(),
            scheduler=scheduler,
        )
        self.controller = ActionController(
            client, proposal, self.store, self.bus, gate=self.gate, clock=clock
        )
        self.notices: list[Notice] = []
        self._ready = False
        self._expired = False
        self._closed = False
        self._proposal_generation = 0
        self._unsubscribe_store = self.store.subscribe(self._on_snapshot)
        self._unsubscribe_bus = self.bus.subscribe(proposal.proposal_id, self._on_status_changed)

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> PanelView:
        await self.store.refresh()
        return self.view()

    def deadline(self) -> DeadlineView:
        return describe_deadline(
            self.proposal.voting_deadline, self._clock(), ending_soon_hours=self.settings.ending_soon_hours
        )

    @property
    def expired(self) -> bool:
        if not self._expired and self.deadline().expired:
            self._mark_expired("deadline passed")
        return self._expired

    @property
    def phase(self) -> PanelPhase:
        if self.expired:
            return "EXPIRED"
        if not self._ready:
            return "LOADING"
        return "READY"

    @property
    def cooldown_active(self) -> bool:
        return bool(self.store.snapshot.cooldown_active) or self.gate.armed

    @property
    def actions_enabled(self) -> bool:
        if self.expired or not self.store.snapshot.known:
            return False
        return not self.cooldown_active

    def state_label(self) -> str:
        phase = self.phase
        if phase == "EXPIRED":
            pending = self.proposal.vote_results is None
            return "EXPIRED(results-pending)" if pending else "EXPIRED(results-available)"
        if phase == "LOADING":
            return "LOADING"
        if self.cooldown_active:
            return "READY(cooldown)"
        return f"READY({self.deadline().status})"

    def tick(self) -> PanelView:
        """Re-evaluate time-dependent state; call from the owning surface's refresh cadence."""
        return self.view()

    def view(self) -> PanelView:
        deadline = self.deadline()
        expired = self.expired
        snapshot = self.store.snapshot
        banners: list[str] = []
        if expired:
            results = results_for(self.proposal)
            if results is None:
                banners.append(RESULTS_PENDING_TEXT)
            return PanelView(
                phase="EXPIRED",
                state=self.state_label(),
                deadline=deadline,
                actions_enabled=False,
                show_action_controls=False,
                busy=False,
                banners=banners,
                participation=describe_participation(snapshot),
                results=results,
                results_pending=results is None,
                notices=list(self.notices),
            )
        if self._ready and self.cooldown_active:
            banners.append(COOLDOWN_MESSAGE)
        return PanelView(
            phase=self.phase,
            state=self.state_label(),
            deadline=deadline,
            actions_enabled=self.actions_enabled,
            show_action_controls=True,
            busy=self.controller.busy,
            banners=banners,
            participation=describe_participation(snapshot),
            notices=list(self.notices),
        )

    async def vote(self, option_number: int) -> ActionOutcome:
        blocked = await self._precheck()
        if blocked is not None:
            return blocked
        return self._record(await self.controller.cast_vote(option_number))

    async def delegate(self, target_user: str, *, display_name: str | None = None) -> ActionOutcome:
        blocked = await self._precheck()
        if blocked is not None:
            return blocked
        return self._record(await self.controller.delegate(target_user, display_name=display_name))

    async def refresh_proposal(self) -> Proposal:
        """Re-fetch the proposal to pick up results attached after the deadline."""
        if self._closed:
            return self.proposal
        self._proposal_generation += 1
        generation = self._proposal_generation
        try:
            fresh = await self.client.get_proposal(self.proposal.proposal_id)
        except GovernanceError as exc:
            logger.warning("Could not reload proposal %s: %s", self.proposal.proposal_id, exc)
            return self.proposal
        if self._closed or generation != self._proposal_generation:
            return self.proposal
        if fresh.vote_results is not None and self.proposal.vote_results is None:
            logger.info(
                "Results available for proposal %s",
                self.proposal.proposal_id,
                extra={"event_type": "proposal.results.available"},
            )
        if fresh.vote_results is not None:
            self.proposal = self.proposal.model_copy(update={"vote_results": fresh.vote_results})
            self._changed()
        return self.proposal

    def dismiss_notice(self, index: int) -> None:
        if 0 <= index < len(self.notices) and self.notices[index].dismissible:
            del self.notices[index]
            self._changed()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.gate.close()
        self._unsubscribe_store()
        self._unsubscribe_bus()
        self.store.close()

    async def _precheck(self) -> ActionOutcome | None:
        if self.expired:
            return self._record(ActionOutcome(ok=False, kind="period_ended", message=PERIOD_ENDED_MESSAGE))
        snapshot = await self.store.retry_if_unknown()
        if not snapshot.known:
            return ActionOutcome(ok=False, kind="status_unknown", message=STATUS_UNKNOWN_MESSAGE)
        if self.cooldown_active:
            return ActionOutcome(ok=False, kind="rate_limited", message=COOLDOWN_MESSAGE)
        return None

    def _record(self, outcome: ActionOutcome) -> ActionOutcome:
        if outcome.kind in {"busy", "status_unknown"} or self._closed:
            return outcome
        level: NoticeLevel = "success" if outcome.ok else "warning"
        if outcome.kind == "network":
            level = "error"
        self.notices.append(Notice(level=level, message=outcome.message, kind=outcome.kind))
        self._changed()
        return outcome

    def _mark_expired(self, reason: str) -> None:
        self._expired = True
        self.gate.observe(None, expired=True)
        logger.info(
            "Proposal %s expired (%s)",
            self.proposal.proposal_id,
            reason,
            extra={"event_type": "proposal.expired", "ops_payload": {"proposal_id": self.proposal.proposal_id}},
        )

    async def _cooldown_elapsed(self) -> StatusSnapshot | None:
        if self.expired:
            return None
        return await self.store.refresh()

    def _on_snapshot(self, snapshot: StatusSnapshot) -> None:
        if snapshot.known:
            self._ready = True
            if snapshot.is_active is False and not self._expired:
                self._mark_expired("server reports voting closed")
        self.gate.observe(snapshot.cooldown_active, expired=self.expired)
        self._changed()

    def _on_status_changed(self, event: StatusChanged) -> None:
        logger.debug("Panel for %s notified of %s", event.proposal_id, event.cause)
        self._changed()

    def _changed(self) -> None:
        if not self._closed and self._on_change is not None:
            self._on_change()
