from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from liquidvote.api.client import GovernanceClient
from liquidvote.api.errors import GovernanceError
from liquidvote.models.proposal import ProposalOption
from liquidvote.models.status import VotingStatus

logger = logging.getLogger(__name__)

SnapshotState = Literal["loading", "known", "unknown"]


@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    state: SnapshotState
    status: VotingStatus | None = None
    is_active: bool | None = None
    time_remaining_seconds: float | None = None
    options: tuple[ProposalOption, ...] = ()
    sequence: int = 0

    @property
    def known(self) -> bool:
        return self.state == "known" and self.status is not None

    @property
    def cooldown_active(self) -> bool | None:
        if not self.known or self.status is None:
            return None
        return self.status.cooldown_active


SnapshotListener = Callable[[StatusSnapshot], None]


class VotingStatusStore:
    """Authoritative, server-confirmed voting status for one proposal.

    Each refresh is stamped with a sequence number when it is issued. Only the
    response to the most recently issued request may replace the snapshot, so a
    slow older response can never overwrite a newer one.
    """

    def __init__(self, client: GovernanceClient, proposal_id: str) -> None:
        self.client = client
        self.proposal_id = proposal_id
        self._snapshot = StatusSnapshot(state="loading")
        self._issued = 0
        self._listeners: list[SnapshotListener] = []
        self._closed = False

    @property
    def snapshot(self) -> StatusSnapshot:
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> bool:
        return self._issued > self._snapshot.sequence

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self) -> StatusSnapshot:
        if self._closed:
            return self._snapshot
        self._issued += 1
        sequence = self._issued
        try:
            response = await self.client.get_voting_status(self.proposal_id)
        except GovernanceError as exc:
            logger.warning(
                "Voting status unavailable for proposal %s: %s",
                self.proposal_id,
                exc,
                extra={"event_type": "status.refresh.failed", "ops_payload": {"proposal_id": self.proposal_id}},
            )
            candidate = StatusSnapshot(state="unknown", sequence=sequence)
        else:
            candidate = StatusSnapshot(
                state="known",
                status=response.user_status,
                is_active=response.is_active,
                time_remaining_seconds=response.time_remaining_seconds,
                options=tuple(response.options),
                sequence=sequence,
            )
        return self._apply(candidate)

    async def retry_if_unknown(self) -> StatusSnapshot:
        if self._snapshot.state == "unknown" and not self.pending:
            return await self.refresh()
        return self._snapshot

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()

    def _apply(self, candidate: StatusSnapshot) -> StatusSnapshot:
        if self._closed:
            logger.debug("Dropping status response for closed store %s", self.proposal_id)
            return self._snapshot
        if candidate.sequence != self._issued:
            logger.info(
                "Discarding stale status response #%d for proposal %s (latest #%d)",
                candidate.sequence,
                self.proposal_id,
                self._issued,
                extra={
                    "event_type": "status.refresh.stale",
                    "ops_payload": {"proposal_id": self.proposal_id, "sequence": candidate.sequence},
                },
            )
            return self._snapshot
        self._snapshot = candidate
        logger.debug("Status for proposal %s replaced (%s)", self.proposal_id, candidate.state)
        for listener in list(self._listeners):
            listener(candidate)
        return candidate
