from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from liquidvote.scheduler.timers import OneShotTimer, Scheduler

logger = logging.getLogger(__name__)


class CooldownGate:
    """Arms one re-check timer per observed cooldown activation on a proposal.

    The flag itself is never expired locally: when the timer fires the gate asks
    for a fresh status and forgets what it last saw, so a cooldown that is still
    reported afterwards counts as a new activation.
    """

    def __init__(
        self,
        proposal_id: str,
        on_expire: Callable[[], Awaitable[object] | None],
        *,
        delay_seconds: float = 61.0,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.proposal_id = proposal_id
        self.delay_seconds = delay_seconds
        self._on_expire = on_expire
        self._timer = OneShotTimer(scheduler)
        self._active: bool | None = None
        self._closed = False

    @property
    def armed(self) -> bool:
        return self._timer.armed

    @property
    def closed(self) -> bool:
        return self._closed

    def observe(self, cooldown_active: bool | None, *, expired: bool = False) -> None:
        if self._closed:
            return
        if expired:
            self._disarm("proposal expired")
            self._active = cooldown_active
            return
        if cooldown_active is None:
            return
        if cooldown_active and self._active is not True:
            self._active = True
            self._arm()
        elif not cooldown_active:
            self._active = False
            self._disarm("cooldown cleared")

    def activate(self) -> None:
        """Start a cooldown window reported by a rejected action."""
        self.observe(True)

    def close(self) -> None:
        self._disarm("gate closed")
        self._closed = True

    def _arm(self) -> None:
        self._timer.arm(self.delay_seconds, self._fire)
        logger.info(
            "Cooldown re-check armed for proposal %s in %.0fs",
            self.proposal_id,
            self.delay_seconds,
            extra={
                "event_type": "cooldown.armed",
                "ops_payload": {"proposal_id": self.proposal_id, "delay_seconds": self.delay_seconds},
            },
        )

    def _disarm(self, reason: str) -> None:
        if self._timer.cancel():
            logger.info(
                "Cooldown re-check cancelled for proposal %s: %s",
                self.proposal_id,
                reason,
                extra={"event_type": "cooldown.cancelled", "ops_payload": {"proposal_id": self.proposal_id}},
            )

    def _fire(self) -> Awaitable[object] | None:
        if self._closed:
            return None
        self._active = None
        logger.info(
            "Cooldown window elapsed for proposal %s, refreshing status",
            self.proposal_id,
            extra={"event_type": "cooldown.fired", "ops_payload": {"proposal_id": self.proposal_id}},
        )
        return self._on_expire()
