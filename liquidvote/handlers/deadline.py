from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Literal

from pydantic import BaseModel

DeadlineStatus = Literal["ACTIVE", "ENDING_SOON", "EXPIRED"]
Clock = Callable[[], datetime]

VOTING_ENDED_TEXT = "Voting has ended"


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class DeadlineView(BaseModel):
    status: DeadlineStatus
    remaining_text: str

    @property
    def expired(self) -> bool:
        return self.status == "EXPIRED"


def classify_deadline(
    deadline: datetime, now: datetime | None = None, *, ending_soon_hours: int = 24
) -> DeadlineStatus:
    remaining = as_utc(deadline) - as_utc(now or utc_now())
    if remaining <= timedelta(0):
        return "EXPIRED"
    if remaining <= timedelta(hours=ending_soon_hours):
        return "ENDING_SOON"
    return "ACTIVE"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} left"


def time_remaining_text(deadline: datetime, now: datetime | None = None) -> str:
    remaining = as_utc(deadline) - as_utc(now or utc_now())
    if remaining <= timedelta(0):
        return VOTING_ENDED_TEXT
    days = remaining // timedelta(days=1)
    if days > 0:
        return _plural(days, "day")
    hours = remaining // timedelta(hours=1)
    if hours > 0:
        return _plural(hours, "hour")
    minutes = max(1, remaining // timedelta(minutes=1))
    return _plural(minutes, "minute")


def describe_deadline(
    deadline: datetime, now: datetime | None = None, *, ending_soon_hours: int = 24
) -> DeadlineView:
    current = now or utc_now()
    return DeadlineView(
        status=classify_deadline(deadline, current, ending_soon_hours=ending_soon_hours),
        remaining_text=time_remaining_text(deadline, current),
    )


def can_create_suggestions(
    deadline: datetime, now: datetime | None = None, *, cutoff_minutes: int = 60
) -> bool:
    """Suggestion authorship closes `cutoff_minutes` before the voting deadline."""
    return as_utc(deadline) > as_utc(now or utc_now()) + timedelta(minutes=cutoff_minutes)
