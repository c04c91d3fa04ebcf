from __future__ import annotations

import logging

from liquidvote.api.client import GovernanceClient
from liquidvote.api.errors import GovernanceError
from liquidvote.models.user import OrganizationUser

logger = logging.getLogger(__name__)


class DelegateDirectory:
    """Autocomplete over organization members.

    A convenience only: the server decides whether a delegation target is valid,
    so `is_known` is a hint and never blocks a submission.
    """

    def __init__(self, client: GovernanceClient, *, limit: int = 5) -> None:
        self.client = client
        self.limit = limit
        self.users: list[OrganizationUser] = []

    async def load(self) -> list[OrganizationUser]:
        try:
            self.users = await self.client.list_organization_users()
        except GovernanceError as exc:
            logger.warning("Could not load organization users: %s", exc)
            self.users = []
        return self.users

    def search(self, query: str) -> list[OrganizationUser]:
        needle = query.strip().lower()
        if not needle:
            return []
        matches = [
            user
            for user in self.users
            if needle in user.unique_id.lower() or needle in user.full_name.lower()
        ]
        return matches[: self.limit]

    def is_known(self, target_user: str) -> bool:
        target = target_user.strip().lower()
        return any(user.unique_id.lower() == target for user in self.users)
