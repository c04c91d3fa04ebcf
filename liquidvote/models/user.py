from __future__ import annotations

from pydantic import BaseModel


class OrganizationUser(BaseModel):
    unique_id: str
    first_name: str = ""
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
