from __future__ import annotations

from pydantic import BaseModel


class Category(BaseModel):
    category_id: str
    title: str = ""
    created_by: str | None = None
