"""Branch entity."""

from datetime import datetime
from typing import Optional

from .base import BaseEntity, PyObjectId


class Branch(BaseEntity):
    """Natural key: (repository_id, name)."""

    class Config:
        collection = "branches"

    repository_id: PyObjectId
    name: str
    is_default: bool = False
    is_protected: bool = False
    commit_count: int = 0
    last_commit_at: Optional[datetime] = None
