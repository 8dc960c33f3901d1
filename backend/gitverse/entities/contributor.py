"""Contributor entity - per-email aggregate, recomputed on every analysis."""

from datetime import datetime
from typing import Optional

from .base import BaseEntity, PyObjectId


class Contributor(BaseEntity):
    class Config:
        collection = "contributors"

    repository_id: PyObjectId
    name: str
    email: str
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    percentage: float = 0.0
    first_commit: Optional[datetime] = None
    last_commit: Optional[datetime] = None
