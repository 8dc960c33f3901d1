"""Commit entity. Immutable once inserted; natural key is (repository_id, hash)."""

from datetime import datetime
from typing import Optional

from .base import BaseEntity, PyObjectId


class Commit(BaseEntity):
    class Config:
        collection = "commits"

    repository_id: PyObjectId
    hash: str
    short_hash: str
    message: str
    description: Optional[str] = None
    author_name: str
    author_email: str
    committed_at: datetime
    branch: str
    additions: int = 0
    deletions: int = 0
    files_changed: int = 0
