"""RepositoryFile entity - a tracked path at analysis time."""

from typing import Optional

from .base import BaseEntity, PyObjectId


class RepositoryFile(BaseEntity):
    """
    Natural key: (repository_id, path).

    Rows are only inserted for paths not seen before; size, lines and language
    of an existing path are not refreshed by later analyses.
    """

    class Config:
        collection = "files"

    repository_id: PyObjectId
    path: str
    name: str
    extension: Optional[str] = None
    size: int = 0
    lines: int = 0
    language: Optional[str] = None
