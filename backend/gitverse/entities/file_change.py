"""FileChange entity - per-file numstat of a single commit."""

from enum import Enum

from .base import BaseEntity, PyObjectId


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"

    @classmethod
    def classify(cls, additions: int, deletions: int) -> "ChangeType":
        if additions > 0 and deletions == 0:
            return cls.ADDED
        if additions == 0 and deletions > 0:
            return cls.DELETED
        return cls.MODIFIED


class FileChange(BaseEntity):
    class Config:
        collection = "file_changes"
        use_enum_values = True

    commit_id: PyObjectId
    repository_id: PyObjectId
    path: str
    additions: int = 0
    deletions: int = 0
    change_type: ChangeType = ChangeType.MODIFIED
