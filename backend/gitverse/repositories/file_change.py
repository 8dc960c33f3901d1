"""Repository for FileChange entities."""

from typing import Dict, Iterable, List

from bson import ObjectId
from pymongo.database import Database

from gitverse.entities.file_change import FileChange
from .base import BaseRepository


class FileChangeRepository(BaseRepository[FileChange]):
    def __init__(self, db: Database):
        super().__init__(db, "file_changes", FileChange)
        self.collection.create_index([("commit_id", 1)], background=True)

    def find_by_commits(self, commit_ids: Iterable[ObjectId]) -> Dict[ObjectId, List[FileChange]]:
        grouped: Dict[ObjectId, List[FileChange]] = {}
        for change in self.find_many({"commit_id": {"$in": list(commit_ids)}}):
            grouped.setdefault(change.commit_id, []).append(change)
        return grouped

    def delete_by_commit(self, commit_id: str | ObjectId) -> int:
        return self.delete_many({"commit_id": self._to_object_id(commit_id)})

    def delete_by_repository(self, repository_id: str | ObjectId) -> int:
        return self.delete_many({"repository_id": self._to_object_id(repository_id)})
