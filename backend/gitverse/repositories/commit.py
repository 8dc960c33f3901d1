"""Repository for Commit entities."""

from typing import List, Set

from bson import ObjectId
from pymongo.database import Database

from gitverse.entities.commit import Commit
from .base import BaseRepository


class CommitRepository(BaseRepository[Commit]):
    def __init__(self, db: Database):
        super().__init__(db, "commits", Commit)
        self.collection.create_index(
            [("repository_id", 1), ("hash", 1)],
            unique=True,
            background=True,
        )
        self.collection.create_index(
            [("repository_id", 1), ("committed_at", -1)],
            background=True,
        )

    def known_hashes(self, repository_id: str | ObjectId) -> Set[str]:
        cursor = self.collection.find(
            {"repository_id": self._to_object_id(repository_id)},
            {"hash": 1, "_id": 0},
        )
        return {doc["hash"] for doc in cursor}

    def find_recent(self, repository_id: str | ObjectId, limit: int) -> List[Commit]:
        return self.find_many(
            {"repository_id": self._to_object_id(repository_id)},
            sort=[("committed_at", -1)],
            limit=limit,
        )

    def delete_by_repository(self, repository_id: str | ObjectId) -> int:
        return self.delete_many({"repository_id": self._to_object_id(repository_id)})
