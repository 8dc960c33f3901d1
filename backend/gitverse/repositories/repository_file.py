"""Repository for RepositoryFile entities."""

from typing import List, Set

from bson import ObjectId
from pymongo.database import Database

from gitverse.entities.repository_file import RepositoryFile
from .base import BaseRepository


class RepositoryFileRepository(BaseRepository[RepositoryFile]):
    def __init__(self, db: Database):
        super().__init__(db, "files", RepositoryFile)
        self.collection.create_index(
            [("repository_id", 1), ("path", 1)],
            unique=True,
            background=True,
        )

    def known_paths(self, repository_id: str | ObjectId) -> Set[str]:
        cursor = self.collection.find(
            {"repository_id": self._to_object_id(repository_id)},
            {"path": 1, "_id": 0},
        )
        return {doc["path"] for doc in cursor}

    def find_by_repository(self, repository_id: str | ObjectId, limit: int = 0) -> List[RepositoryFile]:
        return self.find_many(
            {"repository_id": self._to_object_id(repository_id)},
            sort=[("path", 1)],
            limit=limit,
        )

    def delete_by_repository(self, repository_id: str | ObjectId) -> int:
        return self.delete_many({"repository_id": self._to_object_id(repository_id)})
