"""Repository for Branch entities."""

from typing import List

from bson import ObjectId
from pymongo.database import Database

from gitverse.entities.branch import Branch
from .base import BaseRepository


class BranchRepository(BaseRepository[Branch]):
    def __init__(self, db: Database):
        super().__init__(db, "branches", Branch)
        self.collection.create_index(
            [("repository_id", 1), ("name", 1)],
            unique=True,
            background=True,
        )

    def find_by_repository(self, repository_id: str | ObjectId) -> List[Branch]:
        """Default branch first, then by name."""
        return self.find_many(
            {"repository_id": self._to_object_id(repository_id)},
            sort=[("is_default", -1), ("name", 1)],
        )

    def insert_new(self, branches: List[Branch]) -> int:
        """Insert branches whose name is not yet known for the repository."""
        return self.insert_many_skip_duplicates(branches)

    def delete_by_repository(self, repository_id: str | ObjectId) -> int:
        return self.delete_many({"repository_id": self._to_object_id(repository_id)})
