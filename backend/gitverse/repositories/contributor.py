"""Repository for Contributor entities."""

from typing import List

from bson import ObjectId
from pymongo.database import Database

from gitverse.entities.contributor import Contributor
from .base import BaseRepository


class ContributorRepository(BaseRepository[Contributor]):
    def __init__(self, db: Database):
        super().__init__(db, "contributors", Contributor)
        self.collection.create_index([("repository_id", 1)], background=True)

    def find_by_repository(self, repository_id: str | ObjectId) -> List[Contributor]:
        return self.find_many(
            {"repository_id": self._to_object_id(repository_id)},
            sort=[("commits", -1)],
        )

    def replace_for_repository(
        self,
        repository_id: str | ObjectId,
        contributors: List[Contributor],
    ) -> int:
        """Delete every contributor row of the repository, then insert the new set."""
        self.delete_by_repository(repository_id)
        return len(self.insert_many(contributors))

    def delete_by_repository(self, repository_id: str | ObjectId) -> int:
        return self.delete_many({"repository_id": self._to_object_id(repository_id)})
