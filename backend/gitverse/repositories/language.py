"""Repository for Language entities."""

from typing import List

from bson import ObjectId
from pymongo.database import Database

from gitverse.entities.language import Language
from .base import BaseRepository


class LanguageRepository(BaseRepository[Language]):
    def __init__(self, db: Database):
        super().__init__(db, "languages", Language)
        self.collection.create_index([("repository_id", 1)], background=True)

    def find_by_repository(self, repository_id: str | ObjectId, limit: int = 0) -> List[Language]:
        return self.find_many(
            {"repository_id": self._to_object_id(repository_id)},
            sort=[("percentage", -1)],
            limit=limit,
        )

    def replace_for_repository(
        self,
        repository_id: str | ObjectId,
        languages: List[Language],
    ) -> int:
        """Delete every language row of the repository, then insert the new set."""
        self.delete_by_repository(repository_id)
        return len(self.insert_many(languages))

    def delete_by_repository(self, repository_id: str | ObjectId) -> int:
        return self.delete_many({"repository_id": self._to_object_id(repository_id)})
