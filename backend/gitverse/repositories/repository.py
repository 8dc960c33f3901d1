"""Repository for analysed Repository entities."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from gitverse.entities.repository import Repository, RepositoryStatus
from .base import BaseRepository


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RepositoryRepository(BaseRepository[Repository]):
    """Repository documents, unique per (user_id, url)."""

    def __init__(self, db: Database):
        super().__init__(db, "repositories", Repository)
        self.collection.create_index(
            [("user_id", 1), ("url", 1)],
            unique=True,
            background=True,
        )

    def find_by_user_and_url(self, user_id: str, url: str) -> Optional[Repository]:
        return self.find_one({"user_id": user_id, "url": url})

    def find_for_user(self, repo_id: str | ObjectId, user_id: str) -> Optional[Repository]:
        return self.find_one({"_id": self._to_object_id(repo_id), "user_id": user_id})

    def list_by_user(self, user_id: str) -> List[Repository]:
        return self.find_many({"user_id": user_id}, sort=[("created_at", -1)])

    def get_or_create(
        self,
        user_id: str,
        url: str,
        name: str,
        description: Optional[str] = None,
    ) -> tuple[Repository, bool]:
        """
        Atomically fetch the (user_id, url) row or insert it as pending.

        Returns the repository and whether this call created it.
        """
        candidate = Repository(
            user_id=user_id,
            url=url,
            name=name,
            description=description,
            status=RepositoryStatus.PENDING,
        )
        on_insert = candidate.to_mongo()
        on_insert.pop("user_id")
        on_insert.pop("url")

        try:
            repository = self.find_one_and_update(
                {"user_id": user_id, "url": url},
                {"$setOnInsert": on_insert},
                upsert=True,
            )
        except DuplicateKeyError:
            # Lost an upsert race against an identical submission
            repository = self.find_by_user_and_url(user_id, url)
        return repository, repository.id == candidate.id

    def set_status(
        self,
        repo_id: str | ObjectId,
        status: RepositoryStatus,
        **fields: Any,
    ) -> Optional[Repository]:
        updates: Dict[str, Any] = {"status": status.value, **fields}
        if status == RepositoryStatus.ANALYZING:
            updates["analysis_started_at"] = _utcnow()
        return self.update_one(repo_id, updates)

    def find_stale_analyzing(self, max_age: timedelta) -> List[Repository]:
        """Repositories stuck in `analyzing` for longer than max_age."""
        cutoff = _utcnow() - max_age
        return self.find_many(
            {
                "status": RepositoryStatus.ANALYZING.value,
                "$or": [
                    {"analysis_started_at": {"$lt": cutoff}},
                    {"analysis_started_at": None},
                ],
            }
        )
