"""Repository for AnalysisRun entities."""

from datetime import datetime, timedelta, timezone
from typing import List

from bson import ObjectId
from pymongo.database import Database

from gitverse.entities.analysis_run import AnalysisRun
from .base import BaseRepository


class AnalysisRunRepository(BaseRepository[AnalysisRun]):
    def __init__(self, db: Database):
        super().__init__(db, "analysis_runs", AnalysisRun)
        self.collection.create_index(
            [("repository_id", 1), ("started_at", -1)], background=True
        )

    def find_by_repository(self, repository_id: str | ObjectId, limit: int = 20) -> List[AnalysisRun]:
        return self.find_many(
            {"repository_id": self._to_object_id(repository_id)},
            sort=[("started_at", -1)],
            limit=limit,
        )

    def cleanup_old_runs(self, days: int = 90) -> int:
        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days)
        return self.delete_many({"started_at": {"$lt": cutoff}})

    def delete_by_repository(self, repository_id: str | ObjectId) -> int:
        return self.delete_many({"repository_id": self._to_object_id(repository_id)})
