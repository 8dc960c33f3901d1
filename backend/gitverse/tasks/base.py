"""Base task class giving every task access to per-process Mongo and Redis."""

from __future__ import annotations

import logging
from typing import Optional

import redis
from celery import Task
from pymongo.database import Database

from gitverse.config import settings
from gitverse.core.redis import create_redis
from gitverse.database.mongo import MongoConnection
from gitverse.services.analysis_service import RepositoryAnalysisService
from gitverse.services.analysis_store import AnalysisStore
from gitverse.utils.locking import repo_lock

logger = logging.getLogger(__name__)


class WorkerResources:
    """Connections owned by one worker process, opened on first use."""

    def __init__(self) -> None:
        self.mongo = MongoConnection.from_settings(settings)
        self._redis: Optional[redis.Redis] = None

    @property
    def db(self) -> Database:
        return self.mongo.connect()

    @property
    def redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = create_redis()
        return self._redis

    def close(self) -> None:
        self.mongo.close()
        if self._redis is not None:
            self._redis.close()
            self._redis = None


_resources: Optional[WorkerResources] = None


def get_worker_resources() -> WorkerResources:
    global _resources
    if _resources is None:
        _resources = WorkerResources()
    return _resources


def close_worker_resources() -> None:
    global _resources
    if _resources is not None:
        _resources.close()
        _resources = None
        logger.info("Closed worker resources")


class PipelineTask(Task):
    abstract = True

    @property
    def db(self) -> Database:
        return get_worker_resources().db

    @property
    def redis(self) -> redis.Redis:
        return get_worker_resources().redis

    def analysis_service(self) -> RepositoryAnalysisService:
        client = self.redis
        return RepositoryAnalysisService(
            AnalysisStore(self.db),
            lock_factory=lambda repository_id: repo_lock(repository_id, client),
        )
