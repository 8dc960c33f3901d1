"""
MongoDB connection helpers.

The connection is an explicit object owned by whoever runs the process (the
Celery worker, a script, a test) instead of a module-level client, so opening
and closing it is tied to that owner's lifetime.
"""

from __future__ import annotations

import logging

from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)


class MongoConnection:
    """Owns one MongoClient and hands out the configured database."""

    def __init__(self, uri: str, db_name: str):
        self.uri = uri
        self.db_name = db_name
        self._client: MongoClient | None = None

    @classmethod
    def from_settings(cls, settings) -> "MongoConnection":
        return cls(settings.MONGODB_URI, settings.MONGODB_DB_NAME)

    def connect(self) -> Database:
        if self._client is None:
            logger.info("Connecting to MongoDB database %s", self.db_name)
            self._client = MongoClient(self.uri)
        return self._client[self.db_name]

    @property
    def database(self) -> Database:
        if self._client is None:
            raise RuntimeError("MongoConnection.connect() has not been called")
        return self._client[self.db_name]

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Closed MongoDB connection")
