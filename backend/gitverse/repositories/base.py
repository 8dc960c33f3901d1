"""Generic MongoDB repository."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import BulkWriteError

from gitverse.entities.base import BaseEntity

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseEntity)

DUPLICATE_KEY_ERROR = 11000


class BaseRepository(Generic[T]):
    """CRUD helpers around one collection, returning pydantic entities."""

    def __init__(self, db: Database, collection_name: str, model_class: Type[T]):
        self.db = db
        self.collection = db[collection_name]
        self.model_class = model_class

    @staticmethod
    def _to_object_id(value: str | ObjectId) -> ObjectId:
        if isinstance(value, ObjectId):
            return value
        return ObjectId(value)

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[T]:
        if doc is None:
            return None
        return self.model_class.model_validate(doc)

    def find_by_id(self, entity_id: str | ObjectId) -> Optional[T]:
        return self.find_one({"_id": self._to_object_id(entity_id)})

    def find_one(self, query: Dict[str, Any]) -> Optional[T]:
        return self._to_model(self.collection.find_one(query))

    def find_many(
        self,
        query: Dict[str, Any],
        sort: Optional[List[Tuple[str, int]]] = None,
        skip: int = 0,
        limit: int = 0,
        projection: Optional[Dict[str, Any]] = None,
    ) -> List[T]:
        cursor = self.collection.find(query, projection)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [self._to_model(doc) for doc in cursor]

    def count(self, query: Dict[str, Any]) -> int:
        return self.collection.count_documents(query)

    def insert_one(self, entity: T) -> T:
        self.collection.insert_one(entity.to_mongo())
        return entity

    def insert_many(self, entities: Sequence[T]) -> List[T]:
        if not entities:
            return []
        self.collection.insert_many([e.to_mongo() for e in entities])
        return list(entities)

    def insert_many_skip_duplicates(self, entities: Sequence[T]) -> int:
        """
        Unordered bulk insert that ignores rows violating a unique index.

        Returns the number of documents actually inserted. Any write error
        other than a duplicate key is re-raised.
        """
        if not entities:
            return 0
        docs = [e.to_mongo() for e in entities]
        try:
            result = self.collection.insert_many(docs, ordered=False)
            return len(result.inserted_ids)
        except BulkWriteError as exc:
            details = exc.details or {}
            errors = details.get("writeErrors", [])
            if any(err.get("code") != DUPLICATE_KEY_ERROR for err in errors):
                raise
            logger.debug(
                "Skipped %d duplicate rows in %s", len(errors), self.collection.name
            )
            return details.get("nInserted", 0)

    def update_one(
        self,
        entity_id: str | ObjectId,
        updates: Dict[str, Any],
    ) -> Optional[T]:
        payload = {**updates, "updated_at": datetime.now(timezone.utc).replace(tzinfo=None)}
        doc = self.collection.find_one_and_update(
            {"_id": self._to_object_id(entity_id)},
            {"$set": payload},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    def find_one_and_update(
        self,
        query: Dict[str, Any],
        update: Dict[str, Any],
        upsert: bool = False,
    ) -> Optional[T]:
        doc = self.collection.find_one_and_update(
            query,
            update,
            upsert=upsert,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    def delete_one(self, entity_id: str | ObjectId) -> bool:
        result = self.collection.delete_one({"_id": self._to_object_id(entity_id)})
        return result.deleted_count > 0

    def delete_many(self, query: Dict[str, Any]) -> int:
        result = self.collection.delete_many(query)
        return result.deleted_count
