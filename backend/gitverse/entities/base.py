"""Base entity shared by every MongoDB document model."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Optional

from bson import Decimal128, ObjectId
from pydantic import BaseModel, BeforeValidator, Field


def _validate_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise ValueError(f"Invalid ObjectId: {value!r}")


PyObjectId = Annotated[ObjectId, BeforeValidator(_validate_object_id)]

# ObjectId rendered as a string in API responses
PyObjectIdStr = Annotated[str, BeforeValidator(str)]


def _validate_decimal(value: Any) -> Any:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    return value


# Exact decimal, stored as BSON Decimal128
PyDecimal = Annotated[Decimal, BeforeValidator(_validate_decimal)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseEntity(BaseModel):
    """
    Common fields for stored documents.

    `id` maps to Mongo's `_id`; timestamps are naive UTC, which is what
    pymongo hands back by default.
    """

    id: PyObjectId = Field(default_factory=ObjectId, alias="_id")
    created_at: Optional[datetime] = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = Field(default_factory=_utcnow)

    class Config:
        populate_by_name = True
        arbitrary_types_allowed = True
        validate_default = True

    def to_mongo(self) -> dict:
        doc = self.model_dump(by_alias=True)
        return {
            key: Decimal128(value) if isinstance(value, Decimal) else value
            for key, value in doc.items()
        }
