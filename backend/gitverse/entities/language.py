"""Language entity - per-language share, replaced wholesale on every analysis."""

from decimal import Decimal

from .base import BaseEntity, PyDecimal, PyObjectId


class Language(BaseEntity):
    class Config:
        collection = "languages"

    repository_id: PyObjectId
    name: str
    bytes: int = 0
    lines: int = 0
    # Two-decimal share; the rows of one repository sum to exactly 100
    percentage: PyDecimal = Decimal("0.00")
