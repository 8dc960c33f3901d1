"""Repository entity - the analysed remote repository and its lifecycle status."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from .base import BaseEntity


class RepositoryStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class Repository(BaseEntity):
    """
    A remote repository submitted by a user for analysis.

    Created on the first analysis request and only mutated by the analysis
    service afterwards. Deleting it cascades to branches, commits, file
    changes, files, contributors, languages and analysis runs.
    """

    class Config:
        collection = "repositories"
        use_enum_values = True

    user_id: str = Field(..., description="Owning user reference")
    url: str
    name: str
    description: Optional[str] = None

    status: RepositoryStatus = RepositoryStatus.PENDING
    default_branch: Optional[str] = None
    size: int = Field(default=0, description="On-disk size of the clone in bytes")

    last_analyzed_at: Optional[datetime] = None
    analysis_started_at: Optional[datetime] = None
    last_error: Optional[str] = None
