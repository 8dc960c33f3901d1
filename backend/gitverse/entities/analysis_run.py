"""
Analysis Run Entity - history of every analysis attempt for a repository.

Collection: analysis_runs
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from .base import BaseEntity, PyObjectId


class AnalysisRunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisRun(BaseEntity):
    """One execution of the analysis pipeline."""

    class Config:
        collection = "analysis_runs"
        use_enum_values = True

    repository_id: PyObjectId
    correlation_id: str = Field(..., description="Correlation id stamped on this run's logs")

    status: AnalysisRunStatus = AnalysisRunStatus.RUNNING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    branches_found: int = 0
    commits_found: int = 0
    commits_inserted: int = 0
    commits_failed: int = 0
    commits_dropped: int = 0
    files_inserted: int = 0
    contributors: int = 0
    languages: int = 0

    error_message: Optional[str] = None
