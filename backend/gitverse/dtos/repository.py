"""Response DTOs for repositories and their analysis results."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from gitverse.entities.base import PyObjectIdStr

# ============================================================================
# Analysis result DTOs
# ============================================================================


class BranchResponse(BaseModel):
    id: PyObjectIdStr = Field(..., alias="_id")
    name: str
    is_default: bool = False
    is_protected: bool = False
    commit_count: int = 0
    last_commit_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)


class FileChangeResponse(BaseModel):
    path: str
    additions: int = 0
    deletions: int = 0
    change_type: str


class CommitResponse(BaseModel):
    id: PyObjectIdStr = Field(..., alias="_id")
    hash: str
    short_hash: str
    message: str
    description: Optional[str] = None
    author_name: str
    author_email: str
    committed_at: datetime
    branch: str
    additions: int = 0
    deletions: int = 0
    files_changed: int = 0
    file_changes: List[FileChangeResponse] = []

    model_config = ConfigDict(populate_by_name=True)


class ContributorResponse(BaseModel):
    name: str
    email: str
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    percentage: float = 0.0
    first_commit: Optional[datetime] = None
    last_commit: Optional[datetime] = None


class LanguageResponse(BaseModel):
    name: str
    bytes: int = 0
    lines: int = 0
    percentage: float = 0.0


class FileResponse(BaseModel):
    path: str
    name: str
    extension: Optional[str] = None
    size: int = 0
    lines: int = 0
    language: Optional[str] = None


class AnalysisRunResponse(BaseModel):
    id: PyObjectIdStr = Field(..., alias="_id")
    correlation_id: str
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    commits_inserted: int = 0
    commits_failed: int = 0
    files_inserted: int = 0
    error_message: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Repository DTOs
# ============================================================================


class RepositoryResponse(BaseModel):
    """Repository row as returned to its owner."""

    id: PyObjectIdStr = Field(..., alias="_id")
    user_id: str
    url: str
    name: str
    description: Optional[str] = None
    status: str
    default_branch: Optional[str] = None
    size: int = 0
    last_analyzed_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)


class RepositorySummaryResponse(RepositoryResponse):
    """List item: repository with row counts and its top languages."""

    commit_count: int = 0
    contributor_count: int = 0
    file_count: int = 0
    branch_count: int = 0
    languages: List[LanguageResponse] = []


class RepositoryDetailResponse(RepositoryResponse):
    """Repository with everything the last analyses stored for it."""

    branches: List[BranchResponse] = []
    commits: List[CommitResponse] = []
    contributors: List[ContributorResponse] = []
    languages: List[LanguageResponse] = []
    files: List[FileResponse] = []
    analysis_runs: List[AnalysisRunResponse] = []


class RecentCommitResponse(BaseModel):
    short_hash: str
    message: str
    author_name: str
    committed_at: datetime


class RepositoryStatsResponse(BaseModel):
    total_commits: int = 0
    total_contributors: int = 0
    total_files: int = 0
    total_branches: int = 0
    recent_commits: List[RecentCommitResponse] = []
    status: str
    last_analyzed_at: Optional[datetime] = None
