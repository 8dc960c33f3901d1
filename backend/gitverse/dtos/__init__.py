from .repository import (
    AnalysisRunResponse,
    BranchResponse,
    CommitResponse,
    ContributorResponse,
    FileChangeResponse,
    FileResponse,
    LanguageResponse,
    RecentCommitResponse,
    RepositoryDetailResponse,
    RepositoryResponse,
    RepositoryStatsResponse,
    RepositorySummaryResponse,
)

__all__ = [
    "AnalysisRunResponse",
    "BranchResponse",
    "CommitResponse",
    "ContributorResponse",
    "FileChangeResponse",
    "FileResponse",
    "LanguageResponse",
    "RecentCommitResponse",
    "RepositoryDetailResponse",
    "RepositoryResponse",
    "RepositoryStatsResponse",
    "RepositorySummaryResponse",
]
