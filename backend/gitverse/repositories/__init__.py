"""Repository layer for database operations"""

from .analysis_run import AnalysisRunRepository
from .base import BaseRepository
from .branch import BranchRepository
from .commit import CommitRepository
from .contributor import ContributorRepository
from .file_change import FileChangeRepository
from .language import LanguageRepository
from .repository import RepositoryRepository
from .repository_file import RepositoryFileRepository

__all__ = [
    "BaseRepository",
    "RepositoryRepository",
    "AnalysisRunRepository",
    # Append-only facts
    "BranchRepository",
    "CommitRepository",
    "FileChangeRepository",
    "RepositoryFileRepository",
    # Recomputed aggregates
    "ContributorRepository",
    "LanguageRepository",
]
