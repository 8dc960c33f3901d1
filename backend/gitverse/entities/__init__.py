"""Database entity models - represents the actual structure stored in MongoDB"""

from .analysis_run import AnalysisRun, AnalysisRunStatus
from .base import BaseEntity, PyDecimal, PyObjectId, PyObjectIdStr
from .branch import Branch
from .commit import Commit
from .contributor import Contributor
from .file_change import ChangeType, FileChange
from .language import Language
from .repository import Repository, RepositoryStatus
from .repository_file import RepositoryFile

__all__ = [
    # Base
    "BaseEntity",
    "PyObjectId",
    "PyObjectIdStr",
    "PyDecimal",
    # Repository lifecycle
    "Repository",
    "RepositoryStatus",
    "AnalysisRun",
    "AnalysisRunStatus",
    # Append-only facts
    "Branch",
    "Commit",
    "FileChange",
    "ChangeType",
    "RepositoryFile",
    # Recomputed aggregates
    "Contributor",
    "Language",
]
