"""Git extraction: runs git against a local clone and parses its output."""

from .extractor import GitExtractor
from .models import (
    BranchInfo,
    CommitInfo,
    ContributorStats,
    FileChangeInfo,
    FileInfo,
    LanguageStats,
)

__all__ = [
    "GitExtractor",
    "BranchInfo",
    "CommitInfo",
    "ContributorStats",
    "FileChangeInfo",
    "FileInfo",
    "LanguageStats",
]
