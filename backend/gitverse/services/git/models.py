"""In-memory records produced by the git extractor."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from gitverse.entities.file_change import ChangeType


@dataclass
class BranchInfo:
    name: str
    is_default: bool
    is_protected: bool
    commit_count: int
    last_commit_at: Optional[datetime]
    head_sha: str = ""


@dataclass
class FileChangeInfo:
    path: str
    additions: int
    deletions: int

    @property
    def change_type(self) -> ChangeType:
        return ChangeType.classify(self.additions, self.deletions)


@dataclass
class CommitInfo:
    hash: str
    short_hash: str
    message: str
    author_name: str
    author_email: str
    committed_at: datetime
    branch: str
    description: Optional[str] = None
    additions: int = 0
    deletions: int = 0
    files_changed: int = 0
    file_changes: List[FileChangeInfo] = field(default_factory=list)


@dataclass
class ContributorStats:
    name: str
    email: str
    commits: int
    additions: int
    deletions: int
    first_commit: datetime
    last_commit: datetime


@dataclass
class FileInfo:
    path: str
    name: str
    extension: Optional[str]
    size: int
    lines: int
    language: Optional[str]


@dataclass
class LanguageStats:
    name: str
    bytes: int
    lines: int
    # float from the extractor, two-decimal Decimal once normalized
    percentage: Union[float, Decimal]
