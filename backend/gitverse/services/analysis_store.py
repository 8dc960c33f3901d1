"""MongoDB persistence facade for the analysis pipeline."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from bson import ObjectId
from pymongo.database import Database

from gitverse.entities import (
    AnalysisRun,
    AnalysisRunStatus,
    Branch,
    Commit,
    Contributor,
    FileChange,
    Language,
    Repository,
    RepositoryFile,
    RepositoryStatus,
)
from gitverse.repositories import (
    AnalysisRunRepository,
    BranchRepository,
    CommitRepository,
    ContributorRepository,
    FileChangeRepository,
    LanguageRepository,
    RepositoryFileRepository,
    RepositoryRepository,
)
from gitverse.services.git.models import (
    BranchInfo,
    CommitInfo,
    ContributorStats,
    FileChangeInfo,
    FileInfo,
    LanguageStats,
)
from gitverse.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class AnalysisStore:
    """
    Facade responsible for persisting analysis results.

    Append-only facts (branches, commits, file changes, files) are inserted
    only when their natural key is new. Aggregates (contributors, languages)
    are replaced wholesale.
    """

    def __init__(self, db: Database) -> None:
        self.db = db
        self.repositories = RepositoryRepository(db)
        self.branches = BranchRepository(db)
        self.commits = CommitRepository(db)
        self.file_changes = FileChangeRepository(db)
        self.files = RepositoryFileRepository(db)
        self.contributors = ContributorRepository(db)
        self.languages = LanguageRepository(db)
        self.runs = AnalysisRunRepository(db)

    # ------------------------------------------------------------------
    # Repository lifecycle
    # ------------------------------------------------------------------

    def get_or_create_repository(
        self, user_id: str, url: str, name: str, description: Optional[str] = None
    ) -> Tuple[Repository, bool]:
        return self.repositories.get_or_create(user_id, url, name, description)

    def get_repository(self, repository_id: str | ObjectId) -> Optional[Repository]:
        return self.repositories.find_by_id(repository_id)

    def get_repository_for_user(
        self, repository_id: str | ObjectId, user_id: str
    ) -> Optional[Repository]:
        return self.repositories.find_for_user(repository_id, user_id)

    def list_repositories(self, user_id: str) -> List[Repository]:
        return self.repositories.list_by_user(user_id)

    def set_status(
        self, repository_id: str | ObjectId, status: RepositoryStatus, **fields: Any
    ) -> Optional[Repository]:
        return self.repositories.set_status(repository_id, status, **fields)

    def find_stale_analyzing(self, max_age) -> List[Repository]:
        return self.repositories.find_stale_analyzing(max_age)

    def delete_repository(self, repository_id: str | ObjectId) -> bool:
        """Delete the repository and every row derived from it."""
        oid = ObjectId(str(repository_id))
        removed = {
            "file_changes": self.file_changes.delete_by_repository(oid),
            "commits": self.commits.delete_by_repository(oid),
            "branches": self.branches.delete_by_repository(oid),
            "files": self.files.delete_by_repository(oid),
            "contributors": self.contributors.delete_by_repository(oid),
            "languages": self.languages.delete_by_repository(oid),
            "analysis_runs": self.runs.delete_by_repository(oid),
        }
        logger.info(f"Deleted rows for repository {oid}: {removed}")
        return self.repositories.delete_one(oid)

    # ------------------------------------------------------------------
    # Append-only facts
    # ------------------------------------------------------------------

    def insert_branches(
        self, repository_id: str | ObjectId, branches: Sequence[BranchInfo]
    ) -> int:
        oid = ObjectId(str(repository_id))
        return self.branches.insert_new(
            [
                Branch(
                    repository_id=oid,
                    name=branch.name,
                    is_default=branch.is_default,
                    is_protected=branch.is_protected,
                    commit_count=branch.commit_count,
                    last_commit_at=branch.last_commit_at,
                )
                for branch in branches
            ]
        )

    def known_commit_hashes(self, repository_id: str | ObjectId) -> Set[str]:
        return self.commits.known_hashes(repository_id)

    def insert_commit(self, repository_id: str | ObjectId, commit: CommitInfo) -> Commit:
        """Insert one commit row; raises PyMongoError if the row is rejected."""
        entity = Commit(
            repository_id=ObjectId(str(repository_id)),
            hash=commit.hash,
            short_hash=commit.short_hash,
            message=commit.message,
            description=commit.description,
            author_name=commit.author_name,
            author_email=commit.author_email,
            committed_at=commit.committed_at,
            branch=commit.branch,
            additions=commit.additions,
            deletions=commit.deletions,
            files_changed=commit.files_changed,
        )
        return self.commits.insert_one(entity)

    def insert_file_changes(
        self, commit: Commit, changes: Sequence[FileChangeInfo]
    ) -> int:
        return len(
            self.file_changes.insert_many(
                [
                    FileChange(
                        commit_id=commit.id,
                        repository_id=commit.repository_id,
                        path=change.path,
                        additions=change.additions,
                        deletions=change.deletions,
                        change_type=change.change_type,
                    )
                    for change in changes
                ]
            )
        )

    def discard_commit(self, commit: Commit) -> None:
        """Remove a commit row together with any of its file changes."""
        self.file_changes.delete_by_commit(commit.id)
        self.commits.delete_one(commit.id)

    def known_file_paths(self, repository_id: str | ObjectId) -> Set[str]:
        return self.files.known_paths(repository_id)

    def insert_files(self, repository_id: str | ObjectId, files: Sequence[FileInfo]) -> int:
        oid = ObjectId(str(repository_id))
        return self.files.insert_many_skip_duplicates(
            [
                RepositoryFile(
                    repository_id=oid,
                    path=file.path,
                    name=file.name,
                    extension=file.extension,
                    size=file.size,
                    lines=file.lines,
                    language=file.language,
                )
                for file in files
            ]
        )

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def replace_contributors(
        self,
        repository_id: str | ObjectId,
        contributors: Sequence[Tuple[ContributorStats, float]],
    ) -> int:
        oid = ObjectId(str(repository_id))
        return self.contributors.replace_for_repository(
            oid,
            [
                Contributor(
                    repository_id=oid,
                    name=stats.name,
                    email=stats.email,
                    commits=stats.commits,
                    additions=stats.additions,
                    deletions=stats.deletions,
                    percentage=percentage,
                    first_commit=stats.first_commit,
                    last_commit=stats.last_commit,
                )
                for stats, percentage in contributors
            ],
        )

    def replace_languages(
        self, repository_id: str | ObjectId, languages: Sequence[LanguageStats]
    ) -> int:
        oid = ObjectId(str(repository_id))
        return self.languages.replace_for_repository(
            oid,
            [
                Language(
                    repository_id=oid,
                    name=lang.name,
                    bytes=lang.bytes,
                    lines=lang.lines,
                    percentage=lang.percentage,
                )
                for lang in languages
            ],
        )

    # ------------------------------------------------------------------
    # Run history
    # ------------------------------------------------------------------

    def start_run(self, repository_id: str | ObjectId, correlation_id: str) -> AnalysisRun:
        run = AnalysisRun(
            repository_id=ObjectId(str(repository_id)),
            correlation_id=correlation_id,
            status=AnalysisRunStatus.RUNNING,
            started_at=utc_now(),
        )
        return self.runs.insert_one(run)

    def finish_run(
        self,
        run: AnalysisRun,
        status: AnalysisRunStatus,
        counters: Dict[str, int],
        error_message: Optional[str] = None,
    ) -> Optional[AnalysisRun]:
        completed_at = utc_now()
        updates: Dict[str, Any] = {
            **counters,
            "status": status.value,
            "completed_at": completed_at,
            "error_message": error_message,
        }
        if run.started_at:
            updates["duration_seconds"] = (completed_at - run.started_at).total_seconds()
        return self.runs.update_one(run.id, updates)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_branches(self, repository_id: str | ObjectId) -> List[Branch]:
        return self.branches.find_by_repository(repository_id)

    def recent_commits(
        self, repository_id: str | ObjectId, limit: int
    ) -> List[Tuple[Commit, List[FileChange]]]:
        commits = self.commits.find_recent(repository_id, limit)
        changes = self.file_changes.find_by_commits(c.id for c in commits)
        return [(commit, changes.get(commit.id, [])) for commit in commits]

    def list_contributors(self, repository_id: str | ObjectId) -> List[Contributor]:
        return self.contributors.find_by_repository(repository_id)

    def list_languages(self, repository_id: str | ObjectId, limit: int = 0) -> List[Language]:
        return self.languages.find_by_repository(repository_id, limit=limit)

    def list_files(self, repository_id: str | ObjectId, limit: int = 0) -> List[RepositoryFile]:
        return self.files.find_by_repository(repository_id, limit=limit)

    def list_runs(self, repository_id: str | ObjectId, limit: int = 20) -> List[AnalysisRun]:
        return self.runs.find_by_repository(repository_id, limit=limit)

    def count_rows(self, repository_id: str | ObjectId) -> Dict[str, int]:
        query = {"repository_id": ObjectId(str(repository_id))}
        return {
            "commits": self.commits.count(query),
            "contributors": self.contributors.count(query),
            "files": self.files.count(query),
            "branches": self.branches.count(query),
        }
