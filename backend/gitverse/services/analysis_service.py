"""
Repository analysis pipeline.

Drives one repository through pending -> analyzing -> completed | failed:
clone into a scratch directory, extract with GitExtractor, reconcile the
results with what is already stored, then recompute the aggregates.

Flow of `analyze`:
1. Load the repository (RepositoryNotFoundError if absent)
2. Mark it analyzing and open an AnalysisRun record
3. Shallow-clone into a unique scratch directory
4. Branches: insert unknown names, resolve the default branch
5. Commits on the default branch: insert unknown hashes with their file changes
6. File tree: insert unknown paths in batches
7. Contributors: replace with totals over the whole clone
8. Languages: drop non-code formats, normalize shares, replace
9. Mark completed with default branch, size and analysis time
Any failure in 2-9 marks the repository failed and re-raises. The scratch
directory is removed on every exit path.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, ContextManager, List, Optional, Sequence, Set, Tuple, Type

from pymongo.errors import PyMongoError

from gitverse.config import settings
from gitverse.core.tracing import TracingContext
from gitverse.entities import AnalysisRun, AnalysisRunStatus, RepositoryStatus
from gitverse.services.aggregates import contributor_shares, normalize_languages
from gitverse.services.analysis_store import AnalysisStore
from gitverse.services.exceptions import RepositoryNotFoundError
from gitverse.services.git.constants import DEFAULT_BRANCH_FALLBACK
from gitverse.services.git.extractor import GitExtractor
from gitverse.services.git.models import BranchInfo, CommitInfo, FileInfo
from gitverse.services.scratch import new_scratch_directory, remove_scratch_directory
from gitverse.utils.datetime import utc_now

logger = logging.getLogger(__name__)

LockFactory = Callable[[str], ContextManager]


def _no_lock(repository_id: str) -> ContextManager:
    return nullcontext()


def chunked(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


@dataclass
class AnalysisSummary:
    """Counters for one analysis run, also stored on the AnalysisRun row."""

    branches_found: int = 0
    commits_found: int = 0
    commits_inserted: int = 0
    commits_failed: int = 0
    commits_dropped: int = 0
    files_inserted: int = 0
    contributors: int = 0
    languages: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class RepositoryAnalysisService:
    """Runs the analysis pipeline for one repository at a time."""

    def __init__(
        self,
        store: AnalysisStore,
        lock_factory: Optional[LockFactory] = None,
        extractor_cls: Type[GitExtractor] = GitExtractor,
        scratch_root: Optional[Path] = None,
        clone_depth: Optional[int] = None,
        commit_limit: Optional[int] = None,
        file_batch_size: Optional[int] = None,
    ):
        self.store = store
        self.lock_factory = lock_factory or _no_lock
        self.extractor_cls = extractor_cls
        self.scratch_root = Path(scratch_root or settings.SCRATCH_ROOT)
        self.clone_depth = clone_depth or settings.CLONE_DEPTH
        self.commit_limit = commit_limit or settings.COMMIT_LIMIT
        self.file_batch_size = file_batch_size or settings.FILE_BATCH_SIZE

    def analyze(self, repository_id: str) -> AnalysisSummary:
        """
        Run the full pipeline for `repository_id`.

        Raises AnalysisInProgressError (from the lock factory) without touching
        the repository when another run holds the lock.
        """
        with self.lock_factory(repository_id):
            return self._analyze(repository_id)

    def _analyze(self, repository_id: str) -> AnalysisSummary:
        repository = self.store.get_repository(repository_id)
        if repository is None:
            raise RepositoryNotFoundError(repository_id)

        prefix = TracingContext.get_log_prefix()
        summary = AnalysisSummary()
        scratch_dir = new_scratch_directory(self.scratch_root, repository_id)
        run = None

        self.store.set_status(repository_id, RepositoryStatus.ANALYZING)
        try:
            run = self.store.start_run(
                repository_id, TracingContext.get_or_create_correlation_id()
            )
            extractor = self.extractor_cls.clone(
                repository.url, scratch_dir, depth=self.clone_depth
            )
            size = extractor.repository_size()

            logger.info(f"{prefix} Analyzing branches for repository {repository_id}")
            default_branch, branch_names = self._sync_branches(repository_id, extractor, summary)

            logger.info(f"{prefix} Analyzing commits on {default_branch}")
            self._sync_commits(repository_id, extractor, default_branch, branch_names, summary)

            logger.info(f"{prefix} Analyzing file tree for repository {repository_id}")
            files = self._sync_files(repository_id, extractor, summary)

            logger.info(f"{prefix} Analyzing contributors for repository {repository_id}")
            self._replace_contributors(repository_id, extractor, summary)

            logger.info(f"{prefix} Detecting languages for repository {repository_id}")
            self._replace_languages(repository_id, extractor, files, summary)

            self.store.set_status(
                repository_id,
                RepositoryStatus.COMPLETED,
                last_analyzed_at=utc_now(),
                default_branch=default_branch,
                size=size,
                last_error=None,
            )
            self.store.finish_run(run, AnalysisRunStatus.COMPLETED, summary.as_dict())
            logger.info(f"{prefix} Repository {repository_id} analysis completed: {summary.as_dict()}")
            return summary

        except Exception as e:
            logger.error(f"{prefix} Error analyzing repository {repository_id}: {e}", exc_info=True)
            self._mark_failed(repository_id, run, summary, e)
            raise

        finally:
            remove_scratch_directory(scratch_dir)

    def _mark_failed(
        self, repository_id: str, run: Optional[AnalysisRun], summary: AnalysisSummary, error: Exception
    ) -> None:
        try:
            self.store.set_status(repository_id, RepositoryStatus.FAILED, last_error=str(error))
            if run is not None:
                self.store.finish_run(
                    run, AnalysisRunStatus.FAILED, summary.as_dict(), error_message=str(error)
                )
        except PyMongoError as db_error:
            logger.error(f"Could not record failure of repository {repository_id}: {db_error}")

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _sync_branches(
        self, repository_id: str, extractor: GitExtractor, summary: AnalysisSummary
    ) -> Tuple[str, Set[str]]:
        branches: List[BranchInfo] = extractor.resolve_branches()
        summary.branches_found = len(branches)
        inserted = self.store.insert_branches(repository_id, branches)
        logger.info(f"Found {len(branches)} branches, {inserted} new")

        default = next((b.name for b in branches if b.is_default), None)
        return default or DEFAULT_BRANCH_FALLBACK, {b.name for b in branches}

    def _sync_commits(
        self,
        repository_id: str,
        extractor: GitExtractor,
        default_branch: str,
        branch_names: Set[str],
        summary: AnalysisSummary,
    ) -> None:
        # The fallback name may not exist locally when remote HEAD is unresolved
        ref = default_branch if default_branch in branch_names else "HEAD"

        dropped_before = len(extractor.diagnostics)
        commits: List[CommitInfo] = extractor.resolve_commits(
            default_branch, limit=self.commit_limit, ref=ref
        )
        summary.commits_found = len(commits)
        summary.commits_dropped = len(extractor.diagnostics) - dropped_before

        existing = self.store.known_commit_hashes(repository_id)
        new_commits = [c for c in commits if c.hash not in existing]
        logger.info(
            f"Found {len(commits)} commits, {len(new_commits)} are new, "
            f"{len(existing)} already exist"
        )

        for commit in new_commits:
            row = None
            try:
                row = self.store.insert_commit(repository_id, commit)
                if commit.file_changes:
                    self.store.insert_file_changes(row, commit.file_changes)
                summary.commits_inserted += 1
            except PyMongoError as e:
                summary.commits_failed += 1
                logger.warning(f"Failed to insert commit {commit.hash}: {e}")
                if row is not None:
                    self._discard_commit(row)

        logger.info(
            f"Commit insertion complete: {summary.commits_inserted} inserted, "
            f"{summary.commits_failed} failed"
        )

    def _discard_commit(self, row) -> None:
        # Stored commits always carry their file changes
        try:
            self.store.discard_commit(row)
        except PyMongoError as e:
            logger.error(f"Could not remove partially stored commit {row.hash}: {e}")

    def _sync_files(
        self, repository_id: str, extractor: GitExtractor, summary: AnalysisSummary
    ) -> List[FileInfo]:
        files = extractor.build_file_tree()
        existing = self.store.known_file_paths(repository_id)
        new_files = [f for f in files if f.path not in existing]

        for batch in chunked(new_files, self.file_batch_size):
            summary.files_inserted += self.store.insert_files(repository_id, batch)

        logger.info(f"Inserted {summary.files_inserted} new files of {len(files)} tracked")
        return files

    def _replace_contributors(
        self, repository_id: str, extractor: GitExtractor, summary: AnalysisSummary
    ) -> None:
        contributors = extractor.resolve_contributors()
        summary.contributors = self.store.replace_contributors(
            repository_id, contributor_shares(contributors)
        )

    def _replace_languages(
        self,
        repository_id: str,
        extractor: GitExtractor,
        files: List[FileInfo],
        summary: AnalysisSummary,
    ) -> None:
        languages = normalize_languages(extractor.detect_languages(files))
        summary.languages = self.store.replace_languages(repository_id, languages)
