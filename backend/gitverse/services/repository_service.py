"""
Trigger and query surface for repository analysis.

Callers (an HTTP layer, a CLI, a test) submit URLs here and read results
back. Analysis itself always runs in the background worker; nothing in this
module waits for it.
"""

import logging
import os
from typing import List, Optional
from urllib.parse import urlparse

from bson import ObjectId

from gitverse.dtos import (
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
from gitverse.entities import Repository, RepositoryStatus
from gitverse.services.analysis_store import AnalysisStore
from gitverse.services.dispatch import AnalysisDispatcher, CeleryAnalysisDispatcher
from gitverse.services.exceptions import RepositoryNotFoundError

logger = logging.getLogger(__name__)

DETAIL_COMMIT_LIMIT = 100
DETAIL_FILE_LIMIT = 500
SUMMARY_LANGUAGE_LIMIT = 3
STATS_RECENT_COMMITS = 10

RETRIGGER_STATUSES = {RepositoryStatus.PENDING.value, RepositoryStatus.FAILED.value}


def derive_repository_name(url: str) -> str:
    """Last path segment of a clone URL without a trailing `.git`."""
    if not url or not url.strip():
        raise ValueError("url cannot be empty")

    path = urlparse(url.strip()).path or url.strip()
    # scp-like "git@host:owner/name.git" has no URL path
    if ":" in path and "/" not in path.split(":", 1)[0]:
        path = path.split(":", 1)[1]
    name = os.path.basename(path.rstrip("/"))
    if name.endswith(".git"):
        name = name[:-4]

    name = name.strip()
    if not name:
        raise ValueError(f"Could not extract repository name from URL: {url}")
    return name


def _serialize_repo(repository: Repository) -> RepositoryResponse:
    return RepositoryResponse.model_validate(repository.to_mongo())


class RepositoryService:
    def __init__(self, store: AnalysisStore, dispatcher: Optional[AnalysisDispatcher] = None):
        self.store = store
        self.dispatcher = dispatcher or CeleryAnalysisDispatcher()

    def create_or_get(
        self,
        url: str,
        user_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> RepositoryResponse:
        """
        Return the user's repository for `url`, creating it if needed.

        New, pending and failed repositories get an analysis queued; completed
        and analyzing ones are returned as they are. Concurrent submissions of
        the same URL by the same user resolve to one row.
        """
        url = url.strip()
        repository, created = self.store.get_or_create_repository(
            user_id, url, name or derive_repository_name(url), description
        )

        if created:
            logger.info(f"Created repository {repository.id} for {url}")
        if created or repository.status in RETRIGGER_STATUSES:
            repository = self._trigger(repository)
        return _serialize_repo(repository)

    def reanalyze(self, repository_id: str, user_id: str) -> RepositoryResponse:
        """Queue a fresh analysis regardless of the current status."""
        repository = self._get_owned(repository_id, user_id)
        return _serialize_repo(self._trigger(repository))

    def get_repository(self, repository_id: str, user_id: str) -> RepositoryDetailResponse:
        repository = self._get_owned(repository_id, user_id)

        commits = [
            CommitResponse.model_validate(
                {
                    **commit.to_mongo(),
                    "file_changes": [
                        FileChangeResponse.model_validate(change.model_dump())
                        for change in changes
                    ],
                }
            )
            for commit, changes in self.store.recent_commits(repository.id, DETAIL_COMMIT_LIMIT)
        ]

        return RepositoryDetailResponse.model_validate(
            {
                **repository.to_mongo(),
                "branches": [
                    BranchResponse.model_validate(b.to_mongo())
                    for b in self.store.list_branches(repository.id)
                ],
                "commits": commits,
                "contributors": [
                    ContributorResponse.model_validate(c.model_dump())
                    for c in self.store.list_contributors(repository.id)
                ],
                "languages": [
                    LanguageResponse.model_validate(lang.model_dump())
                    for lang in self.store.list_languages(repository.id)
                ],
                "files": [
                    FileResponse.model_validate(f.model_dump())
                    for f in self.store.list_files(repository.id, limit=DETAIL_FILE_LIMIT)
                ],
                "analysis_runs": [
                    AnalysisRunResponse.model_validate(run.to_mongo())
                    for run in self.store.list_runs(repository.id)
                ],
            }
        )

    def list_repositories(self, user_id: str) -> List[RepositorySummaryResponse]:
        summaries = []
        for repository in self.store.list_repositories(user_id):
            counts = self.store.count_rows(repository.id)
            languages = self.store.list_languages(repository.id, limit=SUMMARY_LANGUAGE_LIMIT)
            summaries.append(
                RepositorySummaryResponse.model_validate(
                    {
                        **repository.to_mongo(),
                        "commit_count": counts["commits"],
                        "contributor_count": counts["contributors"],
                        "file_count": counts["files"],
                        "branch_count": counts["branches"],
                        "languages": [
                            LanguageResponse.model_validate(lang.model_dump())
                            for lang in languages
                        ],
                    }
                )
            )
        return summaries

    def delete_repository(self, repository_id: str, user_id: str) -> None:
        repository = self._get_owned(repository_id, user_id)
        self.store.delete_repository(repository.id)
        logger.info(f"Deleted repository {repository.id} ({repository.url})")

    def get_repository_stats(self, repository_id: str, user_id: str) -> RepositoryStatsResponse:
        repository = self._get_owned(repository_id, user_id)
        counts = self.store.count_rows(repository.id)
        recent = self.store.recent_commits(repository.id, STATS_RECENT_COMMITS)

        return RepositoryStatsResponse(
            total_commits=counts["commits"],
            total_contributors=counts["contributors"],
            total_files=counts["files"],
            total_branches=counts["branches"],
            recent_commits=[
                RecentCommitResponse(
                    short_hash=commit.short_hash,
                    message=commit.message,
                    author_name=commit.author_name,
                    committed_at=commit.committed_at,
                )
                for commit, _changes in recent
            ],
            status=repository.status,
            last_analyzed_at=repository.last_analyzed_at,
        )

    def _get_owned(self, repository_id: str, user_id: str) -> Repository:
        if not ObjectId.is_valid(str(repository_id)):
            raise RepositoryNotFoundError(repository_id)
        repository = self.store.get_repository_for_user(repository_id, user_id)
        if repository is None:
            raise RepositoryNotFoundError(repository_id)
        return repository

    def _trigger(self, repository: Repository) -> Repository:
        """Queue analysis; a broker failure marks the repository failed instead of raising."""
        try:
            self.dispatcher.dispatch(str(repository.id))
        except Exception as e:
            logger.error(f"Failed to queue analysis for repository {repository.id}: {e}")
            updated = self.store.set_status(
                repository.id,
                RepositoryStatus.FAILED,
                last_error=f"Could not queue analysis: {e}",
            )
            return updated or repository
        return repository
