"""
Maintenance Tasks - Scheduled cleanup and housekeeping jobs.

These tasks are designed to run periodically via Celery Beat. They recover
from runs whose worker died before its own cleanup could execute.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from celery import shared_task

from gitverse.config import settings
from gitverse.entities import RepositoryStatus
from gitverse.repositories import AnalysisRunRepository
from gitverse.services.analysis_store import AnalysisStore
from gitverse.services.scratch import find_stale_scratch_directories, remove_scratch_directory
from gitverse.tasks.base import PipelineTask
from gitverse.utils.locking import lock_key

logger = logging.getLogger(__name__)

STALE_ANALYSIS_ERROR = "Analysis did not finish; the worker stopped before completing it"


def _executed_at() -> str:
    return datetime.now(timezone.utc).isoformat()


@shared_task(
    name="gitverse.tasks.maintenance.cleanup_scratch_directories",
    bind=True,
    queue="maintenance",
)
def cleanup_scratch_directories(self, max_age_hours: int | None = None) -> Dict[str, Any]:
    """
    Remove scratch clones left behind by interrupted analyses.

    Args:
        max_age_hours: Directories untouched for longer than this are removed.

    Returns:
        Dict with removed/failed counts and timestamp.
    """
    max_age_hours = max_age_hours or settings.STALE_SCRATCH_MAX_AGE_HOURS
    stale = find_stale_scratch_directories(settings.SCRATCH_ROOT, max_age_hours * 3600)

    removed = sum(1 for path in stale if remove_scratch_directory(path))
    failed = len(stale) - removed
    logger.info(
        f"Scratch cleanup completed: removed {removed} directories older than "
        f"{max_age_hours}h, {failed} could not be removed"
    )
    return {
        "status": "success" if not failed else "partial",
        "removed_count": removed,
        "failed_count": failed,
        "executed_at": _executed_at(),
    }


@shared_task(
    name="gitverse.tasks.maintenance.fail_stale_analyses",
    bind=True,
    base=PipelineTask,
    queue="maintenance",
)
def fail_stale_analyses(self, max_age_hours: int | None = None) -> Dict[str, Any]:
    """
    Mark repositories stuck in `analyzing` as failed so they can be retried.

    Repositories whose analysis lock is still held are left alone.
    """
    max_age_hours = max_age_hours or settings.STALE_ANALYSIS_MAX_AGE_HOURS
    store = AnalysisStore(self.db)

    try:
        failed_ids = []
        for repository in store.find_stale_analyzing(timedelta(hours=max_age_hours)):
            repo_id = str(repository.id)
            if self.redis.exists(lock_key(repo_id)):
                logger.info(f"Repository {repo_id} still holds its analysis lock, leaving it")
                continue
            store.set_status(repo_id, RepositoryStatus.FAILED, last_error=STALE_ANALYSIS_ERROR)
            failed_ids.append(repo_id)

        if failed_ids:
            logger.warning(f"Marked {len(failed_ids)} stale analyses as failed: {failed_ids}")
        return {
            "status": "success",
            "failed_count": len(failed_ids),
            "repository_ids": failed_ids,
            "executed_at": _executed_at(),
        }

    except Exception as e:
        logger.error(f"Stale analysis sweep failed: {e}", exc_info=True)
        return {"status": "failed", "error": str(e), "executed_at": _executed_at()}


@shared_task(
    name="gitverse.tasks.maintenance.cleanup_analysis_runs",
    bind=True,
    base=PipelineTask,
    queue="maintenance",
)
def cleanup_analysis_runs(self, days: int = 90) -> Dict[str, Any]:
    """Delete analysis run records older than `days`."""
    try:
        deleted_count = AnalysisRunRepository(self.db).cleanup_old_runs(days=days)
        logger.info(
            f"Analysis runs cleanup completed: deleted {deleted_count} runs older than {days} days"
        )
        return {
            "status": "success",
            "deleted_count": deleted_count,
            "days_threshold": days,
            "executed_at": _executed_at(),
        }

    except Exception as e:
        logger.error(f"Analysis runs cleanup failed: {e}", exc_info=True)
        return {"status": "failed", "error": str(e), "executed_at": _executed_at()}
