"""
Analysis task - runs the repository analysis pipeline in the background.

Queued by RepositoryService whenever a repository needs (re-)analysis. The
soft time limit surfaces as SoftTimeLimitExceeded inside the pipeline, which
marks the repository failed and removes the scratch clone like any other
error.
"""

import logging
from typing import Any, Dict

from gitverse.celery_app import celery_app
from gitverse.config import settings
from gitverse.core.tracing import TracingContext
from gitverse.services.exceptions import AnalysisInProgressError, RepositoryNotFoundError
from gitverse.tasks.base import PipelineTask

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="gitverse.tasks.analysis.analyze_repository",
    queue="analysis",
    acks_late=True,
    soft_time_limit=settings.ANALYSIS_SOFT_TIME_LIMIT,
    time_limit=settings.ANALYSIS_TIME_LIMIT,
)
def analyze_repository(self: PipelineTask, repository_id: str) -> Dict[str, Any]:
    correlation_id = self.request.id or TracingContext.get_or_create_correlation_id()
    TracingContext.set(
        correlation_id=correlation_id,
        repo_id=repository_id,
        task_name="analyze_repository",
    )
    prefix = TracingContext.get_log_prefix()

    try:
        summary = self.analysis_service().analyze(repository_id)
        return {"repository_id": repository_id, "status": "completed", **summary.as_dict()}

    except AnalysisInProgressError:
        logger.info(f"{prefix} Analysis already running for repository {repository_id}, skipping")
        return {"repository_id": repository_id, "status": "skipped", "reason": "in_progress"}

    except RepositoryNotFoundError:
        logger.warning(f"{prefix} Repository {repository_id} no longer exists, skipping")
        return {"repository_id": repository_id, "status": "skipped", "reason": "not_found"}

    finally:
        TracingContext.clear()
