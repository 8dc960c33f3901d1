"""Hand-off of analysis runs to the background worker."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class AnalysisDispatcher(Protocol):
    def dispatch(self, repository_id: str) -> None:
        ...


class CeleryAnalysisDispatcher:
    """Queues `analyze_repository` and returns without waiting for it."""

    def dispatch(self, repository_id: str) -> None:
        from gitverse.tasks.analysis import analyze_repository

        result = analyze_repository.delay(repository_id)
        logger.info(f"Queued analysis for repository {repository_id} (task {result.id})")
