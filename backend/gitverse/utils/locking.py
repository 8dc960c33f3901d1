"""
Per-repository single-flight lock.

Backed by Redis so that at most one analysis per repository runs across all
worker processes and hosts.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

import redis
from redis.exceptions import LockError

from gitverse.config import settings
from gitverse.services.exceptions import AnalysisInProgressError

logger = logging.getLogger(__name__)

LOCK_PREFIX = "gitverse:analysis-lock"


def lock_key(repo_id: str) -> str:
    return f"{LOCK_PREFIX}:{repo_id}"


@contextmanager
def repo_lock(
    repo_id: str,
    client: redis.Redis,
    ttl: int | None = None,
) -> Iterator[None]:
    """
    Hold the analysis lock for `repo_id` or raise AnalysisInProgressError.

    Never waits: a second caller fails immediately. The TTL bounds how long
    a crashed holder can block the repository.
    """
    lock = client.lock(lock_key(repo_id), timeout=ttl or settings.ANALYSIS_LOCK_TTL)
    if not lock.acquire(blocking=False):
        raise AnalysisInProgressError(repo_id)
    try:
        yield
    finally:
        try:
            lock.release()
        except LockError as e:
            logger.warning(f"Analysis lock for {repo_id} expired before release: {e}")
