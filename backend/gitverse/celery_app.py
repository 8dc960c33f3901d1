"""Celery application for background analysis and maintenance."""

import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init, worker_process_shutdown

from gitverse.config import settings
from gitverse.core.logging import setup_logging

logger = logging.getLogger(__name__)

celery_app = Celery(
    "gitverse",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["gitverse.tasks.analysis", "gitverse.tasks.maintenance"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue="analysis",
    task_routes={
        "gitverse.tasks.analysis.*": {"queue": "analysis"},
        "gitverse.tasks.maintenance.*": {"queue": "maintenance"},
    },
    beat_schedule={
        "cleanup-scratch-directories": {
            "task": "gitverse.tasks.maintenance.cleanup_scratch_directories",
            "schedule": crontab(minute=0),
        },
        "fail-stale-analyses": {
            "task": "gitverse.tasks.maintenance.fail_stale_analyses",
            "schedule": crontab(minute="*/15"),
        },
        "cleanup-analysis-runs": {
            "task": "gitverse.tasks.maintenance.cleanup_analysis_runs",
            "schedule": crontab(hour=3, minute=30),
        },
    },
)


@worker_process_init.connect
def _init_worker_process(**kwargs):
    setup_logging()
    logger.info("Worker process initialised")


@worker_process_shutdown.connect
def _shutdown_worker_process(**kwargs):
    from gitverse.tasks.base import close_worker_resources

    close_worker_resources()
