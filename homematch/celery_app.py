"""
HomeMatch Celery Application Configuration

Configures Celery for background embedding work with Redis as broker.

Usage:
    # Start worker
    celery -A homematch.celery_app.celery worker --loglevel=info -Q embeddings,default
"""

import logging

import structlog
from celery import Celery

from homematch.config import settings

celery = Celery(
    "homematch",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["homematch.search.tasks"],
)

celery.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task execution
    task_acks_late=True,  # Acknowledge after task completes
    task_reject_on_worker_lost=True,  # Requeue tasks if worker crashes
    task_track_started=True,

    # Result backend settings
    result_expires=86400,  # 24 hours
    result_extended=True,

    # Worker settings
    worker_prefetch_multiplier=1,  # Batches are slow and sequential
    worker_concurrency=4,

    task_routes={
        "homematch.search.tasks.index_property_task": {"queue": "embeddings"},
        "homematch.search.tasks.index_properties_task": {"queue": "embeddings"},
    },
    task_default_queue="default",

    # Task time limits (in seconds)
    task_soft_time_limit=1800,
    task_time_limit=2100,
)


def configure_celery_logging():
    """Configure Celery to use structlog for consistent logging."""
    # Silence noisy loggers
    logging.getLogger("celery").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Apply logging config when module loads
configure_celery_logging()
