"""Celery worker configuration.

This module sets up Celery for background task processing including:
- Bulk withdrawal payouts
- Daily stay completion
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

# Create Celery app
celery_app = Celery(
    "stayledger_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,  # Soft limit at 4 minutes

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour

    # Retry settings
    task_default_retry_delay=60,  # 1 minute
    task_max_retries=3,

    # Payout batches run on their own queue so a long batch never delays stay completion
    task_routes={
        "app.tasks.process_withdrawal_payouts": {"queue": "payouts"},
    },

    # Beat schedule for periodic tasks
    beat_schedule={
        # Check out finished stays once a day
        "complete-finished-stays": {
            "task": "app.tasks.complete_finished_stays",
            "schedule": crontab(hour=settings.stay_completion_hour, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
