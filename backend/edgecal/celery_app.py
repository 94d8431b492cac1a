"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from edgecal.config import settings

# Create Celery app
celery_app = Celery(
    "edgecal",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["edgecal.tasks.calibration"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,  # the agent step waits on the LLM
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

# Beat schedule: Monday night football is final by Tuesday morning UTC
celery_app.conf.beat_schedule = {
    "weekly-accuracy": {
        "task": "edgecal.tasks.calibration.run_accuracy_evaluation",
        "schedule": crontab(minute=0, hour=11, day_of_week="tue"),
    },
    "weekly-learning": {
        "task": "edgecal.tasks.calibration.run_weight_learning",
        "schedule": crontab(minute=0, hour=12, day_of_week="tue"),
    },
    "weekly-analysis-and-agent": {
        "task": "edgecal.tasks.calibration.run_analysis_and_agent",
        "schedule": crontab(minute=0, hour=13, day_of_week="tue"),
    },
    # Applied changes become due for evaluation 7 days after they land
    "daily-improvement-evaluation": {
        "task": "edgecal.tasks.calibration.run_improvement_evaluation",
        "schedule": crontab(minute=0, hour=14),
    },
}
