"""
Celery Application Configuration
Background generation (lesson prefetch)
"""

from celery import Celery
from kombu import Queue, Exchange

from tutorgen.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "tutorgen",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "tutorgen.workers.tasks.generation_tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    result_expires=86400,  # 24 hours

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,
    task_soft_time_limit=240,

    worker_prefetch_multiplier=1,

    task_default_rate_limit="30/m",

    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("generation", Exchange("generation"), routing_key="generation"),
    ),

    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",

    task_routes={
        "tutorgen.workers.tasks.generation_tasks.*": {"queue": "generation"},
    },
)
