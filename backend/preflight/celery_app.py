# preflight/celery_app.py
from celery import Celery
from dotenv import load_dotenv

from preflight.core.config import settings
from preflight.core.logging_config import configure_logging

load_dotenv()

# Ensure logging is configured in worker processes as early as possible.
configure_logging()

celery_app = Celery(
    "preflight",
    broker=settings.REDIS_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_BROKER_URL,
    include=["preflight.tasks.preflight_pipeline"],
)

celery_app.conf.task_acks_late = True
celery_app.conf.worker_prefetch_multiplier = 1
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.worker_concurrency = settings.WORKER_CONCURRENCY

# prevent Celery from overriding our root logger
celery_app.conf.worker_hijack_root_logger = False

# Tool calls die with the task: subprocess.run kills its child when the
# soft limit interrupts the wait.
celery_app.conf.task_soft_time_limit = settings.TASK_SOFT_TIME_LIMIT_SECONDS
celery_app.conf.task_time_limit = settings.TASK_SOFT_TIME_LIMIT_SECONDS + 30

celery_app.conf.task_routes = {
    "preflight.tasks.preflight_pipeline.preflight_file_task": {"queue": "preflight_q"},
    "preflight.tasks.preflight_pipeline.summarize_upload_task": {"queue": "preflight_q"},
}
