from celery import Celery

from notaryflow.config import settings

celery_app = Celery(
    "notaryflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["notaryflow.tasks.events", "notaryflow.tasks.notifications"],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
)
