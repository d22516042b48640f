"""
Celery application: broker and result backend from settings.
Tasks live in enhancer.workers.tasks (render job processing, watchdog).
"""
from celery import Celery, signals
from celery.schedules import crontab

from enhancer.core.config import settings

celery_app = Celery(
    "enhancer",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "enhancer.workers.tasks.render_job",
        "enhancer.workers.tasks.watchdog",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # at-least-once: a job is re-delivered if the worker dies mid-poll
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_always_eager=settings.celery_task_always_eager,
    result_expires=86400,
    beat_schedule={
        "redispatch-stale-render-jobs": {
            "task": "enhancer.workers.tasks.watchdog.redispatch_stale_jobs",
            "schedule": crontab(minute="*/5"),
        },
    },
)

celery_app.conf.task_routes = {
    "enhancer.workers.tasks.render_job.process_render_job": {"queue": "render"},
}


@signals.setup_logging.connect
def _setup_logging(**kwargs) -> None:
    from enhancer.core.logging import configure_logging

    configure_logging()
