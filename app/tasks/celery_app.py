import ssl

from celery import Celery
from app.core.config import settings

celery = Celery(
    "lumora",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.tasks.jobs"],
)

celery.conf.timezone = "UTC"
celery.conf.task_acks_late = True

if settings.REDIS_URL.strip().lower().startswith("rediss://"):
    # hosted TLS redis without client certificates
    celery.conf.broker_use_ssl = {"ssl_cert_reqs": ssl.CERT_NONE}
    celery.conf.redis_backend_use_ssl = {"ssl_cert_reqs": ssl.CERT_NONE}

celery.conf.beat_schedule = {
    "reconcile-settlements": {
        "task": "app.tasks.jobs.reconcile_settlements",
        "schedule": settings.RECONCILE_INTERVAL_SECONDS,
    },
}
