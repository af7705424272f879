from app.tasks.celery_app import celery
from app.tasks import worker_jobs

@celery.task(name="app.tasks.jobs.reconcile_settlements")
def reconcile_settlements():
    return worker_jobs.reconcile_settlements()
