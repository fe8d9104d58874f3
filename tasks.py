# tasks.py

import logging

from botocore.exceptions import BotoCoreError, ClientError
from celery import Celery
from celery.schedules import crontab

from config import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, THUMBNAIL_MAX_RETRIES
from database import SessionLocal
from exceptions import GenerationError, InvalidState, NotFound, UploadFailed
from pipeline import check_video_status, generate_thumbnail, run_auto_pilot, upload_to_platform
from services import get_collaborators
from store import OperationStore, UserStore

# Asset storage hiccups are as transient as the generation service.
STORAGE_ERRORS = (ClientError, BotoCoreError)

celery = Celery('tasks', broker=CELERY_BROKER_URL, backend=CELERY_RESULT_BACKEND)
celery.conf.beat_schedule = {
    "autopilot-sweep": {
        "task": "tasks.autopilot_sweep_task",
        "schedule": crontab(minute=0, hour="*/6"),
    },
    "purge-expired-operations": {
        "task": "tasks.purge_operations_task",
        "schedule": crontab(minute=30),
    },
}
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


# acks_late + retries: a thumbnail request survives a worker crash and transient
# generation or storage errors, and its progress is visible on the video's thumbnail_status.
@celery.task(bind=True, acks_late=True, autoretry_for=(GenerationError,) + STORAGE_ERRORS,
             retry_backoff=True, max_retries=THUMBNAIL_MAX_RETRIES)
def generate_thumbnail_task(self, video_id: str):
    db = SessionLocal()
    try:
        logging.info(f"🖼️ Worker generating thumbnail for video {video_id} (attempt {self.request.retries + 1})")
        return generate_thumbnail(db, get_collaborators(), video_id)
    except NotFound:
        logging.warning(f"Thumbnail requested for unknown video {video_id}")
    finally:
        db.close()


@celery.task(bind=True, acks_late=True, autoretry_for=(UploadFailed,) + STORAGE_ERRORS, retry_backoff=True,
             max_retries=3)
def upload_video_task(self, video_id: str):
    db = SessionLocal()
    try:
        return upload_to_platform(db, get_collaborators(), video_id)
    except (NotFound, InvalidState) as e:
        logging.error(f"❌ Upload of video {video_id} skipped: {e}")
    finally:
        db.close()


@celery.task
def reconcile_video_task(video_id: str):
    db = SessionLocal()
    try:
        return check_video_status(db, get_collaborators(), video_id).model_dump()
    finally:
        db.close()


@celery.task
def autopilot_task(uid: str, kind: str):
    db = SessionLocal()
    try:
        return run_auto_pilot(db, get_collaborators(), uid, kind).model_dump()
    finally:
        db.close()


@celery.task
def autopilot_sweep_task():
    """Fan out the auto-pilot for every user who switched autonomous mode on."""
    db = SessionLocal()
    try:
        users = [user.id for user in UserStore(db).autopilot_users()]
    finally:
        db.close()

    for uid in users:
        for kind in ("short", "long"):
            autopilot_task.delay(uid, kind)
    logging.info(f"Auto-Pilot sweep queued {len(users)} user(s)")
    return len(users)


@celery.task
def purge_operations_task():
    db = SessionLocal()
    try:
        removed = OperationStore(db).purge_expired()
        if removed:
            logging.info(f"Purged {removed} expired render operation(s)")
        return removed
    finally:
        db.close()
