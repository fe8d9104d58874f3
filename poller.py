"""
Client-facing poller: keeps a user's in-flight videos moving by reconciling them
on a fixed interval.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from config import POLL_INTERVAL_SECONDS, POLL_MAX_WORKERS
from database import SessionLocal
from models import Video, VideoStatus
from pipeline import check_video_status
from schemas import StatusResponse, VideoOut
from services import Collaborators, get_collaborators
from store import VideoStore


def _reconcile_one(session_factory: Callable[[], Session], collaborators: Collaborators,
                   video_id: str) -> StatusResponse:
    # Sessions are not thread-safe, so every reconciliation gets its own.
    db = session_factory()
    try:
        return check_video_status(db, collaborators, video_id)
    finally:
        db.close()


def poll_user_videos(uid: str, session_factory: Callable[[], Session] = SessionLocal,
                     collaborators: Optional[Collaborators] = None,
                     max_workers: int = POLL_MAX_WORKERS) -> List[VideoOut]:
    """
    One polling pass: reconcile every in-flight video of the user in parallel,
    wait for all of them, then return the refreshed list.
    """
    collaborators = collaborators or get_collaborators()

    db = session_factory()
    try:
        in_flight = [v.id for v in VideoStore(db).query(Video.uid == uid, Video.status.in_(VideoStatus.IN_FLIGHT))]
    finally:
        db.close()

    if in_flight:
        logging.info(f"Polling {len(in_flight)} in-flight video(s) for user {uid}")
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(in_flight)))) as pool:
            futures = [pool.submit(_reconcile_one, session_factory, collaborators, vid) for vid in in_flight]
            for video_id, future in zip(in_flight, futures):
                try:
                    future.result()
                except Exception as e:
                    # Store or network trouble; the next pass tries again.
                    logging.error(f"Reconciling video {video_id} raised: {e}")

    db = session_factory()
    try:
        return [VideoOut.model_validate(v) for v in VideoStore(db).get_all_videos(uid)]
    finally:
        db.close()


class ClientPoller:
    """Runs `poll_user_videos` every few seconds until stopped."""

    def __init__(self, uid: str, on_refresh: Optional[Callable[[List[VideoOut]], None]] = None,
                 interval: float = POLL_INTERVAL_SECONDS, **poll_kwargs):
        self.uid = uid
        self.on_refresh = on_refresh
        self.interval = interval
        self.poll_kwargs = poll_kwargs
        self._stop = threading.Event()

    def poll_once(self) -> List[VideoOut]:
        videos = poll_user_videos(self.uid, **self.poll_kwargs)
        if self.on_refresh:
            self.on_refresh(videos)
        return videos

    def run(self) -> None:
        # Initial fetch, then one pass per interval.
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logging.error(f"Polling pass for user {self.uid} failed: {e}")
            self._stop.wait(self.interval)

    def stop(self) -> None:
        self._stop.set()
