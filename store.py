"""
Typed access to the persisted records: videos, users and render operations.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from config import MATERIALIZE_STALE_SECONDS, OPERATION_TTL_SECONDS
from exceptions import OperationExpired
from models import Operation, User, Video, VideoStatus, new_id
from schemas import OperationDescriptor, VideoCounts

Clock = Callable[[], datetime]


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def day_window(moment: datetime):
    """The local calendar day containing `moment`, both ends inclusive."""
    start = start_of_day(moment)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def week_window(moment: datetime):
    """The Sunday-aligned week containing `moment`, both ends inclusive."""
    # weekday(): Monday is 0, Sunday is 6
    days_since_sunday = (moment.weekday() + 1) % 7
    start = start_of_day(moment) - timedelta(days=days_since_sunday)
    return start, start + timedelta(days=7) - timedelta(microseconds=1)


class VideoStore:
    """Reads and writes Video records. Queries involving a user are always scoped to that user."""

    def __init__(self, db: Session, clock: Clock = datetime.now):
        self.db = db
        self.clock = clock

    # --- Generic document operations ---

    def create(self, data: Dict[str, Any], commit: bool = True) -> str:
        now = self.clock()
        video = Video(**{"id": new_id(), **data}, created_at=now, updated_at=now)
        self.db.add(video)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        return video.id

    def get(self, video_id: str) -> Optional[Video]:
        return self.db.get(Video, video_id)

    def merge(self, video_id: str, partial: Dict[str, Any], commit: bool = True) -> None:
        values = dict(partial, updated_at=self.clock())
        self.db.query(Video).filter(Video.id == video_id).update(values, synchronize_session="fetch")
        if commit:
            self.db.commit()

    def query(self, *criteria) -> List[Video]:
        return self.db.query(Video).filter(*criteria).order_by(Video.created_at.desc()).all()

    # --- Video lifecycle ---

    def add_new_video(self, uid: str, commit: bool = True, **details) -> str:
        video_id = self.create(dict(details, uid=uid, status=VideoStatus.PROCESSING), commit=commit)
        logging.info(f"Added new video with ID: {video_id}")
        return video_id

    def update_video_metadata(self, video_id: str, **metadata) -> None:
        self.merge(video_id, metadata)

    def get_video(self, video_id: str) -> Optional[Video]:
        video = self.get(video_id)
        if video is not None:
            # Another session may have written since this one last looked.
            self.db.refresh(video)
        return video

    def get_all_videos(self, uid: str) -> List[Video]:
        return self.query(Video.uid == uid)

    def claim_for_materialization(self, video_id: str) -> bool:
        """
        Move a video from Processing to Materializing if nobody else has.
        A claim that has been sitting for too long is treated as abandoned.
        Returns True only for the caller that performed the transition.
        """
        now = self.clock()
        stale_before = now - timedelta(seconds=MATERIALIZE_STALE_SECONDS)
        claimed = (
            self.db.query(Video)
            .filter(
                Video.id == video_id,
                or_(
                    Video.status == VideoStatus.PROCESSING,
                    (Video.status == VideoStatus.MATERIALIZING) & (Video.updated_at < stale_before),
                ),
            )
            .update({"status": VideoStatus.MATERIALIZING, "updated_at": now}, synchronize_session="fetch")
        )
        self.db.commit()
        return claimed == 1

    # --- Aggregates ---

    def _counts_between(self, uid: str, start: datetime, end: datetime) -> VideoCounts:
        videos = self.query(Video.uid == uid, Video.created_at >= start, Video.created_at <= end)
        counts = VideoCounts()
        for video in videos:
            if video.video_length == "short":
                counts.shorts += 1
            elif video.video_length == "long":
                counts.longs += 1
        return counts

    def get_todays_video_counts(self, uid: str) -> VideoCounts:
        return self._counts_between(uid, *day_window(self.clock()))

    def get_this_weeks_video_counts(self, uid: str) -> VideoCounts:
        return self._counts_between(uid, *week_window(self.clock()))

    def get_playlists(self, uid: str) -> List[str]:
        rows = (
            self.db.query(Video.playlist)
            .filter(Video.uid == uid, Video.playlist.isnot(None), Video.playlist != "")
            .distinct()
            .all()
        )
        return sorted(row[0] for row in rows)

    def count_videos_in_playlist(self, uid: str, playlist: str) -> int:
        return self.db.query(Video).filter(Video.uid == uid, Video.playlist == playlist).count()


class UserStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, uid: str) -> Optional[User]:
        return self.db.get(User, uid)

    def get_or_create(self, uid: str) -> User:
        user = self.get(uid)
        if user is None:
            user = User(id=uid)
            self.db.add(user)
            self.db.commit()
        return user

    def update_settings(self, uid: str, **settings) -> User:
        user = self.get_or_create(uid)
        for key, value in settings.items():
            if value is not None:
                setattr(user, key, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    def autopilot_users(self) -> List[User]:
        return self.db.query(User).filter(User.autopilot_enabled.is_(True)).all()


class OperationStore:
    """
    Shared, durable home for render operation descriptors.
    Every serving process sees the same rows, so a poll never depends on where the
    operation was submitted. Rows expire a fixed time after they were first stored.
    """

    def __init__(self, db: Session, ttl_seconds: int = OPERATION_TTL_SECONDS, clock: Clock = datetime.now):
        self.db = db
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock

    def store_operation(self, descriptor: OperationDescriptor, commit: bool = True) -> None:
        now = self.clock()
        self.db.merge(Operation(
            name=descriptor.name,
            done=descriptor.done,
            error=descriptor.error,
            output=descriptor.output,
            stored_at=now,
            updated_at=now,
        ))
        if commit:
            self.db.commit()

    def update_operation(self, descriptor: OperationDescriptor) -> None:
        """Record a newer poll result without touching the original insertion time."""
        self.db.query(Operation).filter(Operation.name == descriptor.name).update({
            "done": descriptor.done,
            "error": descriptor.error,
            "output": descriptor.output,
            "updated_at": self.clock(),
        }, synchronize_session=False)
        self.db.commit()

    def get_operation(self, name: str) -> Optional[OperationDescriptor]:
        """
        Returns None when nothing was ever stored under `name`.
        Raises OperationExpired (after deleting the row) once the TTL has elapsed.
        """
        row = self.db.get(Operation, name)
        if row is None:
            return None
        if self.clock() - row.stored_at > self.ttl:
            self.db.delete(row)
            self.db.commit()
            raise OperationExpired(f"Operation {name} expired after {self.ttl}")
        return OperationDescriptor(name=row.name, done=row.done, error=row.error, output=row.output)

    def purge_expired(self) -> int:
        cutoff = self.clock() - self.ttl
        removed = self.db.query(Operation).filter(Operation.stored_at < cutoff).delete(synchronize_session=False)
        self.db.commit()
        return removed
