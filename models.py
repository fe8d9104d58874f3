# models.py

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, JSON, String, Text
from database import Base


def new_id() -> str:
    return uuid.uuid4().hex


class VideoStatus:
    PROCESSING = "Processing"
    # Internal: a reconciler has claimed the record and is uploading assets.
    MATERIALIZING = "Materializing"
    GENERATED = "Generated"
    SCHEDULED = "Scheduled"
    PUBLISHED = "Published"
    FAILED = "Failed"

    IN_FLIGHT = (PROCESSING, MATERIALIZING)
    FINISHED = (GENERATED, SCHEDULED, PUBLISHED)


class ThumbnailStatus:
    PENDING = "pending"
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


class User(Base):
    """Owner of videos, with the remote platform settings used for uploads."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True, default=new_id)
    email = Column(String, unique=True, nullable=True)
    name = Column(String, nullable=True)
    platform_api_key = Column(String, nullable=True)
    platform_channel_id = Column(String, nullable=True)
    autopilot_enabled = Column(Boolean, default=False, nullable=False)
    auto_upload = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)


class Video(Base):
    """A requested video and everything the pipeline learns about it."""

    __tablename__ = "videos"

    id = Column(String, primary_key=True, index=True, default=new_id)
    uid = Column(String, nullable=False, index=True)
    title = Column(Text, nullable=False)  # original, un-optimized title
    topic = Column(Text, nullable=True)
    script = Column(Text, nullable=False)
    video_length = Column(String, nullable=False)  # short, long
    playlist = Column(String, nullable=True)
    inspiration_url = Column(String, nullable=True)
    status = Column(String, default=VideoStatus.PROCESSING, nullable=False)

    optimized_title = Column(Text, nullable=False)
    optimized_description = Column(Text, nullable=True)
    optimized_tags = Column(JSON, nullable=True)
    optimized_category = Column(String, nullable=True)
    suggested_upload_time = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, nullable=False)

    video_url = Column(String, nullable=True)
    audio_url = Column(String, nullable=True)
    operation_name = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    thumbnail_status = Column(String, nullable=True)
    platform_video_id = Column(String, nullable=True)
    error = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_videos_uid_created_at", "uid", "created_at"),
        Index("ix_videos_uid_playlist", "uid", "playlist"),
    )


class Operation(Base):
    """Last known state of a long-running render operation, keyed by its name."""

    __tablename__ = "operations"

    name = Column(String, primary_key=True, index=True)
    done = Column(Boolean, default=False, nullable=False)
    error = Column(Text, nullable=True)
    output = Column(JSON, nullable=True)
    stored_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)
