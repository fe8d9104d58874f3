"""
Pydantic models for data validation in the AI video publishing backend.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


VideoLength = Literal["short", "long"]


# --- Collaborator payloads ---

class ScriptResult(BaseModel):
    """What the script generator hands back."""
    title: str
    script: str
    topic: str


class OptimizationResult(BaseModel):
    """Upload metadata proposed by the optimizer."""
    optimized_title: str
    optimized_description: Optional[str] = None
    optimized_tags: List[str] = Field(default_factory=list)
    optimized_category: Optional[str] = None
    suggested_upload_time: Optional[str] = None


class SeriesSuggestion(BaseModel):
    topic: str
    playlist: str
    is_new_series: bool


class OperationDescriptor(BaseModel):
    """Last known state of a long-running render operation."""
    name: str
    done: bool = False
    error: Optional[str] = None
    output: Optional[Dict[str, Any]] = None

    def media_url(self) -> Optional[str]:
        """
        Find the first media reference in the operation output.
        Accepts either {"media": {"url": ...}} or a message whose content parts carry media.
        """
        if not self.output:
            return None
        media = self.output.get("media")
        if isinstance(media, dict) and media.get("url"):
            return media["url"]
        message = self.output.get("message") or {}
        for part in message.get("content") or []:
            part_media = part.get("media") if isinstance(part, dict) else None
            if part_media and part_media.get("url"):
                return part_media["url"]
        return None


class PlatformCredentials(BaseModel):
    api_key: str
    channel_id: str


# --- API requests ---

class CreateVideoRequest(BaseModel):
    """Request model for submitting a new video."""
    user_id: str
    length: VideoLength
    playlist: Optional[str] = None
    topic: Optional[str] = None
    title: Optional[str] = None
    inspiration_url: Optional[str] = None
    script: Optional[str] = None


class UserSettingsRequest(BaseModel):
    platform_api_key: Optional[str] = None
    platform_channel_id: Optional[str] = None
    autopilot_enabled: Optional[bool] = None
    auto_upload: Optional[bool] = None


# --- API responses ---

class SubmissionResponse(BaseModel):
    """Returned as soon as a video is submitted; rendering continues in the background."""
    video_id: str
    optimized_title: str


class StatusResponse(BaseModel):
    """Response for checking a video's generation status."""
    status: Literal["processing", "completed", "failed", "not_found"]
    video_url: Optional[str] = None


class AutoPilotFailure(BaseModel):
    title: Optional[str] = None
    error: str


class AutoPilotReport(BaseModel):
    kind: VideoLength
    needed: int
    created: List[SubmissionResponse] = Field(default_factory=list)
    failures: List[AutoPilotFailure] = Field(default_factory=list)


class VideoCounts(BaseModel):
    shorts: int = 0
    longs: int = 0


class QuotaResponse(BaseModel):
    shorts_today: int
    daily_short_goal: int
    longs_this_week: int
    weekly_long_goal: int


class TaskResponse(BaseModel):
    video_id: str
    task_id: Optional[str] = None
    status: str


class VideoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    uid: str
    title: str
    topic: Optional[str] = None
    script: str
    video_length: VideoLength
    playlist: Optional[str] = None
    status: str
    optimized_title: str
    optimized_description: Optional[str] = None
    optimized_tags: Optional[List[str]] = None
    optimized_category: Optional[str] = None
    suggested_upload_time: Optional[str] = None
    created_at: datetime
    video_url: Optional[str] = None
    audio_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_status: Optional[str] = None
    platform_video_id: Optional[str] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    platform_channel_id: Optional[str] = None
    autopilot_enabled: bool
    auto_upload: bool
