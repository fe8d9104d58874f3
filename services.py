"""
Service classes for the AI video publishing backend.
Clients for the AI generation service and the remote video platform, and the
bundle of collaborators the pipeline runs against.
"""

import base64
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

import requests

from config import (
    GENERATION_API_URL,
    GENERATION_TIMEOUT,
    PLATFORM_UPLOAD_TIMEOUT,
    PLATFORM_UPLOAD_URL,
)
from exceptions import GenerationError, UploadFailed
from schemas import (
    OperationDescriptor,
    OptimizationResult,
    PlatformCredentials,
    ScriptResult,
    SeriesSuggestion,
)
from storage import AssetStore

# pydantic.ValidationError is a ValueError; a reply that is not a JSON object raises the others.
MALFORMED_REPLY = (KeyError, TypeError, ValueError, AttributeError)


def decode_data_uri(uri: str) -> bytes:
    """Decode a base64 `data:<mime>;base64,<payload>` URI."""
    header, _, payload = uri.partition(",")
    if not header.startswith("data:") or ";base64" not in header:
        raise GenerationError(f"Unsupported data URI header: {header[:40]}")
    try:
        return base64.b64decode(payload, validate=True)
    except ValueError as e:
        raise GenerationError(f"Data URI payload is not valid base64: {e}") from e


class GenerationClient:
    """Base for every call into the AI generation service."""

    def __init__(self, base_url: str = GENERATION_API_URL, timeout: int = GENERATION_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise GenerationError(f"Call to {path} failed: {e}") from e
        except ValueError as e:
            raise GenerationError(f"Call to {path} returned invalid JSON: {e}") from e

    def _get(self, path: str) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise GenerationError(f"Call to {path} failed: {e}") from e
        except ValueError as e:
            raise GenerationError(f"Call to {path} returned invalid JSON: {e}") from e


class ScriptGenerator(GenerationClient):
    def generate(self, length: str, topic: Optional[str] = None, title: Optional[str] = None,
                 inspiration_url: Optional[str] = None) -> ScriptResult:
        logging.info(f"📝 Requesting a {length} script (topic={topic!r}, title={title!r})")
        data = self._post("scripts", {
            "length": length,
            "topic": topic,
            "videoTitle": title,
            "inspirationVideoUrl": inspiration_url,
        })
        try:
            return ScriptResult(title=data["title"], script=data["script"], topic=data.get("topic") or topic or "")
        except MALFORMED_REPLY as e:
            raise GenerationError(f"Malformed script response: {e}") from e


class MetadataOptimizer(GenerationClient):
    def optimize(self, title: str, script: str, category: str, description: str, tags: str) -> OptimizationResult:
        data = self._post("optimize", {
            "videoTitle": title,
            "script": script,
            "videoCategory": category,
            "videoDescription": description,
            "videoTags": tags,
        })
        try:
            return OptimizationResult(
                optimized_title=data["optimizedTitle"],
                optimized_description=data.get("optimizedDescription"),
                optimized_tags=data.get("optimizedTags") or [],
                optimized_category=data.get("optimizedCategory"),
                suggested_upload_time=data.get("suggestedUploadTime"),
            )
        except MALFORMED_REPLY as e:
            raise GenerationError(f"Malformed optimization response: {e}") from e


def _descriptor(data: Dict[str, Any]) -> OperationDescriptor:
    try:
        error = data.get("error")
        if isinstance(error, dict):
            error = error.get("message") or str(error)
        return OperationDescriptor(name=data["name"], done=bool(data.get("done")), error=error, output=data.get("output"))
    except MALFORMED_REPLY as e:
        raise GenerationError(f"Malformed operation response: {e}") from e


class RenderSubmitter(GenerationClient):
    def submit(self, script: str, video_id: str) -> OperationDescriptor:
        """Start rendering. Returns immediately; the result is observed by polling."""
        data = self._post("videos", {"script": script, "videoId": video_id})
        if not isinstance(data, dict) or not data.get("name"):
            raise GenerationError(f"Render submission for {video_id} returned no operation name")
        logging.info(f"🎬 Render operation {data['name']} started for video {video_id}")
        return _descriptor(data)


class OperationPoller(GenerationClient):
    def poll(self, operation_name: str) -> OperationDescriptor:
        return _descriptor(self._get(f"operations/{operation_name}"))

    def download_media(self, media_url: str) -> bytes:
        """Fetch rendered media, given either inline as a data URI or by URL."""
        if media_url.startswith("data:"):
            return decode_data_uri(media_url)
        try:
            response = self.session.get(media_url, timeout=self.timeout)
            response.raise_for_status()
            return response.content
        except requests.RequestException as e:
            raise GenerationError(f"Could not download rendered media: {e}") from e


class SpeechGenerator(GenerationClient):
    def synthesize(self, script: str) -> bytes:
        data = self._post("speech", {"script": script})
        if not isinstance(data, dict) or not data.get("audioDataUri"):
            raise GenerationError("Speech response carried no audio")
        return decode_data_uri(data["audioDataUri"])


class ThumbnailGenerator(GenerationClient):
    def generate(self, video_id: str, topic: str, script: str, title: str) -> bytes:
        data = self._post("thumbnails", {"videoId": video_id, "topic": topic, "script": script, "title": title})
        if not isinstance(data, dict) or not data.get("imageDataUri"):
            raise GenerationError("Thumbnail response carried no image")
        return decode_data_uri(data["imageDataUri"])


class SeriesStrategist(GenerationClient):
    def suggest(self, existing_playlists: List[str]) -> SeriesSuggestion:
        data = self._post("series", {"existingPlaylists": existing_playlists})
        try:
            return SeriesSuggestion(topic=data["topic"], playlist=data["playlist"], is_new_series=data["isNewSeries"])
        except MALFORMED_REPLY as e:
            raise GenerationError(f"Malformed series suggestion: {e}") from e


class PlatformUploader:
    """Publishes a finished video to the remote video platform."""

    def __init__(self, upload_url: str = PLATFORM_UPLOAD_URL, timeout: int = PLATFORM_UPLOAD_TIMEOUT, session=None):
        self.upload_url = upload_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def upload(self, credentials: PlatformCredentials, video_data: bytes, title: str, description: str,
               tags: List[str], category: str) -> str:
        """Returns the id the platform assigned to the video."""
        metadata = {
            "channelId": credentials.channel_id,
            "title": title,
            "description": description,
            "tags": tags,
            "category": category,
        }
        try:
            response = self.session.post(
                self.upload_url,
                params={"key": credentials.api_key, "part": "snippet,status"},
                data=metadata,
                files={"video": ("video.mp4", video_data, "video/mp4")},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json().get("id", "")
        except requests.RequestException as e:
            raise UploadFailed(f"Platform upload failed: {e}") from e


def _enqueue_thumbnail(video_id: str) -> None:
    from tasks import generate_thumbnail_task
    generate_thumbnail_task.delay(video_id)


def _enqueue_upload(video_id: str) -> None:
    from tasks import upload_video_task
    upload_video_task.delay(video_id)


@dataclass
class Collaborators:
    """Everything outside the database that the pipeline talks to."""
    script_generator: ScriptGenerator
    metadata_optimizer: MetadataOptimizer
    render_submitter: RenderSubmitter
    operation_poller: OperationPoller
    speech_generator: SpeechGenerator
    thumbnail_generator: ThumbnailGenerator
    series_strategist: SeriesStrategist
    asset_store: AssetStore
    upload_target: PlatformUploader
    enqueue_thumbnail: Callable[[str], None] = _enqueue_thumbnail
    enqueue_upload: Callable[[str], None] = _enqueue_upload


@lru_cache
def get_collaborators() -> Collaborators:
    """Default collaborators; FastAPI dependency, overridden in tests."""
    session = requests.Session()
    return Collaborators(
        script_generator=ScriptGenerator(session=session),
        metadata_optimizer=MetadataOptimizer(session=session),
        render_submitter=RenderSubmitter(session=session),
        operation_poller=OperationPoller(session=session),
        speech_generator=SpeechGenerator(session=session),
        thumbnail_generator=ThumbnailGenerator(session=session),
        series_strategist=SeriesStrategist(session=session),
        asset_store=AssetStore(),
        upload_target=PlatformUploader(),
    )
