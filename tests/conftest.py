# tests/conftest.py

import os
import sys
from datetime import datetime

import pytest
import requests

# Add the parent directory to the Python path so we can import from it
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy.pool import StaticPool

from database import Base, make_engine, make_session_factory
import models  # noqa: F401  registers the tables on Base.metadata
from exceptions import GenerationError, UploadFailed
from schemas import OperationDescriptor, OptimizationResult, ScriptResult, SeriesSuggestion
from services import Collaborators

# Wednesday
NOW = datetime(2026, 10, 14, 12, 0, 0)


class FakeScriptGenerator:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def generate(self, length, topic=None, title=None, inspiration_url=None):
        self.calls.append({"length": length, "topic": topic, "title": title, "inspiration_url": inspiration_url})
        if self.error:
            raise self.error
        if self.result:
            return self.result
        return ScriptResult(title=title or "Generated title", script=f"A script about {topic}", topic=topic or "t")


class FakeOptimizer:
    def __init__(self, suggested_upload_time=None, error=None):
        self.suggested_upload_time = suggested_upload_time
        self.error = error
        self.calls = []

    def optimize(self, title, script, category, description, tags):
        self.calls.append({"title": title, "script": script, "category": category})
        if self.error:
            raise self.error
        return OptimizationResult(
            optimized_title=f"{title}!",
            optimized_description="desc",
            optimized_tags=["ai", "video"],
            optimized_category="Technology",
            suggested_upload_time=self.suggested_upload_time,
        )


class FakeRenderSubmitter:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []

    def submit(self, script, video_id):
        self.calls.append(video_id)
        if len(self.calls) in self.fail_on:
            raise GenerationError("render service unavailable")
        return OperationDescriptor(name=f"operations/op-{len(self.calls)}")


class FakeOperationPoller:
    def __init__(self):
        self.remote = {}
        self.polls = []

    def finish(self, name, media_url="data:video/mp4;base64,AAAA", error=None, output=None):
        if output is None and not error:
            output = {"message": {"content": [{"text": "here"}, {"media": {"url": media_url}}]}}
        self.remote[name] = OperationDescriptor(name=name, done=True, error=error, output=output)

    def poll(self, name):
        self.polls.append(name)
        return self.remote.get(name, OperationDescriptor(name=name, done=False))

    def download_media(self, media_url):
        return b"video-bytes"


class FakeSpeechGenerator:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def synthesize(self, script):
        self.calls.append(script)
        if self.error:
            raise self.error
        return b"audio-bytes"


class FakeThumbnailGenerator:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def generate(self, video_id, topic, script, title):
        self.calls.append({"video_id": video_id, "topic": topic, "title": title})
        if self.error:
            raise self.error
        return b"png-bytes"


class FakeSeriesStrategist:
    def __init__(self, suggestion=None):
        self.suggestion = suggestion or SeriesSuggestion(topic="Space", playlist="Space Series", is_new_series=True)
        self.calls = []

    def suggest(self, existing_playlists):
        self.calls.append(list(existing_playlists))
        return self.suggestion


class FakeAssetStore:
    def __init__(self, fail_paths=()):
        self.objects = {}
        self.fail_paths = fail_paths

    def upload(self, path, data, content_type="application/octet-stream"):
        if any(part in path for part in self.fail_paths):
            raise IOError(f"storage refused {path}")
        self.objects[path] = data
        return f"https://assets.test/{path}"

    def download(self, path):
        return self.objects[path]


class FakeUploader:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def upload(self, credentials, video_data, title, description, tags, category):
        self.calls.append({"channel": credentials.channel_id, "title": title, "size": len(video_data)})
        if self.error:
            raise UploadFailed(self.error)
        return "platform-123"


class FakeResponse:
    def __init__(self, payload=None, status_code=200, content=b""):
        self.payload = payload
        self.status_code = status_code
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.payload is None:
            raise ValueError("no json")
        return self.payload


class FakeSession:
    """
    Stands in for requests.Session, answering every call with the queued response.
    Given several responses, it hands them out in order and repeats the last one.
    """

    def __init__(self, response=None, error=None, responses=None):
        self.responses = list(responses or [response])
        self.error = error
        self.requests = []

    def _answer(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    def post(self, url, **kwargs):
        return self._answer("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._answer("GET", url, **kwargs)


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def collaborators():
    thumbnails, uploads = [], []
    collab = Collaborators(
        script_generator=FakeScriptGenerator(),
        metadata_optimizer=FakeOptimizer(),
        render_submitter=FakeRenderSubmitter(),
        operation_poller=FakeOperationPoller(),
        speech_generator=FakeSpeechGenerator(),
        thumbnail_generator=FakeThumbnailGenerator(),
        series_strategist=FakeSeriesStrategist(),
        asset_store=FakeAssetStore(),
        upload_target=FakeUploader(),
        enqueue_thumbnail=thumbnails.append,
        enqueue_upload=uploads.append,
    )
    collab.thumbnails_queued = thumbnails
    collab.uploads_queued = uploads
    return collab


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed database for tests where several threads each open their own session."""
    engine = make_engine(f"sqlite:///{tmp_path / 'videos.db'}")
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()
