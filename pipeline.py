"""
The video pipeline: submitting new videos, reconciling in-flight ones against
their render operations, and the auto-pilot that keeps quotas filled.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from config import (
    AUTOPILOT_SHORT_TOPIC,
    DAILY_SHORT_GOAL,
    DEFAULT_VIDEO_CATEGORY,
    WEEKLY_LONG_GOAL,
)
from exceptions import (
    CreationFailed,
    GenerationError,
    InvalidState,
    NotFound,
    ReconciliationFailed,
)
from models import ThumbnailStatus, Video, VideoStatus, new_id
from schemas import (
    AutoPilotFailure,
    AutoPilotReport,
    PlatformCredentials,
    ScriptResult,
    StatusResponse,
    SubmissionResponse,
)
from services import Collaborators
from storage import audio_asset_path, thumbnail_asset_path, video_asset_path
from store import Clock, OperationStore, UserStore, VideoStore


# --------------------------------------------------------------------------
# --- Job submission ---
# --------------------------------------------------------------------------

def create_and_process_video(db: Session, collaborators: Collaborators, uid: str, length: str,
                             playlist: Optional[str] = None, topic: Optional[str] = None,
                             title: Optional[str] = None, inspiration_url: Optional[str] = None,
                             script: Optional[str] = None, clock: Clock = datetime.now) -> SubmissionResponse:
    """
    Generate (or take) a script, optimize its upload metadata, persist a Processing
    video and start rendering it. Returns before rendering completes.
    Raises CreationFailed if any step fails; nothing is persisted in that case.
    """
    try:
        if script:
            script_result = ScriptResult(script=script, title=title or "Untitled", topic=topic or "Custom Script")
        else:
            script_result = collaborators.script_generator.generate(
                length=length, topic=topic, title=title, inspiration_url=inspiration_url,
            )

        optimization = collaborators.metadata_optimizer.optimize(
            title=script_result.title,
            script=script_result.script,
            category=DEFAULT_VIDEO_CATEGORY,
            description=" ",
            tags="",
        )
    except GenerationError as e:
        logging.error(f"❌ Could not prepare {length} video for user {uid}: {e}")
        raise CreationFailed(str(e)) from e

    # Render first: the write transaction below only opens once the remote call is over.
    video_id = new_id()
    try:
        operation = collaborators.render_submitter.submit(script=script_result.script, video_id=video_id)
    except GenerationError as e:
        logging.error(f"❌ Render submission failed for user {uid}, nothing stored: {e}")
        raise CreationFailed(str(e)) from e

    # The video row and its operation land in one short commit.
    VideoStore(db, clock=clock).add_new_video(
        uid,
        commit=False,
        id=video_id,
        operation_name=operation.name,
        title=script_result.title,
        topic=script_result.topic,
        script=script_result.script,
        video_length=length,
        playlist=playlist,
        inspiration_url=inspiration_url,
        optimized_title=optimization.optimized_title,
        optimized_description=optimization.optimized_description,
        optimized_tags=optimization.optimized_tags,
        optimized_category=optimization.optimized_category,
        suggested_upload_time=optimization.suggested_upload_time,
    )

    OperationStore(db, clock=clock).store_operation(operation)

    logging.info(f"✨ Video {video_id} submitted: '{optimization.optimized_title}'")
    return SubmissionResponse(video_id=video_id, optimized_title=optimization.optimized_title)


def retry_video(db: Session, collaborators: Collaborators, video_id: str,
                clock: Clock = datetime.now) -> SubmissionResponse:
    """Submit a fresh video with the parameters of a Failed one."""
    video = VideoStore(db, clock=clock).get_video(video_id)
    if video is None:
        raise NotFound(f"Video {video_id} not found")
    if video.status != VideoStatus.FAILED:
        raise InvalidState(f"Only failed videos can be retried; {video_id} is {video.status}")

    logging.info(f"🔁 Retrying video {video_id} ('{video.optimized_title}')")
    return create_and_process_video(
        db, collaborators, video.uid, video.video_length,
        playlist=video.playlist,
        topic=video.title,
        title=video.optimized_title,
        script=video.script,
        clock=clock,
    )


# --------------------------------------------------------------------------
# --- Status reconciliation ---
# --------------------------------------------------------------------------

def _is_complete(video: Video) -> bool:
    return bool(video.video_url and video.audio_url)


def check_video_status(db: Session, collaborators: Collaborators, video_id: str,
                       clock: Clock = datetime.now) -> StatusResponse:
    """
    Advance a video as far as its render operation allows.
    Never raises for pipeline failures: those are written to the record as Failed
    and reported as {"status": "failed"}.
    """
    videos = VideoStore(db, clock=clock)
    video = videos.get_video(video_id)
    if video is None:
        return StatusResponse(status="not_found")

    if _is_complete(video):
        return StatusResponse(status="completed", video_url=video.video_url)
    if video.status == VideoStatus.FAILED:
        return StatusResponse(status="failed")

    try:
        return _reconcile(db, collaborators, videos, video, clock)
    except ReconciliationFailed as e:
        logging.error(f"❌ Video {video_id} failed: {e}")
        videos.merge(video_id, {"status": VideoStatus.FAILED, "error": str(e)})
        return StatusResponse(status="failed")


def _reconcile(db: Session, collaborators: Collaborators, videos: VideoStore, video: Video,
               clock: Clock) -> StatusResponse:
    if not video.operation_name:
        raise ReconciliationFailed(f"No operation name found for video {video.id}")

    operations = OperationStore(db, clock=clock)
    operation = operations.get_operation(video.operation_name)
    if operation is None:
        raise ReconciliationFailed(f"No operation info found for operation {video.operation_name}")

    if not operation.done:
        try:
            operation = collaborators.operation_poller.poll(operation.name)
        except GenerationError as e:
            logging.warning(f"Polling {operation.name} failed, will try again: {e}")
            return StatusResponse(status="processing")
        operations.update_operation(operation)

    if not operation.done:
        return StatusResponse(status="processing")

    if operation.error:
        raise ReconciliationFailed(f"Render operation failed: {operation.error}")

    media_url = operation.media_url()
    if not media_url:
        raise ReconciliationFailed("No generated video in the operation output")

    if not videos.claim_for_materialization(video.id):
        # Someone else is already uploading the assets for this video.
        return StatusResponse(status="processing")

    return _materialize(db, collaborators, videos, video, media_url)


def _materialize(db: Session, collaborators: Collaborators, videos: VideoStore, video: Video,
                 media_url: str) -> StatusResponse:
    try:
        video_data = collaborators.operation_poller.download_media(media_url)
        video_url = collaborators.asset_store.upload(video_asset_path(video.id), video_data, "video/mp4")

        audio_data = collaborators.speech_generator.synthesize(video.script)
        audio_url = collaborators.asset_store.upload(audio_asset_path(video.id), audio_data, "audio/wav")

        final_status = VideoStatus.SCHEDULED if video.suggested_upload_time else VideoStatus.GENERATED
        videos.merge(video.id, {
            "video_url": video_url,
            "audio_url": audio_url,
            "status": final_status,
            "thumbnail_status": ThumbnailStatus.PENDING,
        })
    except Exception as e:
        db.rollback()
        raise ReconciliationFailed(f"Failed to process and store assets: {e}") from e

    logging.info(f"✅ Video {video.id} is {final_status}")
    _after_generated(db, collaborators, video)
    return StatusResponse(status="completed", video_url=video_url)


def _after_generated(db: Session, collaborators: Collaborators, video: Video) -> None:
    """Queue the follow-up work for a freshly generated video. Enqueue failures never fail the video."""
    try:
        collaborators.enqueue_thumbnail(video.id)
    except Exception as e:
        logging.error(f"Could not queue thumbnail for video {video.id}: {e}")

    user = UserStore(db).get(video.uid)
    if user is not None and user.auto_upload:
        try:
            collaborators.enqueue_upload(video.id)
        except Exception as e:
            logging.error(f"Could not queue upload for video {video.id}: {e}")


# --------------------------------------------------------------------------
# --- Follow-up work (thumbnail, platform upload) ---
# --------------------------------------------------------------------------

def generate_thumbnail(db: Session, collaborators: Collaborators, video_id: str) -> str:
    """Generate and store a thumbnail, tracking progress on the record. Re-raises on failure."""
    videos = VideoStore(db)
    video = videos.get_video(video_id)
    if video is None:
        raise NotFound(f"Video {video_id} not found")

    videos.merge(video_id, {"thumbnail_status": ThumbnailStatus.GENERATING})
    try:
        image = collaborators.thumbnail_generator.generate(
            video_id=video.id,
            topic=video.topic or video.title,
            script=video.script,
            title=video.optimized_title,
        )
        thumbnail_url = collaborators.asset_store.upload(thumbnail_asset_path(video.id), image, "image/png")
    except Exception:
        db.rollback()
        videos.merge(video_id, {"thumbnail_status": ThumbnailStatus.FAILED})
        raise

    videos.merge(video_id, {"thumbnail_url": thumbnail_url, "thumbnail_status": ThumbnailStatus.READY})
    logging.info(f"🖼️ Thumbnail ready for video {video_id}")
    return thumbnail_url


def upload_to_platform(db: Session, collaborators: Collaborators, video_id: str) -> str:
    """Publish a generated video to the owner's platform channel. Returns the platform's video id."""
    videos = VideoStore(db)
    video = videos.get_video(video_id)
    if video is None:
        raise NotFound(f"Video {video_id} not found")
    if video.status == VideoStatus.PUBLISHED:
        return video.platform_video_id or ""
    if video.status not in (VideoStatus.GENERATED, VideoStatus.SCHEDULED) or not _is_complete(video):
        raise InvalidState(f"Video {video_id} is {video.status} and cannot be uploaded yet")

    user = UserStore(db).get(video.uid)
    if user is None or not user.platform_api_key or not user.platform_channel_id:
        raise InvalidState(f"User {video.uid} has no platform credentials configured")

    video_data = collaborators.asset_store.download(video_asset_path(video.id))
    logging.info(f"📤 Uploading video {video_id} ('{video.optimized_title}')")
    platform_video_id = collaborators.upload_target.upload(
        credentials=PlatformCredentials(api_key=user.platform_api_key, channel_id=user.platform_channel_id),
        video_data=video_data,
        title=video.optimized_title,
        description=video.optimized_description or "",
        tags=video.optimized_tags or [],
        category=video.optimized_category or DEFAULT_VIDEO_CATEGORY,
    )
    videos.merge(video_id, {"status": VideoStatus.PUBLISHED, "platform_video_id": platform_video_id})
    logging.info(f"✅ Video {video_id} published as {platform_video_id}")
    return platform_video_id


# --------------------------------------------------------------------------
# --- Auto-pilot ---
# --------------------------------------------------------------------------

def _submit_batch(db: Session, collaborators: Collaborators, report: AutoPilotReport, clock: Clock,
                  uid: str, length: str, titles, playlist: Optional[str] = None,
                  topic: Optional[str] = None) -> None:
    """Submit one job per title. A failed job is recorded and the batch moves on."""
    for title in titles:
        try:
            report.created.append(create_and_process_video(
                db, collaborators, uid, length, playlist=playlist, topic=topic, title=title, clock=clock,
            ))
        except CreationFailed as e:
            report.failures.append(AutoPilotFailure(title=title, error=str(e)))


def run_auto_pilot(db: Session, collaborators: Collaborators, uid: str, kind: str,
                   clock: Clock = datetime.now, daily_short_goal: int = DAILY_SHORT_GOAL,
                   weekly_long_goal: int = WEEKLY_LONG_GOAL) -> AutoPilotReport:
    """
    Top up today's shorts or this week's longs to their goals.
    Every job in the deficit is attempted; failures are collected in the report.
    """
    videos = VideoStore(db, clock=clock)

    if kind == "short":
        needed = max(0, daily_short_goal - videos.get_todays_video_counts(uid).shorts)
        report = AutoPilotReport(kind="short", needed=needed)
        if needed == 0:
            logging.info("Daily short video goal met!")
            return report
        logging.info(f"Auto-Pilot: Creating {needed} short video(s)...")
        _submit_batch(db, collaborators, report, clock, uid, "short", [None] * needed,
                      topic=AUTOPILOT_SHORT_TOPIC)

    elif kind == "long":
        needed = max(0, weekly_long_goal - videos.get_this_weeks_video_counts(uid).longs)
        report = AutoPilotReport(kind="long", needed=needed)
        if needed == 0:
            logging.info("Weekly long-form video goal met!")
            return report
        logging.info(f"Auto-Pilot: Creating {needed} long-form video(s)...")

        try:
            suggestion = collaborators.series_strategist.suggest(existing_playlists=videos.get_playlists(uid))
        except GenerationError as e:
            logging.error(f"❌ Auto-Pilot could not pick a series for user {uid}: {e}")
            report.failures.append(AutoPilotFailure(error=str(e)))
            return report

        first_part = 1 if suggestion.is_new_series else videos.count_videos_in_playlist(uid, suggestion.playlist) + 1
        titles = [f"{suggestion.topic} - Part {first_part + i}" for i in range(needed)]
        _submit_batch(db, collaborators, report, clock, uid, "long", titles,
                      playlist=suggestion.playlist, topic=suggestion.topic)

    else:
        raise ValueError(f"Unknown video kind: {kind}")

    if report.failures:
        logging.error(f"Auto-Pilot: {len(report.failures)} of {needed} {kind} video(s) failed for user {uid}")
    return report
