"""
Router for video endpoints.
Handles submission, status reconciliation, retry, thumbnails and platform upload.
"""

import logging
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session
from database import get_db
from exceptions import CreationFailed, InvalidState, NotFound
from pipeline import check_video_status, create_and_process_video, retry_video
from schemas import CreateVideoRequest, StatusResponse, SubmissionResponse, TaskResponse, VideoOut
from services import Collaborators, get_collaborators
from store import VideoStore


# Create the router
router = APIRouter(prefix="/videos", tags=["videos"])


def _get_video_or_404(db: Session, video_id: str):
    video = VideoStore(db).get_video(video_id)
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found.")
    return video


@router.post("/", response_model=SubmissionResponse)
def create_video(request: CreateVideoRequest, db: Session = Depends(get_db),
                       collaborators: Collaborators = Depends(get_collaborators)):
    """
    Generates the script and metadata, stores the video as Processing and
    starts rendering. Returns before the render finishes.
    """
    try:
        return create_and_process_video(
            db, collaborators, request.user_id, request.length,
            playlist=request.playlist,
            topic=request.topic,
            title=request.title,
            inspiration_url=request.inspiration_url,
            script=request.script,
        )
    except CreationFailed as e:
        raise HTTPException(status_code=502, detail=f"Failed to start the video generation job: {e}")


@router.get("/{video_id}", response_model=VideoOut)
def get_video(video_id: str, db: Session = Depends(get_db)):
    return _get_video_or_404(db, video_id)


@router.get("/{video_id}/status", response_model=StatusResponse)
def get_video_status(video_id: str, db: Session = Depends(get_db),
                           collaborators: Collaborators = Depends(get_collaborators)):
    """
    Checks the render operation behind a video and moves the video forward.
    Always answers with a status object; a missing video is reported as not_found.
    """
    return check_video_status(db, collaborators, video_id)


@router.post("/{video_id}/retry", response_model=SubmissionResponse)
def retry(video_id: str, db: Session = Depends(get_db),
                collaborators: Collaborators = Depends(get_collaborators)):
    try:
        return retry_video(db, collaborators, video_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Video not found.")
    except InvalidState as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CreationFailed as e:
        raise HTTPException(status_code=502, detail=f"Retry failed: {e}")


@router.post("/{video_id}/thumbnail", response_model=TaskResponse)
def regenerate_thumbnail(video_id: str, db: Session = Depends(get_db),
                               collaborators: Collaborators = Depends(get_collaborators)):
    """Queues a new thumbnail; progress shows up in the video's thumbnail_status."""
    _get_video_or_404(db, video_id)
    try:
        collaborators.enqueue_thumbnail(video_id)
    except Exception as e:
        logging.error(f"Failed to queue thumbnail for video {video_id}: {e}")
        raise HTTPException(status_code=503, detail="Failed to queue thumbnail generation.")
    return TaskResponse(video_id=video_id, status="queued")


@router.post("/{video_id}/upload", response_model=TaskResponse)
def upload_video(video_id: str, db: Session = Depends(get_db),
                       collaborators: Collaborators = Depends(get_collaborators)):
    """Queues the upload of a generated video to the owner's platform channel."""
    video = _get_video_or_404(db, video_id)
    if not (video.video_url and video.audio_url):
        raise HTTPException(status_code=409, detail=f"Video is {video.status} and has nothing to upload yet.")
    try:
        collaborators.enqueue_upload(video_id)
    except Exception as e:
        logging.error(f"Failed to queue upload for video {video_id}: {e}")
        raise HTTPException(status_code=503, detail="Failed to queue the upload.")
    return TaskResponse(video_id=video_id, status="queued")
