"""
Router for per-user endpoints: listings, quotas, settings, auto-pilot and polling.
"""

from typing import List, Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from config import DAILY_SHORT_GOAL, WEEKLY_LONG_GOAL
from database import get_db, make_session_factory
from pipeline import run_auto_pilot
from poller import poll_user_videos
from schemas import AutoPilotReport, QuotaResponse, UserOut, UserSettingsRequest, VideoOut
from services import Collaborators, get_collaborators
from store import UserStore, VideoStore


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{uid}/videos", response_model=List[VideoOut])
def list_videos(uid: str, db: Session = Depends(get_db)):
    return VideoStore(db).get_all_videos(uid)


@router.get("/{uid}/playlists", response_model=List[str])
def list_playlists(uid: str, db: Session = Depends(get_db)):
    return VideoStore(db).get_playlists(uid)


@router.get("/{uid}/quota", response_model=QuotaResponse)
def get_quota(uid: str, db: Session = Depends(get_db)):
    """How far today's shorts and this week's longs are from their goals."""
    videos = VideoStore(db)
    return QuotaResponse(
        shorts_today=videos.get_todays_video_counts(uid).shorts,
        daily_short_goal=DAILY_SHORT_GOAL,
        longs_this_week=videos.get_this_weeks_video_counts(uid).longs,
        weekly_long_goal=WEEKLY_LONG_GOAL,
    )


@router.put("/{uid}/settings", response_model=UserOut)
def update_settings(uid: str, request: UserSettingsRequest, db: Session = Depends(get_db)):
    return UserStore(db).update_settings(uid, **request.model_dump())


@router.post("/{uid}/autopilot/{kind}", response_model=AutoPilotReport)
def autopilot(uid: str, kind: Literal["short", "long"], db: Session = Depends(get_db),
                    collaborators: Collaborators = Depends(get_collaborators)):
    """Creates as many videos as it takes to meet the daily short or weekly long goal."""
    return run_auto_pilot(db, collaborators, uid, kind)


@router.post("/{uid}/poll", response_model=List[VideoOut])
def poll(uid: str, db: Session = Depends(get_db), collaborators: Collaborators = Depends(get_collaborators)):
    """One polling pass over the user's in-flight videos."""
    session_factory = make_session_factory(db.get_bind())
    return poll_user_videos(uid, session_factory=session_factory, collaborators=collaborators)
