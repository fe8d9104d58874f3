# tests/test_store.py

from datetime import datetime, timedelta

import pytest

from conftest import NOW
from exceptions import OperationExpired
from models import VideoStatus
from schemas import OperationDescriptor
from store import OperationStore, UserStore, VideoStore, day_window, week_window


def add_video(db, uid="u1", length="short", created_at=NOW, playlist=None, **extra):
    store = VideoStore(db, clock=lambda: created_at)
    details = dict(title="t", script="s", video_length=length, playlist=playlist, optimized_title="t!")
    details.update(extra)
    return store.add_new_video(uid, **details)


def test_day_window_covers_the_whole_local_day():
    start, end = day_window(NOW)
    assert start == datetime(2026, 10, 14, 0, 0, 0)
    assert end == datetime(2026, 10, 14, 23, 59, 59, 999999)


def test_week_window_starts_on_sunday():
    start, end = week_window(NOW)
    assert start == datetime(2026, 10, 11)
    assert start.weekday() == 6
    assert end == datetime(2026, 10, 17, 23, 59, 59, 999999)


def test_week_window_on_a_sunday_starts_that_day():
    start, _ = week_window(datetime(2026, 10, 11, 8, 30))
    assert start == datetime(2026, 10, 11)


def test_new_video_starts_processing(db):
    video_id = add_video(db)
    video = VideoStore(db).get_video(video_id)
    assert video.status == VideoStatus.PROCESSING
    assert video.created_at == NOW


def test_todays_counts_include_both_boundaries_and_skip_yesterday(db):
    add_video(db, created_at=datetime(2026, 10, 14, 0, 0, 0))
    add_video(db, created_at=datetime(2026, 10, 14, 23, 59, 59, 999999))
    add_video(db, length="long", created_at=NOW)
    add_video(db, created_at=datetime(2026, 10, 13, 23, 59, 59))
    add_video(db, uid="someone-else", created_at=NOW)

    counts = VideoStore(db, clock=lambda: NOW).get_todays_video_counts("u1")
    assert counts.shorts == 2
    assert counts.longs == 1


def test_weekly_counts_follow_the_sunday_window(db):
    add_video(db, length="long", created_at=datetime(2026, 10, 11, 0, 0, 0))
    add_video(db, length="long", created_at=datetime(2026, 10, 17, 22, 0, 0))
    add_video(db, length="long", created_at=datetime(2026, 10, 10, 23, 0, 0))

    counts = VideoStore(db, clock=lambda: NOW).get_this_weeks_video_counts("u1")
    assert counts.longs == 2
    assert counts.shorts == 0


def test_playlists_are_distinct_and_scoped_to_the_user(db):
    add_video(db, playlist="Space")
    add_video(db, playlist="Space")
    add_video(db, playlist="Oceans")
    add_video(db, playlist="")
    add_video(db)
    add_video(db, uid="u2", playlist="Secret")

    store = VideoStore(db)
    assert store.get_playlists("u1") == ["Oceans", "Space"]
    assert store.count_videos_in_playlist("u1", "Space") == 2
    assert store.count_videos_in_playlist("u2", "Space") == 0


def test_merge_only_touches_given_fields(db):
    video_id = add_video(db)
    store = VideoStore(db)
    store.update_video_metadata(video_id, status=VideoStatus.FAILED)

    video = store.get_video(video_id)
    assert video.status == VideoStatus.FAILED
    assert video.script == "s"


def test_only_one_caller_wins_the_materialization_claim(db, session_factory):
    video_id = add_video(db)

    other = session_factory()
    try:
        assert VideoStore(db, clock=lambda: NOW).claim_for_materialization(video_id) is True
        assert VideoStore(other, clock=lambda: NOW).claim_for_materialization(video_id) is False
    finally:
        other.close()
    assert VideoStore(db).get_video(video_id).status == VideoStatus.MATERIALIZING


def test_abandoned_claim_can_be_taken_over(db):
    video_id = add_video(db)
    assert VideoStore(db, clock=lambda: NOW).claim_for_materialization(video_id)

    later = NOW + timedelta(hours=1)
    assert VideoStore(db, clock=lambda: later).claim_for_materialization(video_id)


def test_failed_video_cannot_be_claimed(db):
    video_id = add_video(db)
    VideoStore(db).update_video_metadata(video_id, status=VideoStatus.FAILED)
    assert VideoStore(db).claim_for_materialization(video_id) is False


def test_operation_round_trip_and_update(db):
    operations = OperationStore(db, clock=lambda: NOW)
    operations.store_operation(OperationDescriptor(name="op-1"))
    assert operations.get_operation("op-1").done is False

    operations.update_operation(OperationDescriptor(name="op-1", done=True, output={"media": {"url": "x"}}))
    stored = operations.get_operation("op-1")
    assert stored.done is True
    assert stored.media_url() == "x"


def test_unknown_operation_is_absent(db):
    assert OperationStore(db).get_operation("never-stored") is None


def test_operation_expires_after_a_day_even_when_done(db):
    OperationStore(db, clock=lambda: NOW).store_operation(OperationDescriptor(name="op-1", done=True))

    assert OperationStore(db, clock=lambda: NOW + timedelta(hours=23)).get_operation("op-1") is not None
    with pytest.raises(OperationExpired):
        OperationStore(db, clock=lambda: NOW + timedelta(hours=25)).get_operation("op-1")
    # The expired row is gone for good.
    assert OperationStore(db, clock=lambda: NOW).get_operation("op-1") is None


def test_polling_does_not_extend_the_expiry(db):
    OperationStore(db, clock=lambda: NOW).store_operation(OperationDescriptor(name="op-1"))
    OperationStore(db, clock=lambda: NOW + timedelta(hours=20)).update_operation(OperationDescriptor(name="op-1"))
    with pytest.raises(OperationExpired):
        OperationStore(db, clock=lambda: NOW + timedelta(hours=25)).get_operation("op-1")


def test_purge_removes_only_expired_operations(db):
    OperationStore(db, clock=lambda: NOW - timedelta(days=2)).store_operation(OperationDescriptor(name="old"))
    OperationStore(db, clock=lambda: NOW).store_operation(OperationDescriptor(name="fresh"))

    assert OperationStore(db, clock=lambda: NOW).purge_expired() == 1
    assert OperationStore(db, clock=lambda: NOW).get_operation("fresh") is not None


def test_user_settings_ignore_unset_fields(db):
    users = UserStore(db)
    users.update_settings("u1", platform_api_key="key", auto_upload=True)
    user = users.update_settings("u1", platform_channel_id="chan", platform_api_key=None)
    assert user.platform_api_key == "key"
    assert user.platform_channel_id == "chan"
    assert user.auto_upload is True
    assert [u.id for u in users.autopilot_users()] == []
