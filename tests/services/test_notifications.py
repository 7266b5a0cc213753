# tests/services/test_notifications.py
"""Tests for the notification outbox."""

from collections.abc import Callable
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from hyperlocal.db.time import utcnow
from hyperlocal.models import NotificationJob, Post, UserNotification
from hyperlocal.services.notifications import NotificationDispatcher, next_retry_delay


@pytest.mark.parametrize(("attempt", "expected"), [(1, 1.0), (2, 2.0), (3, 4.0), (0, 1.0)])
def test_backoff_doubles(attempt: int, expected: float) -> None:
    assert next_retry_delay(attempt, base_seconds=1.0) == expected


def test_enqueue_nearby_schedules_after_delay(
    db_session: Session, make_post: Callable[..., Post]
) -> None:
    post = make_post()
    now = utcnow()

    job = NotificationDispatcher(db_session, delay_seconds=5).enqueue_nearby(post, now=now)
    db_session.commit()

    stored = db_session.execute(select(NotificationJob)).scalar_one()
    assert stored.id == job.id
    assert stored.run_after == now + timedelta(seconds=5)
    assert (stored.lat, stored.lng) == (post.lat, post.lng)
    assert stored.category == "street_food"
    assert stored.status == "pending"


def test_failures_back_off_then_give_up(
    db_session: Session, make_post: Callable[..., Post]
) -> None:
    post = make_post()
    now = utcnow()
    dispatcher = NotificationDispatcher(db_session, max_attempts=3)
    job = dispatcher.enqueue_nearby(post, now=now)

    dispatcher.record_failure(job, now=now)
    assert job.attempts == 1
    assert job.run_after == now + timedelta(seconds=1)

    dispatcher.record_failure(job, now=now)
    assert job.run_after == now + timedelta(seconds=2)
    assert job.status == "pending"

    dispatcher.record_failure(job, now=now)
    assert job.attempts == 3
    assert job.status == "failed"


def test_notify_user_writes_in_app_notification(db_session: Session, test_user) -> None:
    NotificationDispatcher(db_session).notify_user(
        test_user.id, type="moderation_action", title="Heads up", body="Body", data={"k": 1}
    )
    db_session.commit()

    notification = db_session.execute(select(UserNotification)).scalar_one()
    assert notification.user_id == test_user.id
    assert notification.data == {"k": 1}
