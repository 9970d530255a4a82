from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import DateTime
from sqlmodel import Session

from app import models
from app.grievance_store import touch
from conftest import sync_engine

TIMESTAMPED = [
    (models.User, ("created_at", "updated_at")),
    (models.Department, ("created_at",)),
    (models.Grievance, ("created_at", "updated_at")),
    (models.GrievanceAttachment, ("uploaded_at",)),
    (models.GrievanceComment, ("created_at",)),
]


@pytest.mark.parametrize("model,columns", TIMESTAMPED)
def test_timestamp_columns_are_timezone_aware(model, columns):
    for name in columns:
        column_type = model.__table__.c[name].type
        assert isinstance(column_type, DateTime)
        assert column_type.timezone is True


def test_utcnow_is_aware():
    assert models.utcnow().tzinfo is timezone.utc


def test_as_utc():
    naive = datetime(2026, 1, 2, 3, 4, 5)
    assert models.as_utc(naive) == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    aware = datetime(2026, 1, 2, tzinfo=timezone.utc)
    assert models.as_utc(aware) is aware
    assert models.as_utc(None) is None


def test_rows_with_default_timestamps_persist():
    with Session(sync_engine) as session:
        user = models.User(name="Stamp", email="stamp@example.com")
        session.add(user)
        session.commit()
        session.refresh(user)
        user_created = models.as_utc(user.created_at)

        grievance = models.Grievance(
            title="Clock", description="Wall clock stopped", category="General", submitted_by=user.id
        )
        session.add(grievance)
        session.commit()
        session.refresh(grievance)

    created = models.as_utc(grievance.created_at)
    assert abs(datetime.now(timezone.utc) - created) < timedelta(minutes=1)
    assert user_created <= created


def test_touch_moves_past_a_naive_stored_value():
    ahead = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=30)
    grievance = models.Grievance(
        title="t", description="d", category="General", submitted_by="u-1", updated_at=ahead
    )

    touch(grievance)

    assert grievance.updated_at == ahead.replace(tzinfo=timezone.utc) + timedelta(microseconds=1)


def test_touch_uses_the_clock_when_it_has_advanced():
    earlier = datetime.now(timezone.utc) - timedelta(seconds=30)
    grievance = models.Grievance(
        title="t", description="d", category="General", submitted_by="u-1", updated_at=earlier
    )

    touch(grievance)

    assert grievance.updated_at > earlier + timedelta(seconds=29)
