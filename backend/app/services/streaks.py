from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.attempt import AttemptStatus, PracticeTestAttempt, QuizAttempt
from app.models.user import User


STREAK_WINDOW = timedelta(hours=24)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive values; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_streak(current: int, latest: datetime | None, previous: datetime | None) -> int:
    if latest is None or previous is None:
        return 1

    latest = as_utc(latest)
    previous = as_utc(previous)

    if latest.date() == previous.date():
        return max(int(current or 0), 1)
    if abs(latest - previous) <= STREAK_WINDOW:
        return int(current or 0) + 1
    return 1


def recent_activity(db: Session, user_id, *, limit: int = 2) -> list[datetime]:
    """Most recent completion timestamps across quiz and practice-test attempts."""

    stamps: list[datetime] = []
    for model in (QuizAttempt, PracticeTestAttempt):
        stamps.extend(
            db.scalars(
                select(model.completed_at)
                .where(
                    model.user_id == user_id,
                    model.status == AttemptStatus.completed,
                    model.completed_at.is_not(None),
                )
                .order_by(model.completed_at.desc())
                .limit(limit)
            )
        )
    stamps = sorted((as_utc(s) for s in stamps), reverse=True)
    return stamps[:limit]


def update_streak(db: Session, user: User) -> int:
    stamps = recent_activity(db, user.id)
    latest = stamps[0] if stamps else None
    previous = stamps[1] if len(stamps) > 1 else None

    user.streak_days = next_streak(int(user.streak_days or 0), latest, previous)
    if latest is not None:
        user.last_activity_at = latest
    db.flush()
    return user.streak_days
