from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.gamification import TopicMastery
from app.services.rewards import percentage


def _locked_row(db: Session, user_id: uuid.UUID, topic_id: uuid.UUID) -> TopicMastery | None:
    return db.execute(
        select(TopicMastery)
        .where(TopicMastery.user_id == user_id, TopicMastery.topic_id == topic_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def record_topic_mastery(
    db: Session,
    *,
    user_id: uuid.UUID,
    topic_id: uuid.UUID,
    attempts: int = 1,
    correct: int = 0,
) -> TopicMastery:
    # Callers hold the user row lock, so no other writer can race this insert.
    row = _locked_row(db, user_id, topic_id)
    if row is None:
        row = TopicMastery(user_id=user_id, topic_id=topic_id, total_attempts=0, correct_attempts=0, accuracy=0)
        db.add(row)

    row.total_attempts = int(row.total_attempts or 0) + int(attempts)
    row.correct_attempts = int(row.correct_attempts or 0) + int(correct)
    row.accuracy = percentage(row.correct_attempts, row.total_attempts)
    row.updated_at = datetime.now(timezone.utc)
    db.flush()
    return row


def apply_mastery(
    db: Session,
    *,
    user_id: uuid.UUID,
    results: Iterable[tuple[uuid.UUID | None, bool]],
) -> dict[uuid.UUID, int]:
    """Fold (topic_id, is_correct) pairs into per-topic mastery. Returns topic -> accuracy."""

    per_topic: dict[uuid.UUID, list[int]] = {}
    for topic_id, is_correct in results:
        if topic_id is None:
            continue
        counts = per_topic.setdefault(topic_id, [0, 0])
        counts[0] += 1
        counts[1] += 1 if is_correct else 0

    out: dict[uuid.UUID, int] = {}
    for topic_id, (attempts, correct) in per_topic.items():
        row = record_topic_mastery(db, user_id=user_id, topic_id=topic_id, attempts=attempts, correct=correct)
        out[topic_id] = row.accuracy
    return out


def list_mastery(db: Session, user_id: uuid.UUID) -> list[TopicMastery]:
    return list(
        db.scalars(
            select(TopicMastery).where(TopicMastery.user_id == user_id).order_by(TopicMastery.updated_at.desc())
        )
    )
