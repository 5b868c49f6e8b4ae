"""Fire-and-forget side channel for attempt lifecycle events.

Audit rows go through their own session so a failure here can never roll back
or fail the scoring transaction. Every error is logged and swallowed.
"""

from __future__ import annotations

import json
import logging
import uuid

from app.core.config import settings
from app.core.queue import get_queue
from app.db import session as db_session
from app.models.audit import LearningEvent, LearningEventType
from app.services.notification_jobs import deliver_attempt_notification


log = logging.getLogger(__name__)


def _record_events(user_id: uuid.UUID, events: list[tuple[LearningEventType, uuid.UUID | None, dict]]) -> None:
    with db_session.SessionLocal() as db:
        for event_type, ref_id, meta in events:
            db.add(
                LearningEvent(
                    user_id=user_id,
                    type=event_type,
                    ref_id=ref_id,
                    meta=json.dumps(meta, ensure_ascii=False, default=str),
                )
            )
        db.commit()


def _enqueue(payload: dict) -> None:
    if not settings.notifications_enabled:
        return
    q = get_queue(settings.rq_queue_notifications)
    q.enqueue(
        deliver_attempt_notification,
        payload,
        job_timeout=60,
        result_ttl=60 * 60,
        failure_ttl=24 * 60 * 60,
    )


def publish_attempt_started(*, user_id: uuid.UUID, kind: str, attempt_id: uuid.UUID, assessment_id: uuid.UUID) -> None:
    try:
        _record_events(
            user_id,
            [(LearningEventType.attempt_started, attempt_id, {"kind": kind, "assessment_id": str(assessment_id)})],
        )
    except Exception:
        log.exception("failed to record attempt_started for attempt %s", attempt_id)


def publish_attempt_completed(
    *,
    user_id: uuid.UUID,
    kind: str,
    attempt_id: uuid.UUID,
    assessment_id: uuid.UUID,
    score: int,
    xp_awarded: int,
    time_limit_exceeded: bool,
    rewards: dict | None = None,
) -> None:
    summary = {
        "kind": kind,
        "assessment_id": str(assessment_id),
        "score": score,
        "xp_awarded": xp_awarded,
        "time_limit_exceeded": time_limit_exceeded,
    }
    events: list[tuple[LearningEventType, uuid.UUID | None, dict]] = [
        (LearningEventType.attempt_completed, attempt_id, summary)
    ]
    if rewards:
        for a in rewards.get("new_achievements") or []:
            events.append((LearningEventType.achievement_unlocked, attempt_id, a))
        if rewards.get("level_up"):
            events.append((LearningEventType.level_up, attempt_id, {"level": rewards.get("level")}))
        if rewards.get("new_badge"):
            events.append((LearningEventType.badge_earned, attempt_id, rewards["new_badge"]))

    try:
        _record_events(user_id, events)
    except Exception:
        log.exception("failed to record audit events for attempt %s", attempt_id)

    try:
        _enqueue(
            {
                "event": "attempt_completed",
                "user_id": str(user_id),
                "attempt_id": str(attempt_id),
                **summary,
                "rewards": rewards,
            }
        )
    except Exception:
        log.exception("failed to enqueue notification for attempt %s", attempt_id)
