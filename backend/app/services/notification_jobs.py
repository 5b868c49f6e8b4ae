from __future__ import annotations

import logging

from rq import get_current_job


log = logging.getLogger(__name__)


def deliver_attempt_notification(payload: dict) -> dict:
    """Worker side of the notification sink. Push delivery channels hang off this job."""

    try:
        job = get_current_job()
    except Exception:
        job = None

    event = str(payload.get("event") or "attempt_completed")
    user_id = payload.get("user_id")
    log.info(
        "notification %s for user %s: attempt=%s score=%s xp=%s",
        event,
        user_id,
        payload.get("attempt_id"),
        payload.get("score"),
        payload.get("xp_awarded"),
    )

    out = {"ok": True, "event": event, "user_id": user_id}
    if job is not None:
        job.meta["delivered"] = True
        job.save_meta()
    return out
