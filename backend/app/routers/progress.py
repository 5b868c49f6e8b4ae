from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.quiz import Topic
from app.models.user import User
from app.schemas.progress import (
    MasteryResponse,
    OwnedAchievement,
    ProgressSummaryResponse,
    TopicMasteryOut,
    XPHistoryResponse,
    XPTransactionOut,
)
from app.services.achievements import badge_for_xp, owned_achievements
from app.services.mastery import list_mastery
from app.services.rewards import xp_to_next_level
from app.services.xp_ledger import ledger_total, lock_user, reconcile_xp_total, xp_history

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/summary", response_model=ProgressSummaryResponse)
def progress_summary(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    # lock only when the cached total has drifted from the ledger
    if ledger_total(db, user.id) != int(user.xp_total or 0):
        reconcile_xp_total(db, lock_user(db, user.id))
        db.commit()

    xp_total = int(user.xp_total or 0)
    badge = badge_for_xp(db, max(0, xp_total))
    achievements = [
        OwnedAchievement(
            key=ua.achievement.key,
            name=ua.achievement.name,
            description=ua.achievement.description,
            xp_reward=int(ua.achievement.xp_reward or 0),
            unlocked_at=ua.unlocked_at,
        )
        for ua in owned_achievements(db, user.id)
    ]
    return ProgressSummaryResponse(
        user_id=str(user.id),
        xp_total=xp_total,
        level=int(user.level or 1),
        xp_to_next_level=xp_to_next_level(xp_total),
        streak_days=int(user.streak_days or 0),
        last_activity_at=user.last_activity_at,
        badge=(
            {"id": str(badge.id), "name": badge.name, "xp_required": int(badge.xp_required)}
            if badge is not None
            else None
        ),
        achievements=achievements,
    )


@router.get("/mastery", response_model=MasteryResponse)
def topic_mastery(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = list_mastery(db, user.id)
    topic_ids = [r.topic_id for r in rows]
    names = (
        {t.id: t.name for t in db.scalars(select(Topic).where(Topic.id.in_(topic_ids)))}
        if topic_ids
        else {}
    )
    return MasteryResponse(
        items=[
            TopicMasteryOut(
                topic_id=str(r.topic_id),
                topic_name=names.get(r.topic_id),
                total_attempts=int(r.total_attempts or 0),
                correct_attempts=int(r.correct_attempts or 0),
                accuracy=int(r.accuracy or 0),
            )
            for r in rows
        ]
    )


@router.get("/xp-history", response_model=XPHistoryResponse)
def get_xp_history(
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return XPHistoryResponse(
        items=[
            XPTransactionOut(
                id=str(tx.id),
                amount=int(tx.amount),
                source=tx.source,
                reason=tx.reason,
                created_at=tx.created_at,
            )
            for tx in xp_history(db, user.id, limit=limit)
        ]
    )
