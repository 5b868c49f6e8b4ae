from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.gamification import XPTransaction
from app.models.user import User
from app.services.errors import NotFoundError
from app.services.rewards import level_for_xp


log = logging.getLogger(__name__)

SOURCE_QUIZ = "quiz"
SOURCE_PRACTICE_TEST = "practice_test"
SOURCE_ADMIN = "admin"


def achievement_source(key: str) -> str:
    return f"achievement:{key}"


def lock_user(db: Session, user_id: uuid.UUID) -> User:
    """Load the user row for a read-modify-write of xp/level/streak inside the current transaction."""

    user = db.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if user is None:
        raise NotFoundError("user not found")
    return user


def record_xp(
    db: Session,
    *,
    user: User,
    amount: int,
    source: str,
    reason: str | None = None,
    meta: dict | None = None,
) -> XPTransaction | None:
    """Append a ledger row and fold it into the cached total. Zero amounts are not recorded."""

    amount = int(amount)
    if amount == 0:
        return None

    tx = XPTransaction(user_id=user.id, amount=amount, source=source, reason=reason, meta=meta)
    db.add(tx)

    user.xp_total = int(user.xp_total or 0) + amount
    user.level = level_for_xp(max(0, user.xp_total))
    db.flush()
    return tx


def ledger_total(db: Session, user_id: uuid.UUID) -> int:
    total = db.scalar(select(func.coalesce(func.sum(XPTransaction.amount), 0)).where(XPTransaction.user_id == user_id))
    return int(total or 0)


def reconcile_xp_total(db: Session, user: User) -> bool:
    """Make the cached xp_total match the ledger. Returns True when drift was corrected."""

    total = ledger_total(db, user.id)
    if int(user.xp_total or 0) == total:
        return False

    log.warning(
        "xp drift for user %s: cached=%s ledger=%s",
        user.id,
        user.xp_total,
        total,
    )
    user.xp_total = total
    user.level = level_for_xp(max(0, total))
    db.flush()
    return True


def xp_history(db: Session, user_id: uuid.UUID, *, limit: int = 50) -> list[XPTransaction]:
    return list(
        db.scalars(
            select(XPTransaction)
            .where(XPTransaction.user_id == user_id)
            .order_by(XPTransaction.created_at.desc())
            .limit(limit)
        )
    )
