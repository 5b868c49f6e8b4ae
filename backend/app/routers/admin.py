from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.rate_limit import rate_limit
from app.core.security import require_roles
from app.db.session import get_db
from app.models.user import User, UserRole
from app.routers.common import http_error, parse_uuid
from app.schemas.progress import XPGrantRequest, XPGrantResponse
from app.services.achievements import apply_rewards
from app.services.errors import ServiceError
from app.services.xp_ledger import SOURCE_ADMIN, lock_user, record_xp

router = APIRouter(prefix="/admin", tags=["admin"])

log = logging.getLogger(__name__)


@router.post("/xp-grants", response_model=XPGrantResponse, status_code=201)
def grant_xp(
    payload: XPGrantRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_xp_grant", limit=60, window_seconds=60),
):
    uid = parse_uuid(payload.user_id, what="user id")
    try:
        target = lock_user(db, uid)
    except ServiceError as e:
        db.rollback()
        raise http_error(e) from e

    xp_before = int(target.xp_total or 0)
    level_before = int(target.level or 1)
    tx = record_xp(
        db,
        user=target,
        amount=payload.amount,
        source=SOURCE_ADMIN,
        reason=payload.reason or "Manual grant",
        meta={"granted_by": str(admin.id)},
    )
    outcome = apply_rewards(db, user=target, xp_before=xp_before, level_before=level_before)
    db.commit()

    log.info("admin %s granted %s xp to user %s", admin.id, payload.amount, target.id)
    return XPGrantResponse(ok=True, transaction_id=str(tx.id), rewards=outcome.as_dict())
