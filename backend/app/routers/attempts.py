from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.routers.common import parse_uuid
from app.schemas.attempt import AttemptOut, RecentAttemptsResponse
from app.services.assessments import AssessmentKind
from app.services.attempts import AttemptService

router = APIRouter(prefix="/attempts", tags=["attempts"])

_TYPE_ALIASES = {
    "quiz": AssessmentKind.quiz,
    "practice": AssessmentKind.practice_test,
    "practice_test": AssessmentKind.practice_test,
}


@router.get("", response_model=RecentAttemptsResponse)
def list_attempts(
    limit: int = Query(default=20, ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    limit = min(int(limit), int(settings.attempt_list_max_limit))
    recent = AttemptService(db).list_recent(user.id, limit=limit)
    return RecentAttemptsResponse(
        quiz_attempts=recent[AssessmentKind.quiz.value],
        practice_test_attempts=recent[AssessmentKind.practice_test.value],
    )


@router.get("/{attempt_id}", response_model=AttemptOut)
def get_attempt(
    attempt_id: str,
    type: str = Query(default="quiz"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    kind = _TYPE_ALIASES.get(type.strip().lower())
    if kind is None:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "invalid_type", "error_message": "type must be quiz or practice"},
        )
    aid = parse_uuid(attempt_id, what="attempt id")
    view = AttemptService(db).get(kind, attempt_id=aid, user_id=user.id)
    if view is None:
        raise HTTPException(status_code=404, detail={"error_code": "not_found", "error_message": "attempt not found"})
    return view
