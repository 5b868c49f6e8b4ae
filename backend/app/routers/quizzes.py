from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.rate_limit import rate_limit
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.routers.common import http_error, parse_uuid, submit_response, to_submission
from app.schemas.attempt import AttemptOut, AttemptStartResponse, AttemptSubmitRequest, AttemptSubmitResponse
from app.services.assessments import AssessmentKind
from app.services.attempts import AttemptService
from app.services.errors import ServiceError

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


@router.post("/{quiz_id}/start", response_model=AttemptStartResponse, status_code=201)
def start_quiz(
    quiz_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="quiz_start", limit=30, window_seconds=60),
):
    qid = parse_uuid(quiz_id, what="quiz id")
    try:
        attempt = AttemptService(db).start(AssessmentKind.quiz, user=user, assessment_id=qid)
    except ServiceError as e:
        raise http_error(e) from e
    return AttemptStartResponse(attempt_id=str(attempt.id), status=attempt.status.value)


@router.post("/{quiz_id}/submit", response_model=AttemptSubmitResponse)
def submit_quiz(
    quiz_id: str,
    payload: AttemptSubmitRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="quiz_submit", limit=20, window_seconds=60),
):
    qid = parse_uuid(quiz_id, what="quiz id")
    try:
        result = AttemptService(db).submit(
            AssessmentKind.quiz,
            user_id=user.id,
            attempt_id=payload.attempt_id,
            submission=to_submission(payload),
            assessment_id=qid,
        )
    except ServiceError as e:
        raise http_error(e) from e
    return submit_response(result)


@router.get("/attempts/{attempt_id}", response_model=AttemptOut)
def get_quiz_attempt(attempt_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    aid = parse_uuid(attempt_id, what="attempt id")
    view = AttemptService(db).get(AssessmentKind.quiz, attempt_id=aid, user_id=user.id)
    if view is None:
        raise HTTPException(status_code=404, detail={"error_code": "not_found", "error_message": "attempt not found"})
    return view
