from __future__ import annotations

import uuid

from fastapi import HTTPException

from app.schemas.attempt import AttemptSubmitRequest, AttemptSubmitResponse
from app.services.attempts import SubmitResult, Submission, SubmittedResponse
from app.services.errors import ConflictError, NotFoundError, ServiceError, ValidationError


def parse_uuid(value: str, *, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "invalid_id", "error_message": f"invalid {what}"},
        ) from e


def http_error(exc: ServiceError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, (ValidationError, ConflictError)):
        status_code = 400
    else:
        status_code = 500

    detail: dict = {"error_code": exc.error_code, "error_message": exc.message}
    if isinstance(exc, ValidationError) and exc.question_ids:
        detail["question_ids"] = exc.question_ids
    return HTTPException(status_code=status_code, detail=detail)


def to_submission(payload: AttemptSubmitRequest) -> Submission:
    return Submission(
        responses=[
            SubmittedResponse(
                question_id=r.question_id,
                selected_option=r.selected_option,
                selected_options=r.selected_options,
            )
            for r in payload.responses
        ],
        duration_seconds=payload.duration_seconds,
        time_spent_seconds=payload.time_spent_seconds,
        metadata=payload.metadata,
    )


def submit_response(result: SubmitResult) -> AttemptSubmitResponse:
    return AttemptSubmitResponse(ok=True, data=result.attempt, message=result.message, rewards=result.rewards)
