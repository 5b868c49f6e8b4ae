"""Attempt lifecycle: start, submit (score + rewards), read back.

An attempt moves in_progress -> completed exactly once. The completed check,
per-question rows, rewards and the status flip share one transaction; the
flip is a conditional UPDATE so a concurrent loser replays the stored result
instead of paying XP twice.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from app.models.attempt import AttemptStatus, QuestionAttempt
from app.models.quiz import Question
from app.models.user import User
from app.services import notifications
from app.services.achievements import apply_rewards
from app.services.assessments import (
    KINDS,
    AssessmentKind,
    get_assessment,
    load_questions,
    ordered_question_ids,
    question_attempts_for,
    time_limit_seconds,
)
from app.services.errors import ConflictError, NotFoundError, ValidationError
from app.services.evaluation import Evaluation, Response, evaluate_question
from app.services.mastery import apply_mastery
from app.services.rewards import percentage, xp_for_attempt
from app.services.streaks import update_streak
from app.services.xp_ledger import SOURCE_PRACTICE_TEST, SOURCE_QUIZ, lock_user, record_xp


log = logging.getLogger(__name__)

TIME_LIMIT_MESSAGE = "Time limit exceeded"


@dataclass(frozen=True)
class SubmittedResponse:
    question_id: uuid.UUID
    selected_option: str | None = None
    selected_options: list[str] | None = None


@dataclass(frozen=True)
class Submission:
    responses: list[SubmittedResponse]
    duration_seconds: int | None = None
    time_spent_seconds: int | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class SubmitResult:
    attempt: dict
    message: str | None = None
    rewards: dict | None = None
    replayed: bool = False


@dataclass
class _ScoredQuestion:
    question_id: uuid.UUID
    topic_id: uuid.UUID | None
    order_index: int
    selected_option: str | None
    selected_options: list[str] | None
    is_correct: bool
    resolved: bool = True


@dataclass
class _Scoring:
    rows: list[_ScoredQuestion] = field(default_factory=list)
    correct: int = 0


def _as_uuid(value) -> uuid.UUID | None:
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class AttemptService:
    def __init__(self, db: Session):
        self.db = db

    # start

    def start(self, kind: AssessmentKind, *, user: User, assessment_id: uuid.UUID):
        m = KINDS[kind]
        assessment = get_assessment(self.db, kind, assessment_id)
        if assessment is None:
            raise NotFoundError(f"{m.label} not found or inactive")

        snapshot = ordered_question_ids(self.db, kind, assessment.id)
        attempt = m.attempt_model(
            user_id=user.id,
            status=AttemptStatus.in_progress,
            question_ids=[str(qid) for qid in snapshot],
            total_questions=len(snapshot),
            started_at=datetime.now(timezone.utc),
            **{m.attempt_fk: assessment.id},
        )
        self.db.add(attempt)
        self.db.commit()
        self.db.refresh(attempt)

        log.info("%s attempt %s started by user %s (%s questions)", kind.value, attempt.id, user.id, len(snapshot))
        notifications.publish_attempt_started(
            user_id=user.id, kind=kind.value, attempt_id=attempt.id, assessment_id=assessment.id
        )
        return attempt

    # submit

    def _lock_attempt(self, kind: AssessmentKind, attempt_id: uuid.UUID):
        model = KINDS[kind].attempt_model
        return self.db.execute(
            select(model)
            .where(model.id == attempt_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _replay(self, kind: AssessmentKind, attempt_id: uuid.UUID, user_id: uuid.UUID) -> SubmitResult:
        # release the row lock before reading the stored result
        self.db.rollback()
        view = self.get(kind, attempt_id=attempt_id, user_id=user_id)
        if view is None:
            raise NotFoundError("attempt not found")
        message = TIME_LIMIT_MESSAGE if view.get("time_limit_exceeded") else None
        return SubmitResult(attempt=view, message=message, replayed=True)

    def _score(
        self,
        questions: list[tuple[uuid.UUID, Question | None]],
        responses: dict[uuid.UUID, SubmittedResponse],
        *,
        forfeit: bool,
    ) -> _Scoring:
        scoring = _Scoring()
        for idx, (qid, q) in enumerate(questions):
            submitted = responses.get(qid)
            response = (
                Response(selected_option=submitted.selected_option, selected_options=submitted.selected_options)
                if submitted is not None
                else None
            )
            if q is None:
                # deleted since start: still counted, always wrong
                ev = Evaluation(
                    is_correct=False,
                    selected_option=response.selected_option if response else None,
                    selected_options=response.selected_options if response else None,
                )
            else:
                ev = evaluate_question(q, response)
            is_correct = ev.is_correct and not forfeit
            if is_correct:
                scoring.correct += 1
            scoring.rows.append(
                _ScoredQuestion(
                    question_id=qid,
                    topic_id=q.topic_id if q is not None else None,
                    order_index=idx,
                    selected_option=ev.selected_option,
                    selected_options=ev.selected_options,
                    is_correct=is_correct,
                    resolved=q is not None,
                )
            )
        return scoring

    def _persist_question_attempts(self, kind: AssessmentKind, attempt, scoring: _Scoring) -> None:
        fk_name = KINDS[kind].question_attempt_fk
        self.db.execute(delete(QuestionAttempt).where(getattr(QuestionAttempt, fk_name) == attempt.id))
        for row in scoring.rows:
            if not row.resolved:
                continue
            self.db.add(
                QuestionAttempt(
                    user_id=attempt.user_id,
                    question_id=row.question_id,
                    order_index=row.order_index,
                    selected_option=row.selected_option,
                    selected_options=row.selected_options,
                    is_correct=row.is_correct,
                    score=1 if row.is_correct else 0,
                    response_meta={"topic_id": str(row.topic_id)} if row.topic_id else None,
                    **{fk_name: attempt.id},
                )
            )
        self.db.flush()

    def submit(
        self,
        kind: AssessmentKind,
        *,
        user_id: uuid.UUID,
        attempt_id: uuid.UUID,
        submission: Submission,
        assessment_id: uuid.UUID | None = None,
    ) -> SubmitResult:
        m = KINDS[kind]
        model = m.attempt_model

        attempt = self._lock_attempt(kind, attempt_id)
        if attempt is None or attempt.user_id != user_id:
            self.db.rollback()
            raise NotFoundError("attempt not found")
        if assessment_id is not None and getattr(attempt, m.attempt_fk) != assessment_id:
            self.db.rollback()
            raise ConflictError(f"attempt does not belong to this {m.label}")

        if attempt.status == AttemptStatus.completed:
            return self._replay(kind, attempt.id, user_id)

        if not submission.responses:
            self.db.rollback()
            raise ValidationError("responses must not be empty")

        assessment = get_assessment(self.db, kind, getattr(attempt, m.attempt_fk), active_only=False)
        if assessment is None:
            self.db.rollback()
            raise NotFoundError(f"{m.label} not found")

        snapshot = [qid for qid in (_as_uuid(x) for x in (attempt.question_ids or [])) if qid is not None]
        allowed = set(snapshot)
        invalid = [str(r.question_id) for r in submission.responses if r.question_id not in allowed]
        if invalid:
            self.db.rollback()
            raise ValidationError(f"question does not belong to this {m.label}", question_ids=invalid)

        submitted_time = (
            submission.time_spent_seconds if submission.time_spent_seconds is not None else submission.duration_seconds
        )
        limit = time_limit_seconds(kind, assessment)
        exceeded = limit is not None and limit > 0 and submitted_time is not None and submitted_time > limit

        responses = {r.question_id: r for r in submission.responses}
        scoring = self._score(load_questions(self.db, snapshot), responses, forfeit=exceeded)

        now = datetime.now(timezone.utc)
        flipped = self.db.execute(
            update(model)
            .where(model.id == attempt.id, model.status == AttemptStatus.in_progress)
            .values(status=AttemptStatus.completed, completed_at=now)
            .execution_options(synchronize_session="fetch")
        )
        if flipped.rowcount != 1:
            # another submission completed this attempt first
            return self._replay(kind, attempt.id, user_id)

        self._persist_question_attempts(kind, attempt, scoring)

        total = len(scoring.rows)
        correct = scoring.correct
        score = 0 if exceeded else percentage(correct, total)

        xp_awarded = 0
        xp_tx = None
        rewards = None
        if not exceeded:
            user = lock_user(self.db, user_id)
            xp_before = int(user.xp_total or 0)
            level_before = int(user.level or 1)

            if kind == AssessmentKind.quiz:
                xp_awarded = xp_for_attempt(score, assessment.difficulty)
                source = SOURCE_QUIZ
            else:
                xp_awarded = max(0, int(assessment.xp_reward or 0))
                source = SOURCE_PRACTICE_TEST

            xp_tx = record_xp(
                self.db,
                user=user,
                amount=xp_awarded,
                source=source,
                reason=f"{m.label.capitalize()} {assessment.id} attempt",
                meta={"attempt_id": str(attempt.id), "score_percentage": score},
            )
            update_streak(self.db, user)
            apply_mastery(self.db, user_id=user.id, results=[(r.topic_id, r.is_correct) for r in scoring.rows])
            rewards = apply_rewards(self.db, user=user, xp_before=xp_before, level_before=level_before).as_dict()

        meta = dict(submission.metadata or {})
        meta.update(
            {
                "xp_transaction_id": str(xp_tx.id) if xp_tx is not None else None,
                "time_limit_exceeded": exceeded,
                "time_limit_seconds": limit,
                "time_spent_seconds": submitted_time,
            }
        )

        attempt.total_questions = total
        attempt.correct_count = correct
        attempt.incorrect_count = total - correct
        attempt.score = score
        attempt.xp_awarded = xp_awarded
        attempt.duration_seconds = submission.duration_seconds
        attempt.meta = meta
        self.db.commit()

        log.info(
            "%s attempt %s completed: score=%s correct=%s/%s xp=%s time_limit_exceeded=%s",
            kind.value,
            attempt_id,
            score,
            correct,
            total,
            xp_awarded,
            exceeded,
        )

        notifications.publish_attempt_completed(
            user_id=user_id,
            kind=kind.value,
            attempt_id=attempt_id,
            assessment_id=assessment.id,
            score=score,
            xp_awarded=xp_awarded,
            time_limit_exceeded=exceeded,
            rewards=rewards,
        )

        view = self.get(kind, attempt_id=attempt_id, user_id=user_id)
        return SubmitResult(
            attempt=view or {},
            message=TIME_LIMIT_MESSAGE if exceeded else None,
            rewards=rewards,
        )

    # read

    def get(self, kind: AssessmentKind, *, attempt_id: uuid.UUID, user_id: uuid.UUID) -> dict | None:
        model = KINDS[kind].attempt_model
        attempt = self.db.scalar(select(model).where(model.id == attempt_id, model.user_id == user_id))
        if attempt is None:
            return None
        return self._view(kind, attempt)

    def list_recent(self, user_id: uuid.UUID, *, limit: int = 20) -> dict[str, list[dict]]:
        out: dict[str, list[dict]] = {}
        for kind in AssessmentKind:
            model = KINDS[kind].attempt_model
            rows = self.db.scalars(
                select(model).where(model.user_id == user_id).order_by(model.started_at.desc()).limit(limit)
            )
            out[kind.value] = [self._view(kind, a) for a in rows]
        return out

    def _view(self, kind: AssessmentKind, attempt) -> dict:
        meta = attempt.meta or {}
        questions = []
        for qa in question_attempts_for(self.db, kind, attempt.id):
            q = qa.question
            questions.append(
                {
                    "question_attempt_id": str(qa.id),
                    "question_id": str(qa.question_id),
                    "order_index": qa.order_index,
                    "prompt": q.prompt if q is not None else None,
                    "question_type": q.question_type.value if q is not None else None,
                    "options": (q.options or None) if q is not None else None,
                    "selected_option": qa.selected_option,
                    "selected_options": qa.selected_options,
                    "is_correct": bool(qa.is_correct),
                    "score": int(qa.score or 0),
                }
            )

        return {
            "attempt_id": str(attempt.id),
            "kind": kind.value,
            "assessment_id": str(getattr(attempt, KINDS[kind].attempt_fk)),
            "user_id": str(attempt.user_id),
            "status": attempt.status.value,
            "score": int(attempt.score or 0),
            "total_questions": int(attempt.total_questions or 0),
            "correct_count": int(attempt.correct_count or 0),
            "incorrect_count": int(attempt.incorrect_count or 0),
            "xp_awarded": int(attempt.xp_awarded or 0),
            "duration_seconds": attempt.duration_seconds,
            "started_at": attempt.started_at,
            "completed_at": attempt.completed_at,
            "xp_transaction_id": meta.get("xp_transaction_id"),
            "time_limit_exceeded": bool(meta.get("time_limit_exceeded", False)),
            "questions": questions,
        }
