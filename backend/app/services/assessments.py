from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.attempt import PracticeTestAttempt, QuestionAttempt, QuizAttempt
from app.models.practice_test import PracticeTest, PracticeTestQuestion
from app.models.quiz import Question, Quiz, QuizQuestion


class AssessmentKind(str, enum.Enum):
    quiz = "quiz"
    practice_test = "practice_test"


@dataclass(frozen=True)
class KindMapping:
    """Tables and columns that differ between the two assessment kinds."""

    label: str
    assessment_model: type
    link_model: type
    link_fk: str
    attempt_model: type
    attempt_fk: str
    question_attempt_fk: str


KINDS: dict[AssessmentKind, KindMapping] = {
    AssessmentKind.quiz: KindMapping(
        label="quiz",
        assessment_model=Quiz,
        link_model=QuizQuestion,
        link_fk="quiz_id",
        attempt_model=QuizAttempt,
        attempt_fk="quiz_id",
        question_attempt_fk="quiz_attempt_id",
    ),
    AssessmentKind.practice_test: KindMapping(
        label="practice test",
        assessment_model=PracticeTest,
        link_model=PracticeTestQuestion,
        link_fk="practice_test_id",
        attempt_model=PracticeTestAttempt,
        attempt_fk="practice_test_id",
        question_attempt_fk="practice_test_attempt_id",
    ),
}


def get_assessment(db: Session, kind: AssessmentKind, assessment_id: uuid.UUID, *, active_only: bool = True):
    m = KINDS[kind]
    model = m.assessment_model
    stmt = select(model).where(model.id == assessment_id)
    if active_only:
        stmt = stmt.where(model.is_active == True)  # noqa: E712
    return db.scalar(stmt)


def ordered_question_ids(db: Session, kind: AssessmentKind, assessment_id: uuid.UUID) -> list[uuid.UUID]:
    m = KINDS[kind]
    link = m.link_model
    return list(
        db.scalars(
            select(link.question_id)
            .where(getattr(link, m.link_fk) == assessment_id)
            .order_by(link.order_index.asc(), link.id.asc())
        )
    )


def load_questions(db: Session, question_ids: list[uuid.UUID]) -> list[tuple[uuid.UUID, Question | None]]:
    """(id, question) pairs in snapshot order. Ids that no longer resolve pair with None."""

    if not question_ids:
        return []
    rows = list(db.scalars(select(Question).where(Question.id.in_(question_ids))))
    qmap = {q.id: q for q in rows}
    return [(qid, qmap.get(qid)) for qid in question_ids]


def time_limit_seconds(kind: AssessmentKind, assessment) -> int | None:
    limit = getattr(assessment, "time_limit_seconds", None)
    if limit is None and kind == AssessmentKind.practice_test:
        minutes = getattr(assessment, "duration_minutes", None)
        if minutes:
            limit = int(minutes) * 60
    return int(limit) if limit is not None else None


def question_attempts_for(db: Session, kind: AssessmentKind, attempt_id: uuid.UUID) -> list[QuestionAttempt]:
    fk = getattr(QuestionAttempt, KINDS[kind].question_attempt_fk)
    return list(
        db.scalars(
            select(QuestionAttempt)
            .where(fk == attempt_id)
            .order_by(QuestionAttempt.order_index.asc())
        ).unique()
    )
