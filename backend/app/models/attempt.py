import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from app.db.base import Base
from app.models.quiz import Question


class AttemptStatus(str, enum.Enum):
    in_progress = "in_progress"
    completed = "completed"


class _AttemptColumns:
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    @declared_attr
    def user_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)

    status: Mapped[AttemptStatus] = mapped_column(Enum(AttemptStatus), default=AttemptStatus.in_progress, index=True)

    # Ordered question ids frozen at start; scoring always uses this list.
    question_ids: Mapped[list] = mapped_column(JSON, default=list)

    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    correct_count: Mapped[int] = mapped_column(Integer, default=0)
    incorrect_count: Mapped[int] = mapped_column(Integer, default=0)
    score: Mapped[int] = mapped_column(Integer, default=0)
    xp_awarded: Mapped[int] = mapped_column(Integer, default=0)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)


class QuizAttempt(_AttemptColumns, Base):
    __tablename__ = "quiz_attempts"

    quiz_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("quizzes.id"), index=True)


class PracticeTestAttempt(_AttemptColumns, Base):
    __tablename__ = "practice_test_attempts"

    practice_test_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("practice_tests.id"), index=True
    )


class QuestionAttempt(Base):
    __tablename__ = "question_attempts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    question_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("questions.id"), index=True)

    quiz_attempt_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quiz_attempts.id"), nullable=True, index=True
    )
    practice_test_attempt_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("practice_test_attempts.id"), nullable=True, index=True
    )

    order_index: Mapped[int] = mapped_column(Integer, default=0)
    selected_option: Mapped[str | None] = mapped_column(String, nullable=True)
    selected_options: Mapped[list | None] = mapped_column(JSON, nullable=True)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    score: Mapped[int] = mapped_column(Integer, default=0)
    response_meta: Mapped[dict | None] = mapped_column("response_metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    question: Mapped[Question] = relationship(lazy="joined")

    __table_args__ = (
        CheckConstraint(
            "(quiz_attempt_id IS NULL) <> (practice_test_attempt_id IS NULL)",
            name="ck_question_attempt_single_parent",
        ),
    )
