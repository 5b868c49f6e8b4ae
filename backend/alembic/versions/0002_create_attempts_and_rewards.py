"""create attempts, xp ledger and rewards

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


attempt_status_enum = sa.Enum("in_progress", "completed", name="attemptstatus")
learning_event_type_enum = sa.Enum(
    "attempt_started",
    "attempt_completed",
    "achievement_unlocked",
    "level_up",
    "badge_earned",
    name="learningeventtype",
)


def _attempt_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", attempt_status_enum, nullable=False, server_default="in_progress"),
        sa.Column("question_ids", sa.JSON(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("correct_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("incorrect_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("xp_awarded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "quiz_attempts",
        *_attempt_columns(),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quizzes.id"), nullable=False),
    )
    op.create_index("ix_quiz_attempts_user_id", "quiz_attempts", ["user_id"], unique=False)
    op.create_index("ix_quiz_attempts_quiz_id", "quiz_attempts", ["quiz_id"], unique=False)
    op.create_index("ix_quiz_attempts_status", "quiz_attempts", ["status"], unique=False)
    op.create_index("ix_quiz_attempts_completed_at", "quiz_attempts", ["completed_at"], unique=False)

    op.create_table(
        "practice_test_attempts",
        *_attempt_columns(),
        sa.Column(
            "practice_test_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("practice_tests.id"),
            nullable=False,
        ),
    )
    op.create_index("ix_practice_test_attempts_user_id", "practice_test_attempts", ["user_id"], unique=False)
    op.create_index(
        "ix_practice_test_attempts_practice_test_id",
        "practice_test_attempts",
        ["practice_test_id"],
        unique=False,
    )
    op.create_index("ix_practice_test_attempts_status", "practice_test_attempts", ["status"], unique=False)
    op.create_index(
        "ix_practice_test_attempts_completed_at",
        "practice_test_attempts",
        ["completed_at"],
        unique=False,
    )

    op.create_table(
        "question_attempts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("question_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("quiz_attempt_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quiz_attempts.id"), nullable=True),
        sa.Column(
            "practice_test_attempt_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("practice_test_attempts.id"),
            nullable=True,
        ),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("selected_option", sa.String(), nullable=True),
        sa.Column("selected_options", sa.JSON(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("response_metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "(quiz_attempt_id IS NULL) <> (practice_test_attempt_id IS NULL)",
            name="ck_question_attempt_single_parent",
        ),
    )
    op.create_index("ix_question_attempts_user_id", "question_attempts", ["user_id"], unique=False)
    op.create_index("ix_question_attempts_question_id", "question_attempts", ["question_id"], unique=False)
    op.create_index("ix_question_attempts_quiz_attempt_id", "question_attempts", ["quiz_attempt_id"], unique=False)
    op.create_index(
        "ix_question_attempts_practice_test_attempt_id",
        "question_attempts",
        ["practice_test_attempt_id"],
        unique=False,
    )

    op.create_table(
        "xp_transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=100), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_xp_transactions_user_id", "xp_transactions", ["user_id"], unique=False)
    op.create_index("ix_xp_transactions_source", "xp_transactions", ["source"], unique=False)
    op.create_index("ix_xp_transactions_created_at", "xp_transactions", ["created_at"], unique=False)

    op.create_table(
        "topic_mastery",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("topic_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("topics.id"), nullable=False),
        sa.Column("total_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("correct_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("accuracy", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "topic_id", name="uq_topic_mastery_user_topic"),
    )
    op.create_index("ix_topic_mastery_user_id", "topic_mastery", ["user_id"], unique=False)
    op.create_index("ix_topic_mastery_topic_id", "topic_mastery", ["topic_id"], unique=False)

    op.create_table(
        "badges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("xp_required", sa.Integer(), nullable=False),
        sa.Column("icon_url", sa.String(length=500), nullable=True),
    )
    op.create_index("ix_badges_xp_required", "badges", ["xp_required"], unique=False)

    op.create_table(
        "achievements",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=100), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("criteria", sa.String(length=1000), nullable=True),
        sa.Column("xp_reward", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "user_achievements",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "achievement_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("achievements.id"),
            nullable=False,
        ),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),
    )
    op.create_index("ix_user_achievements_user_id", "user_achievements", ["user_id"], unique=False)
    op.create_index("ix_user_achievements_achievement_id", "user_achievements", ["achievement_id"], unique=False)

    op.create_table(
        "learning_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", learning_event_type_enum, nullable=False),
        sa.Column("ref_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("meta", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_learning_events_user_id", "learning_events", ["user_id"], unique=False)
    op.create_index("ix_learning_events_type", "learning_events", ["type"], unique=False)
    op.create_index("ix_learning_events_ref_id", "learning_events", ["ref_id"], unique=False)


def downgrade() -> None:
    op.drop_table("learning_events")
    op.drop_table("user_achievements")
    op.drop_table("achievements")
    op.drop_table("badges")
    op.drop_table("topic_mastery")
    op.drop_table("xp_transactions")
    op.drop_table("question_attempts")
    op.drop_table("practice_test_attempts")
    op.drop_table("quiz_attempts")
    op.execute("DROP TYPE IF EXISTS learningeventtype")
    op.execute("DROP TYPE IF EXISTS attemptstatus")
