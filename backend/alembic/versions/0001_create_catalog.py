"""create users and assessment catalog

Revision ID: 0001
Revises: 
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("learner", "admin", name="userrole")
question_type_enum = sa.Enum(
    "multiple_choice",
    "true_false",
    "fill_in_blank",
    "short_answer",
    "multi_select",
    name="questiontype",
)
difficulty_enum = sa.Enum("easy", "medium", "hard", name="difficulty")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("role", user_role_enum, nullable=False, server_default="learner"),
        sa.Column("xp_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("streak_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_name", "users", ["name"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "topics",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
    )
    op.create_index("ix_topics_name", "topics", ["name"], unique=False)

    op.create_table(
        "questions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("topic_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("topics.id"), nullable=True),
        sa.Column("question_type", question_type_enum, nullable=False),
        sa.Column("prompt", sa.String(), nullable=False, server_default=""),
        sa.Column("options", sa.JSON(), nullable=True),
        sa.Column("correct_option", sa.String(), nullable=True),
        sa.Column("correct_answers", sa.JSON(), nullable=True),
        sa.Column("explanation", sa.String(), nullable=True),
    )
    op.create_index("ix_questions_topic_id", "questions", ["topic_id"], unique=False)
    op.create_index("ix_questions_question_type", "questions", ["question_type"], unique=False)

    op.create_table(
        "quizzes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("topic_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("topics.id"), nullable=True),
        sa.Column("title", sa.String(length=300), nullable=False, server_default=""),
        sa.Column("difficulty", difficulty_enum, nullable=False, server_default="medium"),
        sa.Column("time_limit_seconds", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_quizzes_topic_id", "quizzes", ["topic_id"], unique=False)
    op.create_index("ix_quizzes_is_active", "quizzes", ["is_active"], unique=False)

    op.create_table(
        "quiz_questions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("question_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("quiz_id", "question_id", name="uq_quiz_question"),
    )
    op.create_index("ix_quiz_questions_quiz_id", "quiz_questions", ["quiz_id"], unique=False)
    op.create_index("ix_quiz_questions_question_id", "quiz_questions", ["question_id"], unique=False)

    op.create_table(
        "practice_tests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False, server_default=""),
        sa.Column("time_limit_seconds", sa.Integer(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("xp_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_practice_tests_is_active", "practice_tests", ["is_active"], unique=False)

    op.create_table(
        "practice_test_questions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "practice_test_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("practice_tests.id"),
            nullable=False,
        ),
        sa.Column("question_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("practice_test_id", "question_id", name="uq_practice_test_question"),
    )
    op.create_index(
        "ix_practice_test_questions_practice_test_id",
        "practice_test_questions",
        ["practice_test_id"],
        unique=False,
    )
    op.create_index(
        "ix_practice_test_questions_question_id",
        "practice_test_questions",
        ["question_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("practice_test_questions")
    op.drop_table("practice_tests")
    op.drop_table("quiz_questions")
    op.drop_table("quizzes")
    op.drop_table("questions")
    op.drop_table("topics")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS difficulty")
    op.execute("DROP TYPE IF EXISTS questiontype")
    op.execute("DROP TYPE IF EXISTS userrole")
