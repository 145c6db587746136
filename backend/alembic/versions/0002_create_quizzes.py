"""create quizzes and quiz results

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


quiz_status_enum = sa.Enum("in_progress", "completed", name="quizstatus")


def upgrade() -> None:
    op.create_table(
        "quizzes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("passage", sa.Text(), nullable=False, server_default=""),
        sa.Column("questions", sa.JSON(), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("current_question", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", quiz_status_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_quizzes_user_id", "quizzes", ["user_id"], unique=False)
    op.create_index("ix_quizzes_status", "quizzes", ["status"], unique=False)

    op.create_table(
        "quiz_results",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("correct_answers", sa.Integer(), nullable=False),
        sa.Column("category_analysis", sa.JSON(), nullable=False),
        sa.Column("overall_score", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("quiz_id", name="uq_quiz_results_quiz_id"),
    )
    op.create_index("ix_quiz_results_user_id", "quiz_results", ["user_id"], unique=False)
    op.create_index("ix_quiz_results_overall_score", "quiz_results", ["overall_score"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_quiz_results_overall_score", table_name="quiz_results")
    op.drop_index("ix_quiz_results_user_id", table_name="quiz_results")
    op.drop_table("quiz_results")

    op.drop_index("ix_quizzes_status", table_name="quizzes")
    op.drop_index("ix_quizzes_user_id", table_name="quizzes")
    op.drop_table("quizzes")
    quiz_status_enum.drop(op.get_bind(), checkfirst=True)
