"""per-user best score index for leaderboards

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-18

Rows are backfilled by RankingService.rebuild_best_scores (scripts/rebuild_best_scores.py).

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "quiz_best_scores",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("scope", sa.String(length=20), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("result_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quiz_results.id", ondelete="CASCADE"), nullable=False),
        sa.Column("achieved_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "scope", name="uq_quiz_best_scores_user_scope"),
    )
    op.create_index("ix_quiz_best_scores_user_id", "quiz_best_scores", ["user_id"], unique=False)
    op.create_index("ix_quiz_best_scores_scope", "quiz_best_scores", ["scope"], unique=False)
    op.create_index("ix_quiz_best_scores_scope_score", "quiz_best_scores", ["scope", "score"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_quiz_best_scores_scope_score", table_name="quiz_best_scores")
    op.drop_index("ix_quiz_best_scores_scope", table_name="quiz_best_scores")
    op.drop_index("ix_quiz_best_scores_user_id", table_name="quiz_best_scores")
    op.drop_table("quiz_best_scores")
