"""create users and account audit events

Revision ID: 0001
Revises: 
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("login_type", sa.String(length=20), nullable=False, server_default="email"),
        sa.Column("email", sa.String(length=50), nullable=False),
        sa.Column("nick_name", sa.String(length=20), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("role", sa.Enum("student", "parent", name="userrole"), nullable=False),
        sa.Column("image_uri", sa.String(length=500), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("hashed_refresh_token", sa.String(length=128), nullable=True),
        sa.Column(
            "parent_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)
    op.create_index("ix_users_parent_id", "users", ["parent_id"], unique=False)

    op.create_table(
        "account_audit_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "event_type",
            sa.Enum(
                "signup",
                "login_success",
                "login_failed",
                "token_refreshed",
                "logout",
                "child_linked",
                "child_unlinked",
                "account_deleted",
                name="auditeventtype",
            ),
            nullable=False,
        ),
        sa.Column("actor_user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("child_user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("email", sa.String(length=50), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("request_id", sa.String(length=100), nullable=True),
        sa.Column("ip", sa.String(length=80), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_account_audit_events_event_type", "account_audit_events", ["event_type"], unique=False)
    op.create_index("ix_account_audit_events_actor_user_id", "account_audit_events", ["actor_user_id"], unique=False)
    op.create_index("ix_account_audit_events_email", "account_audit_events", ["email"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_account_audit_events_email", table_name="account_audit_events")
    op.drop_index("ix_account_audit_events_actor_user_id", table_name="account_audit_events")
    op.drop_index("ix_account_audit_events_event_type", table_name="account_audit_events")
    op.drop_table("account_audit_events")
    op.execute("DROP TYPE IF EXISTS auditeventtype")

    op.drop_index("ix_users_parent_id", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS userrole")
