"""Create user table with lockout state

Revision ID: 3f6c1d2a9b7e
Revises:
Create Date: 2026-02-10 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f6c1d2a9b7e"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create the user table, including lockout and forced reset columns."""
    op.create_table(
        "user",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("password", sa.String(length=200), nullable=True),
        sa.Column(
            "auth_provider",
            sa.String(length=40),
            nullable=False,
            server_default="local",
        ),
        sa.Column("role", sa.String(length=10), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column(
            "consecutive_failures", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("total_failures", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lockout_stage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lockout_expires_at", sa.DateTime(), nullable=True),
        sa.Column(
            "is_permanently_locked",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("last_failed_at", sa.DateTime(), nullable=True),
        sa.Column("last_success_at", sa.DateTime(), nullable=True),
        sa.Column("last_unlocked_by", sa.String(length=120), nullable=True),
        sa.Column("last_unlocked_at", sa.DateTime(), nullable=True),
        sa.Column(
            "password_reset_required",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("password_reset_token_hash", sa.String(length=64), nullable=True),
        sa.Column("password_reset_token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("password_reset_approved_by", sa.String(length=120), nullable=True),
        sa.Column("password_reset_approved_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "lockout_stage >= 0 AND lockout_stage <= 3", name="ck_user_lockout_stage"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_lockout_expires_at", "user", ["lockout_expires_at"])
    op.create_index(
        "ix_user_password_reset_token_hash", "user", ["password_reset_token_hash"]
    )


def downgrade():
    op.drop_index("ix_user_password_reset_token_hash", table_name="user")
    op.drop_index("ix_user_lockout_expires_at", table_name="user")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")
