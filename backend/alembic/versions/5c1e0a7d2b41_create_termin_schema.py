"""create teams, termine, notifications, sessions and change log

Revision ID: 5c1e0a7d2b41
Revises:
Create Date: 2026-02-22 18:29:06.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5c1e0a7d2b41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


_SCOPED_TABLES = ("termine", "notifications", "change_log")


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("channel_code", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seq", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_teams_channel_code", "teams", ["channel_code"], unique=True)

    op.create_table(
        "team_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("team_id", sa.Uuid(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_team_sessions_team_id", "team_sessions", ["team_id"])

    op.create_table(
        "termine",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("team_id", sa.Uuid(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False, server_default=""),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False, server_default=""),
        sa.Column("reminder_minutes", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_by", sa.String(40), nullable=False, server_default="chef"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('pending', 'confirmed')", name="ck_termine_status"),
        sa.CheckConstraint("reminder_minutes >= 0", name="ck_termine_reminder_minutes"),
    )
    op.create_index("ix_termine_team_id", "termine", ["team_id"])
    op.create_index("ix_termine_date", "termine", ["date"])
    op.create_index("ix_termine_status", "termine", ["status"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("team_id", sa.Uuid(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("termin_id", sa.Uuid(), sa.ForeignKey("termine.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False, server_default="custom"),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("type IN ('new_termin', 'reminder', 'custom')", name="ck_notifications_type"),
    )
    op.create_index("ix_notifications_team_id", "notifications", ["team_id"])
    op.create_index("ix_notifications_termin_id", "notifications", ["termin_id"])
    op.create_index("ix_notifications_read", "notifications", ["read"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

    op.create_table(
        "change_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("team_id", sa.Uuid(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("entity", sa.String(20), nullable=False),
        sa.Column("op", sa.String(10), nullable=False),
        sa.Column("row_id", sa.String(36), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("team_id", "seq", name="uq_change_log_team_seq"),
    )
    op.create_index("ix_change_log_team_id", "change_log", ["team_id"])

    bind = op.get_bind()
    if str(bind.dialect.name).startswith("postgres"):
        # second line of defence behind the ORM gate: rows are only visible
        # to transactions that set app.team_id to their team
        for table in _SCOPED_TABLES:
            op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
            op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY")
            op.execute(
                f"CREATE POLICY {table}_team_isolation ON {table} "
                "USING (team_id::text = current_setting('app.team_id', true)) "
                "WITH CHECK (team_id::text = current_setting('app.team_id', true))"
            )


def downgrade() -> None:
    bind = op.get_bind()
    if str(bind.dialect.name).startswith("postgres"):
        for table in _SCOPED_TABLES:
            op.execute(f"DROP POLICY IF EXISTS {table}_team_isolation ON {table}")

    op.drop_table("change_log")
    op.drop_table("notifications")
    op.drop_table("termine")
    op.drop_table("team_sessions")
    op.drop_table("teams")
