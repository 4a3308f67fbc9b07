"""create timetable documents

Revision ID: 20261017_0001
Revises: None
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "timetable_documents",
        sa.Column("key", sa.String(length=200), primary_key=True, nullable=False),
        sa.Column("semester", sa.String(length=50), nullable=False),
        sa.Column("branch", sa.String(length=100), nullable=False),
        sa.Column("batch", sa.String(length=50), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("schedule", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_timetable_documents_semester", "timetable_documents", ["semester"])
    op.create_index("ix_timetable_documents_branch", "timetable_documents", ["branch"])


def downgrade() -> None:
    op.drop_index("ix_timetable_documents_branch", table_name="timetable_documents")
    op.drop_index("ix_timetable_documents_semester", table_name="timetable_documents")
    op.drop_table("timetable_documents")
