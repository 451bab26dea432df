"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-16

Creates:
- document (unique storage_key)
- message (FK to document, index on document_id + created_at)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # document table
    op.create_table(
        "document",
        sa.Column("document_id", sa.Uuid(), primary_key=True),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("source_url", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("storage_key", name="uq_document_storage_key"),
    )
    op.create_index("idx_document_owner_created", "document", ["owner_id", "created_at"])

    # message table
    op.create_table(
        "message",
        sa.Column("message_id", sa.Uuid(), primary_key=True),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("is_user_message", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["document_id"], ["document.document_id"], ondelete="CASCADE"
        ),
    )
    op.create_index("idx_message_document_created", "message", ["document_id", "created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_message_document_created", table_name="message")
    op.drop_table("message")
    op.drop_index("idx_document_owner_created", table_name="document")
    op.drop_table("document")
