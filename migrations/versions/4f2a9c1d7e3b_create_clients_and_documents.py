"""create_clients_and_documents

Revision ID: 4f2a9c1d7e3b
Revises:
Create Date: 2026-10-19 09:12:44.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4f2a9c1d7e3b'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create clients and client_documents tables."""
    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clickup_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=False),
        sa.Column("honorar", sa.Float(), nullable=False),
        sa.Column("raten", sa.Integer(), nullable=False),
        sa.Column("raten_start", sa.String(length=32), nullable=False),
        sa.Column("monatliche_rate", sa.Float(), nullable=True),
        sa.Column("case_number", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("current_phase", sa.Integer(), nullable=False),
        sa.Column(
            "phase_completion_dates",
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"),
            nullable=False,
        ),
        sa.Column("email_sent", sa.Boolean(), nullable=False),
        sa.Column("last_email_sent", sa.DateTime(timezone=True), nullable=True),
        sa.Column("documents_uploaded", sa.Boolean(), nullable=False),
        sa.Column("first_payment_received", sa.Boolean(), nullable=False),
        sa.Column("zahlung_status", sa.String(length=32), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_clients_clickup_id", "clients", ["clickup_id"], unique=True)
    op.create_index("ix_clients_last_updated", "clients", ["last_updated"])

    op.create_table(
        "client_documents",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("original_filename", sa.String(length=255), nullable=False),
        sa.Column("path", sa.String(length=500), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("mimetype", sa.String(length=150), nullable=False),
        sa.Column("document_type", sa.String(length=32), nullable=False),
        sa.Column("upload_date", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_client_documents_client_id", "client_documents", ["client_id"]
    )


def downgrade() -> None:
    """Drop client_documents and clients tables."""
    op.drop_index("ix_client_documents_client_id", table_name="client_documents")
    op.drop_table("client_documents")
    op.drop_index("ix_clients_last_updated", table_name="clients")
    op.drop_index("ix_clients_clickup_id", table_name="clients")
    op.drop_table("clients")
