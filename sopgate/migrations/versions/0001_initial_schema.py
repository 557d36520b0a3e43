"""Initial schema: documents, approvers, pending_operations, audit_entries

Revision ID: 0001
Revises: None
Create Date: 2026-10-19

On PostgreSQL this migration also installs triggers that keep
audit_entries append-only (no UPDATE, no DELETE).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all core tables."""

    # --- documents ---
    op.create_table(
        "documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(1024), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("brand", sa.String(100), nullable=True),
        sa.Column("uploaded_by", sa.String(100), nullable=True),
        sa.Column("version", sa.String(50), nullable=False, server_default="v1.0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("modified_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_documents"),
    )
    op.create_index("ix_documents_category", "documents", ["category"])
    op.create_index("ix_documents_brand", "documents", ["brand"])

    # --- approvers ---
    op.create_table(
        "approvers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_approvers"),
    )
    op.create_index("ix_approvers_username", "approvers", ["username"], unique=True)

    # --- pending_operations ---
    op.create_table(
        "pending_operations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("operation_kind", sa.String(20), nullable=False),
        sa.Column("target_document_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("assigned_approver_id", sa.Uuid(), nullable=True),
        sa.Column("proposed_payload", sa.Text(), nullable=False),
        sa.Column("requested_by", sa.String(100), nullable=False),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
        sa.Column("reviewed_by", sa.String(255), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_pending_operations"),
    )
    op.create_index("idx_pending_status", "pending_operations", ["status"])
    op.create_index("idx_pending_document_id", "pending_operations", ["target_document_id"])
    op.create_index("idx_pending_kind", "pending_operations", ["operation_kind"])
    op.create_index("idx_pending_requested_at", "pending_operations", ["requested_at"])

    # --- audit_entries (append-only) ---
    op.create_table(
        "audit_entries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("document_id", sa.Uuid(), nullable=True),
        sa.Column("pending_operation_id", sa.Uuid(), nullable=True),
        sa.Column("document_file_name", sa.String(255), nullable=True),
        sa.Column("document_brand", sa.String(100), nullable=True),
        sa.Column("document_category", sa.String(100), nullable=True),
        sa.Column("actor_name", sa.String(255), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_audit_entries"),
    )
    op.create_index("idx_audit_document_id", "audit_entries", ["document_id"])
    op.create_index("idx_audit_pending_operation_id", "audit_entries", ["pending_operation_id"])
    op.create_index("idx_audit_action", "audit_entries", ["action"])
    op.create_index("idx_audit_created_at", "audit_entries", ["created_at"])

    if op.get_bind().dialect.name == "postgresql":
        op.execute("""
            CREATE OR REPLACE FUNCTION prevent_audit_entry_change()
            RETURNS TRIGGER AS $trigger$
            BEGIN
                RAISE EXCEPTION 'Audit entries are immutable. Record ID: %', OLD.id;
            END;
            $trigger$ LANGUAGE plpgsql;
        """)

        op.execute("""
            CREATE TRIGGER audit_entries_prevent_update
            BEFORE UPDATE ON audit_entries
            FOR EACH ROW
            EXECUTE FUNCTION prevent_audit_entry_change();
        """)

        op.execute("""
            CREATE TRIGGER audit_entries_prevent_delete
            BEFORE DELETE ON audit_entries
            FOR EACH ROW
            EXECUTE FUNCTION prevent_audit_entry_change();
        """)


def downgrade() -> None:
    """Drop all core tables."""
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP TRIGGER IF EXISTS audit_entries_prevent_update ON audit_entries;")
        op.execute("DROP TRIGGER IF EXISTS audit_entries_prevent_delete ON audit_entries;")
        op.execute("DROP FUNCTION IF EXISTS prevent_audit_entry_change();")

    op.drop_index("idx_audit_created_at", table_name="audit_entries")
    op.drop_index("idx_audit_action", table_name="audit_entries")
    op.drop_index("idx_audit_pending_operation_id", table_name="audit_entries")
    op.drop_index("idx_audit_document_id", table_name="audit_entries")
    op.drop_table("audit_entries")

    op.drop_index("idx_pending_requested_at", table_name="pending_operations")
    op.drop_index("idx_pending_kind", table_name="pending_operations")
    op.drop_index("idx_pending_document_id", table_name="pending_operations")
    op.drop_index("idx_pending_status", table_name="pending_operations")
    op.drop_table("pending_operations")

    op.drop_index("ix_approvers_username", table_name="approvers")
    op.drop_table("approvers")

    op.drop_index("ix_documents_brand", table_name="documents")
    op.drop_index("ix_documents_category", table_name="documents")
    op.drop_table("documents")
