# migrations/versions/a1f0c3d2e4b5_initial_schema.py
from alembic import op
import sqlalchemy as sa

revision = "a1f0c3d2e4b5"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "files",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("owner_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column("content_type", sa.Text(), nullable=False),
        sa.Column("storage_id", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_files_owner", "files", ["owner_id"])
    op.create_index("ix_files_owner_created", "files", ["owner_id", "created_at"])

    op.create_table(
        "grants",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("file_id", sa.String(32), sa.ForeignKey("files.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(8), nullable=False),
        sa.Column(
            "target_user_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("token", sa.String(128), nullable=True),
        sa.Column("role", sa.String(8), nullable=False, server_default="viewer"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("file_id", "target_user_id", name="uq_grants_file_target"),
        sa.UniqueConstraint("token", name="uq_grants_token"),
        sa.CheckConstraint("role IN ('viewer', 'editor')", name="ck_grants_role"),
        sa.CheckConstraint(
            "(kind = 'user' AND target_user_id IS NOT NULL AND token IS NULL)"
            " OR (kind = 'link' AND target_user_id IS NULL AND token IS NOT NULL)",
            name="ck_grants_kind_shape",
        ),
    )
    op.create_index("ix_grants_file", "grants", ["file_id"])
    op.create_index("ix_grants_target", "grants", ["target_user_id"])
    op.create_index("ix_grants_expires", "grants", ["expires_at"])

    op.create_table(
        "audit_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("file_id", sa.String(32), sa.ForeignKey("files.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_id", sa.String(64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_entries_file", "audit_entries", ["file_id"])
    op.create_index("ix_audit_entries_actor", "audit_entries", ["actor_id"])
    op.create_index("ix_audit_entries_created", "audit_entries", ["created_at"])


def downgrade():
    op.drop_table("audit_entries")
    op.drop_table("grants")
    op.drop_table("files")
    op.drop_table("users")
