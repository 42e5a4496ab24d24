"""add permission templates and permission requirements

Revision ID: c41e8b7d2a93
Revises: 7a3c91d2e5b0
Create Date: 2026-10-25 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "c41e8b7d2a93"
down_revision = "7a3c91d2e5b0"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("permission") as batch_op:
        batch_op.add_column(sa.Column("requires_permissions", sa.JSON(), nullable=True))

    op.create_table(
        "permission_template",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_role", sa.String(length=50), nullable=False, server_default="user"),
        sa.Column("permission_keys", sa.JSON(), nullable=False),
        sa.Column("is_system_template", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table("permission_template")
    with op.batch_alter_table("permission") as batch_op:
        batch_op.drop_column("requires_permissions")
