"""create access engine tables

Revision ID: 7a3c91d2e5b0
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "7a3c91d2e5b0"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "company",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.sql.expression.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_table(
        "profile",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="user"),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("company.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.sql.expression.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_table(
        "system_module",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("module_type", sa.String(length=16), nullable=False, server_default="add-on"),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="general"),
        sa.Column("is_core_required", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.sql.expression.true()),
        sa.Column("allowed_roles", sa.JSON(), nullable=True),
        sa.Column("requires_modules", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.CheckConstraint("module_type IN ('core', 'super', 'add-on')", name="ck_system_module_type"),
    )
    op.create_table(
        "company_module",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("company.id", ondelete="CASCADE"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("system_module.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("is_locked_by_system", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("enabled_by", sa.Integer(), sa.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("company_id", "module_id", name="uq_company_module"),
    )
    op.create_table(
        "user_module",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("profile.id", ondelete="CASCADE"), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("company.id", ondelete="CASCADE"), nullable=True),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("system_module.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("granted_by", sa.Integer(), sa.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "company_id", "module_id", name="uq_user_module"),
    )
    op.create_table(
        "permission",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=100), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=False, server_default="general"),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("system_module.id", ondelete="CASCADE"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_table(
        "user_permission",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("profile.id", ondelete="CASCADE"), nullable=False),
        sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permission.id", ondelete="CASCADE"), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("company.id", ondelete="CASCADE"), nullable=True),
        sa.Column("is_granted", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.Column("granted_by", sa.Integer(), sa.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True),
        sa.Column("granted_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("user_id", "permission_id", "company_id", name="uq_user_permission"),
    )
    op.create_index("ix_user_permission_user_company", "user_permission", ["user_id", "company_id"])
    op.create_table(
        "role_permission",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permission.id", ondelete="CASCADE"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("system_module.id", ondelete="CASCADE"), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.sql.expression.false()),
        sa.UniqueConstraint("role", "permission_id", name="uq_role_permission"),
    )
    op.create_table(
        "user_menu_preference",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("profile.id", ondelete="CASCADE"), nullable=False,
                  unique=True),
        sa.Column("menu_items_order", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_table(
        "permission_audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("company.id", ondelete="SET NULL"), nullable=True),
        sa.Column("subject", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_permission_audit_log_company", "permission_audit_log", ["company_id", "created_at"])


def downgrade():
    op.drop_index("ix_permission_audit_log_company", table_name="permission_audit_log")
    op.drop_table("permission_audit_log")
    op.drop_table("user_menu_preference")
    op.drop_table("role_permission")
    op.drop_index("ix_user_permission_user_company", table_name="user_permission")
    op.drop_table("user_permission")
    op.drop_table("permission")
    op.drop_table("user_module")
    op.drop_table("company_module")
    op.drop_table("system_module")
    op.drop_table("profile")
    op.drop_table("company")
