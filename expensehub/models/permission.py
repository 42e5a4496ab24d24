# -*- coding: utf-8 -*-
"""
Permission models.
Named capabilities, per-role defaults and per-user grants/denials.
"""

from expensehub.utils.dates import utcnow
from expensehub import db


class Permission(db.Model):
    __tablename__ = "permission"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50), nullable=False, default="general")
    module_id = db.Column(db.Integer, db.ForeignKey("system_module.id", ondelete="CASCADE"), nullable=True)
    requires_permissions = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self):
        return f"<Permission {self.key}>"


class UserPermission(db.Model):
    __tablename__ = "user_permission"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profile.id", ondelete="CASCADE"), nullable=False)
    permission_id = db.Column(db.Integer, db.ForeignKey("permission.id", ondelete="CASCADE"), nullable=False)
    company_id = db.Column(db.Integer, db.ForeignKey("company.id", ondelete="CASCADE"), nullable=True)
    is_granted = db.Column(db.Boolean, default=False, nullable=False)
    granted_by = db.Column(db.Integer, db.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True)
    granted_at = db.Column(db.DateTime, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=True)

    permission = db.relationship("Permission")

    __table_args__ = (
        db.UniqueConstraint("user_id", "permission_id", "company_id", name="uq_user_permission"),
    )

    def __repr__(self):
        return f"<UserPermission user={self.user_id} perm={self.permission_id} granted={self.is_granted}>"


class RolePermission(db.Model):
    __tablename__ = "role_permission"

    id = db.Column(db.Integer, primary_key=True)
    role = db.Column(db.String(50), nullable=False)
    permission_id = db.Column(db.Integer, db.ForeignKey("permission.id", ondelete="CASCADE"), nullable=False)
    module_id = db.Column(db.Integer, db.ForeignKey("system_module.id", ondelete="CASCADE"), nullable=True)
    is_default = db.Column(db.Boolean, default=False, nullable=False)

    permission = db.relationship("Permission")

    __table_args__ = (
        db.UniqueConstraint("role", "permission_id", name="uq_role_permission"),
    )

    def __repr__(self):
        return f"<RolePermission {self.role} perm={self.permission_id} default={self.is_default}>"


class PermissionTemplate(db.Model):
    __tablename__ = "permission_template"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    display_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    target_role = db.Column(db.String(50), nullable=False, default="user")
    permission_keys = db.Column(db.JSON, nullable=False, default=list)
    is_system_template = db.Column(db.Boolean, default=False, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self):
        return f"<PermissionTemplate {self.name} keys={len(self.permission_keys or [])}>"
