# -*- coding: utf-8 -*-
"""
Module catalog models.
System-wide module definitions plus per-company enablement and per-user overrides.
"""

from expensehub.utils.dates import utcnow
from expensehub import db


class SystemModule(db.Model):
    __tablename__ = "system_module"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    module_type = db.Column(db.String(16), nullable=False, default="add-on")
    category = db.Column(db.String(32), nullable=False, default="general")
    is_core_required = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    allowed_roles = db.Column(db.JSON)
    requires_modules = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.CheckConstraint("module_type IN ('core', 'super', 'add-on')", name="ck_system_module_type"),
    )

    def __repr__(self):
        return f"<SystemModule {self.key} type={self.module_type}>"


class CompanyModule(db.Model):
    __tablename__ = "company_module"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("company.id", ondelete="CASCADE"), nullable=False)
    module_id = db.Column(db.Integer, db.ForeignKey("system_module.id", ondelete="CASCADE"), nullable=False)
    is_enabled = db.Column(db.Boolean, default=False, nullable=False)
    is_locked_by_system = db.Column(db.Boolean, default=False, nullable=False)
    enabled_by = db.Column(db.Integer, db.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    module = db.relationship("SystemModule")

    __table_args__ = (
        db.UniqueConstraint("company_id", "module_id", name="uq_company_module"),
    )

    def __repr__(self):
        return (
            f"<CompanyModule company={self.company_id} module={self.module_id} "
            f"enabled={self.is_enabled} locked={self.is_locked_by_system}>"
        )


class UserModule(db.Model):
    __tablename__ = "user_module"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profile.id", ondelete="CASCADE"), nullable=False)
    company_id = db.Column(db.Integer, db.ForeignKey("company.id", ondelete="CASCADE"), nullable=True)
    module_id = db.Column(db.Integer, db.ForeignKey("system_module.id", ondelete="CASCADE"), nullable=False)
    is_enabled = db.Column(db.Boolean, default=False, nullable=False)
    granted_by = db.Column(db.Integer, db.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    module = db.relationship("SystemModule")

    __table_args__ = (
        db.UniqueConstraint("user_id", "company_id", "module_id", name="uq_user_module"),
    )

    def __repr__(self):
        return f"<UserModule user={self.user_id} module={self.module_id} enabled={self.is_enabled}>"
