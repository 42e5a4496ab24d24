# -*- coding: utf-8 -*-
"""
Data-access boundary for the access engine.

``SqlAccessStore`` reads and writes the catalog, override, grant and preference
tables through the Flask-SQLAlchemy session and hands back plain dataclasses.
Every database failure surfaces as ``StoreUnavailableError``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from expensehub.access.errors import StoreUnavailableError
from expensehub.access.types import (
    CompanyModuleSetting,
    PermissionGrant,
    PermissionTemplate,
    RolePermissionDefault,
    SystemModule,
    UserContext,
    UserModuleOverride,
)
from expensehub.utils.dates import utcnow

logger = logging.getLogger(__name__)


def _role_set(raw: Any) -> frozenset:
    if not raw:
        return frozenset()
    if isinstance(raw, str):
        raw = raw.split(",")
    return frozenset(str(role).strip() for role in raw if str(role).strip())


def _key_tuple(raw: Any) -> tuple:
    if not raw:
        return ()
    if isinstance(raw, str):
        raw = raw.split(",")
    return tuple(str(item).strip() for item in raw if str(item).strip())


def _guarded(func):
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            # a failed statement leaves the transaction aborted for reads too
            self.session.rollback()
            logger.warning("Access store %s failed: %s", func.__name__, exc)
            raise StoreUnavailableError(
                f"{func.__name__} failed", operation=func.__name__
            ) from exc
    return wrapper


class SqlAccessStore:
    """Reads/writes access rows through a SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    # ───────── Generic query interface ───────── #
    def select_rows(self, model, order_by: Optional[Sequence[Any]] = None, **filters) -> List[Any]:
        query = self.session.query(model).filter_by(**filters)
        if order_by:
            query = query.order_by(*order_by)
        return query.all()

    def select_one(self, model, **filters) -> Any:
        return self.session.query(model).filter_by(**filters).first()

    # ───────── Row normalisation ───────── #
    @staticmethod
    def _module(row) -> Optional[SystemModule]:
        if row is None:
            return None
        if isinstance(row, (list, tuple)):
            row = row[0] if row else None
            if row is None:
                return None
        return SystemModule(
            id=row.id,
            key=row.key,
            name=row.name,
            type=row.module_type or "add-on",
            category=row.category or "general",
            allowed_roles=_role_set(row.allowed_roles),
            is_core_required=bool(row.is_core_required),
            is_active=bool(row.is_active),
            requires_modules=_key_tuple(row.requires_modules),
        )

    # ───────── Reads ───────── #
    @_guarded
    def get_profile(self, user_id) -> Optional[UserContext]:
        from expensehub.models import Profile

        profile = self.session.get(Profile, user_id)
        if profile is None or not profile.is_active:
            return None
        return UserContext(user_id=profile.id, role=profile.role, company_id=profile.company_id)

    @_guarded
    def list_system_modules(self) -> List[SystemModule]:
        from expensehub.models import SystemModule as SystemModuleRow

        rows = self.select_rows(
            SystemModuleRow, order_by=(SystemModuleRow.module_type, SystemModuleRow.name)
        )
        return [self._module(row) for row in rows]

    @_guarded
    def get_system_module(self, module_id=None, *, key: Optional[str] = None,
                          name: Optional[str] = None) -> Optional[SystemModule]:
        from expensehub.models import SystemModule as SystemModuleRow

        if module_id is not None:
            return self._module(self.session.get(SystemModuleRow, module_id))
        if key is not None:
            return self._module(self.select_one(SystemModuleRow, key=key))
        if name is not None:
            return self._module(self.select_one(SystemModuleRow, name=name))
        return None

    @_guarded
    def list_company_settings(self, company_id) -> List[CompanyModuleSetting]:
        from expensehub.models import CompanyModule

        if company_id is None:
            return []
        return [
            CompanyModuleSetting(
                company_id=row.company_id,
                module_id=row.module_id,
                is_enabled=bool(row.is_enabled),
                is_locked_by_system=bool(row.is_locked_by_system),
            )
            for row in self.select_rows(CompanyModule, company_id=company_id)
        ]

    @_guarded
    def list_user_overrides(self, user_id, company_id=None) -> List[UserModuleOverride]:
        from expensehub.models import UserModule

        filters: Dict[str, Any] = {"user_id": user_id}
        if company_id is not None:
            filters["company_id"] = company_id
        return [
            UserModuleOverride(
                user_id=row.user_id,
                company_id=row.company_id,
                module_id=row.module_id,
                is_enabled=bool(row.is_enabled),
            )
            for row in self.select_rows(UserModule, **filters)
        ]

    @_guarded
    def permission_exists(self, permission_key: str) -> bool:
        from expensehub.models import Permission

        return self.select_one(Permission, key=permission_key) is not None

    @_guarded
    def find_grant(self, user_id, permission_key: str, company_id=None) -> Optional[PermissionGrant]:
        from expensehub.models import Permission, UserPermission

        row = (
            self.session.query(UserPermission)
            .join(Permission, UserPermission.permission_id == Permission.id)
            .filter(UserPermission.user_id == user_id)
            .filter(Permission.key == permission_key)
            .filter(UserPermission.company_id == company_id)
            .first()
        )
        return self._grant(row, permission_key)

    @_guarded
    def list_grants(self, user_id, company_id=None) -> List[PermissionGrant]:
        from expensehub.models import Permission, UserPermission

        rows = (
            self.session.query(UserPermission, Permission.key)
            .join(Permission, UserPermission.permission_id == Permission.id)
            .filter(UserPermission.user_id == user_id)
            .filter(UserPermission.company_id == company_id)
            .order_by(Permission.key)
            .all()
        )
        return [self._grant(row, key) for row, key in rows]

    @staticmethod
    def _grant(row, permission_key: str) -> Optional[PermissionGrant]:
        if row is None:
            return None
        return PermissionGrant(
            user_id=row.user_id,
            permission_key=permission_key,
            company_id=row.company_id,
            is_granted=bool(row.is_granted),
            granted_by=row.granted_by,
            expires_at=row.expires_at,
        )

    @_guarded
    def find_role_default(self, role: str, permission_key: str) -> Optional[RolePermissionDefault]:
        from expensehub.models import Permission, RolePermission

        row = (
            self.session.query(RolePermission)
            .join(Permission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role == role)
            .filter(Permission.key == permission_key)
            .first()
        )
        if row is None:
            return None
        return RolePermissionDefault(
            role=row.role,
            permission_key=permission_key,
            module_id=row.module_id,
            is_default=bool(row.is_default),
        )

    @_guarded
    def list_role_defaults(self, role: str) -> List[RolePermissionDefault]:
        from expensehub.models import Permission, RolePermission

        rows = (
            self.session.query(RolePermission, Permission.key)
            .join(Permission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role == role)
            .order_by(Permission.key)
            .all()
        )
        return [
            RolePermissionDefault(
                role=row.role, permission_key=key, module_id=row.module_id, is_default=bool(row.is_default)
            )
            for row, key in rows
        ]

    @_guarded
    def list_permission_keys(self) -> List[str]:
        from expensehub.models import Permission

        return [row.key for row in self.select_rows(Permission, order_by=(Permission.key,))]

    @_guarded
    def load_preferences_document(self, user_id) -> Optional[List[Any]]:
        from expensehub.models import UserMenuPreference

        row = self.select_one(UserMenuPreference, user_id=user_id)
        if row is None:
            return None
        return row.menu_items_order

    @_guarded
    def list_audit(self, company_id=None, user_id=None, limit: int = 50) -> List[Dict[str, Any]]:
        from expensehub.models import PermissionAuditLog

        query = self.session.query(PermissionAuditLog)
        if company_id is not None:
            query = query.filter(PermissionAuditLog.company_id == company_id)
        if user_id is not None:
            query = query.filter(PermissionAuditLog.user_id == user_id)
        rows = query.order_by(PermissionAuditLog.created_at.desc(), PermissionAuditLog.id.desc()).limit(limit).all()
        return [row.to_dict() for row in rows]

    # ───────── Writes ───────── #
    @_guarded
    def upsert_grant(self, user_id, permission_key: str, company_id, is_granted: bool,
                     granted_by=None, expires_at: Optional[datetime] = None) -> Optional[PermissionGrant]:
        from expensehub.models import Permission, UserPermission

        permission = self.select_one(Permission, key=permission_key)
        if permission is None:
            return None
        row = self.select_one(
            UserPermission, user_id=user_id, permission_id=permission.id, company_id=company_id
        )
        if row is None:
            row = UserPermission(user_id=user_id, permission_id=permission.id, company_id=company_id)
            self.session.add(row)
        row.is_granted = bool(is_granted)
        row.granted_by = granted_by
        row.granted_at = utcnow()
        row.expires_at = expires_at
        self.session.commit()
        return self._grant(row, permission_key)

    @_guarded
    def delete_grant(self, user_id, permission_key: str, company_id) -> bool:
        from expensehub.models import Permission, UserPermission

        permission = self.select_one(Permission, key=permission_key)
        if permission is None:
            return False
        row = self.select_one(
            UserPermission, user_id=user_id, permission_id=permission.id, company_id=company_id
        )
        if row is None:
            return False
        self.session.delete(row)
        self.session.commit()
        return True

    @_guarded
    def upsert_company_setting(self, company_id, module_id, is_enabled: Optional[bool] = None,
                               locked: Optional[bool] = None, enabled_by=None) -> CompanyModuleSetting:
        from expensehub.models import CompanyModule

        row = self.select_one(CompanyModule, company_id=company_id, module_id=module_id)
        if row is None:
            row = CompanyModule(company_id=company_id, module_id=module_id,
                                is_enabled=False, is_locked_by_system=False)
            self.session.add(row)
        if is_enabled is not None:
            row.is_enabled = bool(is_enabled)
        if locked is not None:
            row.is_locked_by_system = bool(locked)
        row.enabled_by = enabled_by
        self.session.commit()
        return CompanyModuleSetting(
            company_id=row.company_id,
            module_id=row.module_id,
            is_enabled=bool(row.is_enabled),
            is_locked_by_system=bool(row.is_locked_by_system),
        )

    @_guarded
    def upsert_user_override(self, user_id, company_id, module_id, is_enabled: bool,
                             granted_by=None) -> UserModuleOverride:
        from expensehub.models import UserModule

        row = self.select_one(UserModule, user_id=user_id, company_id=company_id, module_id=module_id)
        if row is None:
            row = UserModule(user_id=user_id, company_id=company_id, module_id=module_id)
            self.session.add(row)
        row.is_enabled = bool(is_enabled)
        row.granted_by = granted_by
        self.session.commit()
        return UserModuleOverride(
            user_id=row.user_id, company_id=row.company_id, module_id=row.module_id, is_enabled=row.is_enabled
        )

    @_guarded
    def delete_user_override(self, user_id, company_id, module_id) -> bool:
        from expensehub.models import UserModule

        row = self.select_one(UserModule, user_id=user_id, company_id=company_id, module_id=module_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.commit()
        return True

    @_guarded
    def save_preferences_document(self, user_id, items: Iterable[Dict[str, Any]]) -> None:
        from expensehub.models import UserMenuPreference

        row = self.select_one(UserMenuPreference, user_id=user_id)
        if row is None:
            row = UserMenuPreference(user_id=user_id)
            self.session.add(row)
        row.menu_items_order = list(items)
        self.session.commit()

    @_guarded
    def record_audit(self, action: str, *, actor_id=None, user_id=None, company_id=None,
                     subject: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        from expensehub.models import PermissionAuditLog

        self.session.add(
            PermissionAuditLog(
                action=action,
                actor_id=actor_id,
                user_id=user_id,
                company_id=company_id,
                subject=subject,
                details=details or {},
            )
        )
        self.session.commit()

    # ───────── Permission requirements and templates ───────── #
    @_guarded
    def permission_requirements(self, permission_keys: Iterable[str]) -> Dict[str, tuple]:
        from expensehub.models import Permission

        keys = list(permission_keys)
        if not keys:
            return {}
        rows = self.session.query(Permission).filter(Permission.key.in_(keys)).all()
        return {row.key: _key_tuple(row.requires_permissions) for row in rows}

    @_guarded
    def apply_grants(self, user_id, company_id, entries: Sequence[tuple], granted_by=None,
                     expires_at: Optional[datetime] = None) -> List[PermissionGrant]:
        """Upsert ``(permission_key, is_granted)`` pairs in one transaction."""
        from expensehub.models import Permission, UserPermission

        keys = [key for key, _ in entries]
        permissions = {
            p.key: p for p in self.session.query(Permission).filter(Permission.key.in_(keys)).all()
        }
        existing = {
            row.permission_id: row
            for row in self.session.query(UserPermission)
            .filter(UserPermission.user_id == user_id)
            .filter(UserPermission.company_id == company_id)
            .all()
        }
        now = utcnow()
        applied = []
        for key, is_granted in entries:
            permission = permissions.get(key)
            if permission is None:
                continue
            row = existing.get(permission.id)
            if row is None:
                row = UserPermission(user_id=user_id, permission_id=permission.id, company_id=company_id)
                self.session.add(row)
                existing[permission.id] = row
            row.is_granted = bool(is_granted)
            row.granted_by = granted_by
            row.granted_at = now
            row.expires_at = expires_at
            applied.append((row, key))
        self.session.commit()
        return [self._grant(row, key) for row, key in applied]

    @staticmethod
    def _template(row) -> Optional[PermissionTemplate]:
        if row is None:
            return None
        return PermissionTemplate(
            id=row.id,
            name=row.name,
            display_name=row.display_name,
            permission_keys=_key_tuple(row.permission_keys),
            target_role=row.target_role,
            description=row.description,
            is_system_template=bool(row.is_system_template),
        )

    @_guarded
    def list_templates(self) -> List[PermissionTemplate]:
        from expensehub.models import PermissionTemplate as PermissionTemplateRow

        rows = self.select_rows(PermissionTemplateRow, order_by=(PermissionTemplateRow.display_name,))
        return [self._template(row) for row in rows]

    @_guarded
    def get_template(self, template_id=None, *, name: Optional[str] = None) -> Optional[PermissionTemplate]:
        from expensehub.models import PermissionTemplate as PermissionTemplateRow

        if template_id is not None:
            return self._template(self.session.get(PermissionTemplateRow, template_id))
        if name is not None:
            return self._template(self.select_one(PermissionTemplateRow, name=name))
        return None

    @_guarded
    def create_template(self, name: str, display_name: str, permission_keys: Sequence[str],
                        target_role: str = "user", description: Optional[str] = None,
                        created_by=None) -> PermissionTemplate:
        from expensehub.models import PermissionTemplate as PermissionTemplateRow

        row = PermissionTemplateRow(
            name=name,
            display_name=display_name,
            description=description,
            target_role=target_role,
            permission_keys=list(permission_keys),
            created_by=created_by,
        )
        self.session.add(row)
        self.session.commit()
        return self._template(row)
