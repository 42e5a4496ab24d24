# -*- coding: utf-8 -*-
"""
Value objects passed between the data-access boundary and the resolvers.

Rows coming out of the store are always converted into these frozen
dataclasses, so resolver code never sees ORM instances or join results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

MODULE_TYPES = ("core", "super", "add-on")
MENU_MODES = ("display", "editable")


@dataclass(frozen=True)
class UserContext:
    """Authenticated identity the engine resolves against."""

    user_id: int
    role: str
    company_id: Optional[int] = None
    actor_id: Optional[int] = None

    @property
    def is_impersonated(self) -> bool:
        return self.actor_id is not None and self.actor_id != self.user_id


@dataclass(frozen=True)
class SystemModule:
    id: int
    key: str
    name: str
    type: str = "add-on"
    category: str = "general"
    allowed_roles: FrozenSet[str] = frozenset()
    is_core_required: bool = False
    is_active: bool = True
    requires_modules: Tuple[str, ...] = ()

    def allows_role(self, role: Optional[str]) -> bool:
        # empty means every role
        if not self.allowed_roles:
            return True
        return bool(role) and role in self.allowed_roles


@dataclass(frozen=True)
class CompanyModuleSetting:
    company_id: int
    module_id: int
    is_enabled: bool = False
    is_locked_by_system: bool = False


@dataclass(frozen=True)
class UserModuleOverride:
    user_id: int
    company_id: Optional[int]
    module_id: int
    is_enabled: bool


@dataclass(frozen=True)
class PermissionGrant:
    user_id: int
    permission_key: str
    company_id: Optional[int]
    is_granted: bool
    granted_by: Optional[int] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass(frozen=True)
class RolePermissionDefault:
    role: str
    permission_key: str
    module_id: Optional[int] = None
    is_default: bool = False


@dataclass(frozen=True)
class MenuItemPreference:
    id: str
    is_hidden: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "isHidden": self.is_hidden}


@dataclass(frozen=True)
class MenuItem:
    """Static, declarative navigation node."""

    id: str
    label: Any
    path: Optional[str] = None
    icon: Optional[str] = None
    module: Optional[str] = None
    required_roles: Tuple[str, ...] = ()
    required_permissions: Tuple[str, ...] = ()
    company_required: bool = False
    locked: bool = False
    children: Tuple["MenuItem", ...] = ()


@dataclass
class ResolvedMenuItem:
    """A menu node after lock/hidden annotation and filtering."""

    id: str
    label: Any
    path: Optional[str] = None
    icon: Optional[str] = None
    module: Optional[str] = None
    required_roles: Tuple[str, ...] = ()
    required_permissions: Tuple[str, ...] = ()
    company_required: bool = False
    is_hidden: bool = False
    is_locked: bool = False
    children: List["ResolvedMenuItem"] = field(default_factory=list)
    has_children: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "label": str(self.label),
            "path": self.path,
            "icon": self.icon,
            "isHidden": self.is_hidden,
            "isLocked": self.is_locked,
        }
        if self.has_children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


@dataclass(frozen=True)
class PermissionCheck:
    permission_key: str
    granted: bool
    source: str = "none"
    expires_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "permission_key": self.permission_key,
            "granted": self.granted,
            "source": self.source,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class ModuleAccess:
    id: int
    key: str
    name: str
    type: str
    category: str
    allowed_roles: FrozenSet[str]
    is_enabled: bool
    has_access: bool
    is_locked: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "name": self.name,
            "type": self.type,
            "category": self.category,
            "allowed_roles": sorted(self.allowed_roles) or None,
            "is_enabled": self.is_enabled,
            "has_access": self.has_access,
            "is_locked": self.is_locked,
        }


@dataclass
class ModuleResolution:
    modules: List[ModuleAccess] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AccessSnapshot:
    """Module, company, override and preference inputs read together."""

    system_modules: Tuple[SystemModule, ...] = ()
    company_settings: Tuple[CompanyModuleSetting, ...] = ()
    user_overrides: Tuple[UserModuleOverride, ...] = ()
    preferences: Tuple[MenuItemPreference, ...] = ()
    modules_unavailable: bool = False
    warnings: Tuple[str, ...] = ()


@dataclass
class MenuComposition:
    display: List[ResolvedMenuItem] = field(default_factory=list)
    editable: List[ResolvedMenuItem] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "menu": [item.to_dict() for item in self.display],
            "editable": [item.to_dict() for item in self.editable],
            "warnings": list(self.warnings),
        }


@dataclass
class PermissionListing:
    permissions: List[PermissionCheck] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "permissions": [p.to_dict() for p in self.permissions],
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class PermissionTemplate:
    """Named bundle of permission keys granted together."""

    id: int
    name: str
    display_name: str
    permission_keys: Tuple[str, ...] = ()
    target_role: str = "user"
    description: Optional[str] = None
    is_system_template: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "target_role": self.target_role,
            "permission_keys": list(self.permission_keys),
            "is_system_template": self.is_system_template,
        }


@dataclass
class BulkGrantResult:
    user_id: int
    applied: List[PermissionGrant] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "results": [
                {"permission_key": g.permission_key, "is_granted": g.is_granted}
                for g in self.applied
            ],
            "errors": list(self.errors),
            "summary": {
                "total_requested": len(self.applied) + len(self.errors),
                "successful": len(self.applied),
                "failed": len(self.errors),
            },
        }
