# -*- coding: utf-8 -*-
"""
Facade wiring the store, cache and resolvers together.

One instance lives in ``app.extensions["access"]``; views, guards and the
seeding code go through it instead of touching the resolvers directly.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Sequence

from expensehub.access.cache import AccessCache
from expensehub.access.menu import MenuComposer
from expensehub.access.modules import ModuleAccessResolver
from expensehub.access.permissions import PermissionResolver
from expensehub.access.preferences import PreferenceStore
from expensehub.access.profiles import ProfileLookup
from expensehub.access.store import SqlAccessStore
from expensehub.access.types import (
    MENU_MODES,
    BulkGrantResult,
    MenuComposition,
    MenuItem,
    ModuleResolution,
    PermissionCheck,
    PermissionListing,
    PermissionTemplate,
    UserContext,
)
from expensehub.utils.roles import is_super_admin

logger = logging.getLogger(__name__)


class AccessService:
    def __init__(self, store, cache: Optional[AccessCache] = None, menu_tree: Optional[Sequence[MenuItem]] = None):
        self.store = store
        self.cache = cache or AccessCache()
        self.profiles = ProfileLookup(store, self.cache)
        self.permissions = PermissionResolver(store, self.cache, self.profiles)
        self.modules = ModuleAccessResolver(store, self.cache, self.profiles)
        self.preferences = PreferenceStore(store, self.cache, self.profiles)
        self.menu = MenuComposer(store, self.cache, self.modules, self.permissions, self.preferences)
        self.menu_tree = tuple(menu_tree or ())

    @classmethod
    def from_app(cls, app, session) -> "AccessService":
        from expensehub.navigation import MENU_DEFINITIONS

        cache = AccessCache(
            ttl_seconds=app.config.get("ACCESS_CACHE_TTL_SECONDS", 300.0),
            max_entries=app.config.get("ACCESS_CACHE_MAX_ENTRIES", 4096),
        )
        return cls(SqlAccessStore(session), cache=cache, menu_tree=MENU_DEFINITIONS)

    # ───────── Permissions ───────── #
    def check_permission(self, user_id, permission_key: str, company_id=None, *,
                         requester: Optional[UserContext] = None) -> PermissionCheck:
        return self.permissions.check_permission(user_id, permission_key, company_id, requester=requester)

    def check_multiple_permissions(self, user_id, permission_keys: Iterable[str], company_id=None, *,
                                   requester: Optional[UserContext] = None) -> List[PermissionCheck]:
        return self.permissions.check_multiple_permissions(
            user_id, permission_keys, company_id, requester=requester
        )

    def has_any(self, user_id, permission_keys: Iterable[str], company_id=None) -> bool:
        return self.permissions.has_any(user_id, permission_keys, company_id)

    def has_all(self, user_id, permission_keys: Iterable[str], company_id=None) -> bool:
        return self.permissions.has_all(user_id, permission_keys, company_id)

    def effective_permissions(self, user_id, company_id=None, *,
                              requester: Optional[UserContext] = None) -> PermissionListing:
        return self.permissions.effective_permissions(user_id, company_id, requester=requester)

    def grant_permission(self, actor: UserContext, user_id, permission_key: str, is_granted: bool,
                         expires_at=None):
        return self.permissions.grant_permission(actor, user_id, permission_key, is_granted, expires_at)

    def clear_permission(self, actor: UserContext, user_id, permission_key: str) -> bool:
        return self.permissions.clear_permission(actor, user_id, permission_key)

    def bulk_grant(self, actor: UserContext, user_id, entries, expires_at=None) -> BulkGrantResult:
        return self.permissions.bulk_grant(actor, user_id, entries, expires_at)

    def list_templates(self) -> List[PermissionTemplate]:
        return self.permissions.list_templates()

    def create_template(self, actor: UserContext, name: str, display_name: str, permission_keys,
                        target_role: str = "user", description: Optional[str] = None) -> PermissionTemplate:
        return self.permissions.create_template(
            actor, name, display_name, permission_keys, target_role=target_role, description=description
        )

    def apply_template(self, actor: UserContext, user_id, template_id) -> BulkGrantResult:
        return self.permissions.apply_template(actor, user_id, template_id)

    # ───────── Modules ───────── #
    def get_user_modules(self, user_id, **options) -> ModuleResolution:
        return self.modules.get_user_modules(user_id, **options)

    def check_company_module_access(self, company_id, module_name: str) -> bool:
        return self.modules.check_company_module_access(company_id, module_name)

    def has_module(self, context: UserContext, module_key: str) -> bool:
        """Whether ``context`` can use the module identified by ``module_key``."""
        resolution = self.modules.get_user_modules(context.user_id)
        return any(module.key == module_key for module in resolution.modules)

    def set_company_module(self, actor: UserContext, company_id, module_id, is_enabled: bool,
                           locked: Optional[bool] = None):
        return self.modules.set_company_module(actor, company_id, module_id, is_enabled, locked)

    def set_user_module(self, actor: UserContext, user_id, module_id, is_enabled: bool):
        return self.modules.set_user_module(actor, user_id, module_id, is_enabled)

    def clear_user_module(self, actor: UserContext, user_id, module_id) -> bool:
        return self.modules.clear_user_module(actor, user_id, module_id)

    # ───────── Menu ───────── #
    def compose_menu(self, context: UserContext, mode: str = "both",
                     tree: Optional[Sequence[MenuItem]] = None) -> MenuComposition:
        if mode not in MENU_MODES and mode != "both":
            raise ValueError("mode must be one of display, editable, both")
        return self.menu.compose(tree if tree is not None else self.menu_tree, context, mode)

    def save_preferences(self, user_id, preferences: Iterable[Any], actor: Optional[UserContext] = None):
        return self.preferences.save(user_id, preferences, actor=actor)

    # ───────── Audit / cache ───────── #
    def list_audit(self, actor: UserContext, user_id=None, limit: int = 50) -> List[dict]:
        company_id = None if is_super_admin(actor.role) else actor.company_id
        return self.store.list_audit(company_id=company_id, user_id=user_id, limit=limit)

    def invalidate(self, user_id=None, company_id=None) -> None:
        if user_id is None and company_id is None:
            self.cache.clear()
            logger.info("Access cache cleared")
            return
        if user_id is not None:
            self.cache.invalidate_user(user_id)
        if company_id is not None:
            self.cache.invalidate_company(company_id)
