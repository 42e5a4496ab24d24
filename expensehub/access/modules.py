# -*- coding: utf-8 -*-
"""
Module access resolution.

Per module, in precedence order: role eligibility (hard stop), company
enablement (a system lock or a core-required module counts as enabled), then
the per-user override, which can only narrow what the company allows.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from expensehub.access.audit import write_audit
from expensehub.access.authz import ensure_can_manage_company, ensure_can_manage_user, ensure_can_view
from expensehub.access.cache import AccessCache
from expensehub.access.errors import (
    AuthorizationError,
    DependencyError,
    NotFoundError,
    StoreUnavailableError,
)
from expensehub.access.profiles import ProfileLookup
from expensehub.access.types import (
    CompanyModuleSetting,
    ModuleAccess,
    ModuleResolution,
    SystemModule,
    UserContext,
    UserModuleOverride,
)
from expensehub.utils.roles import is_super_admin

logger = logging.getLogger(__name__)

MODULES_UNAVAILABLE = "Module data is temporarily unavailable; modules are hidden."


def company_enables(module: SystemModule, setting: Optional[CompanyModuleSetting]) -> bool:
    if module.is_core_required:
        return True
    if setting is None:
        return False
    return setting.is_enabled or setting.is_locked_by_system


def is_locked(module: SystemModule, setting: Optional[CompanyModuleSetting]) -> bool:
    return module.type == "core" or bool(setting and setting.is_locked_by_system)


def resolve_modules(profile: UserContext, modules: Iterable[SystemModule],
                    settings: Iterable[CompanyModuleSetting],
                    overrides: Iterable[UserModuleOverride]) -> List[ModuleAccess]:
    """Evaluate every active module for ``profile``; nothing is filtered out here."""
    by_module = {s.module_id: s for s in settings if s.company_id == profile.company_id}
    user_overrides = {
        o.module_id: o for o in overrides
        if o.user_id == profile.user_id and o.company_id == profile.company_id
    }
    super_admin = is_super_admin(profile.role)

    resolved = []
    for module in modules:
        if not module.is_active:
            continue
        setting = by_module.get(module.id)
        eligible = module.allows_role(profile.role)
        if super_admin:
            enabled = True
        else:
            enabled = company_enables(module, setting)
            override = user_overrides.get(module.id)
            if override is not None:
                enabled = enabled and override.is_enabled
        resolved.append(
            ModuleAccess(
                id=module.id,
                key=module.key,
                name=module.name,
                type=module.type,
                category=module.category,
                allowed_roles=module.allowed_roles,
                is_enabled=enabled,
                has_access=eligible and enabled,
                is_locked=is_locked(module, setting),
            )
        )
    resolved.sort(key=lambda m: (m.type, m.name))
    return resolved


def filter_modules(modules: Sequence[ModuleAccess], profile: UserContext, *,
                   include_disabled: bool = False, module_type: Optional[str] = None,
                   category: Optional[str] = None) -> List[ModuleAccess]:
    selected = []
    for module in modules:
        # role eligibility is never relaxed, not even by include_disabled
        if module.allowed_roles and profile.role not in module.allowed_roles:
            continue
        if not include_disabled and not (module.has_access and module.is_enabled):
            continue
        if module_type and module.type != module_type:
            continue
        if category and module.category != category:
            continue
        selected.append(module)
    return selected


def validate_module_dependencies(module: SystemModule, enabled_keys: Iterable[str]) -> List[str]:
    """Return the keys of required modules that are not enabled."""
    enabled = set(enabled_keys)
    return [key for key in module.requires_modules if key not in enabled]


class ModuleAccessResolver:
    def __init__(self, store, cache: AccessCache, profiles: Optional[ProfileLookup] = None):
        self.store = store
        self.cache = cache
        self.profiles = profiles or ProfileLookup(store, cache)

    def catalog(self) -> List[SystemModule]:
        return self.cache.get_or_load(("catalog",), self.store.list_system_modules)

    def module_index(self) -> Dict[str, SystemModule]:
        return {module.key: module for module in self.catalog()}

    def resolve(self, profile: UserContext) -> List[ModuleAccess]:
        """Unfiltered module resolution for ``profile``, cached per user and company."""

        def load():
            return resolve_modules(
                profile,
                self.catalog(),
                self.store.list_company_settings(profile.company_id),
                self.store.list_user_overrides(profile.user_id, profile.company_id),
            )

        return self.cache.get_or_load(("modules", profile.user_id, profile.company_id), load)

    def get_user_modules(self, user_id, *, include_disabled: bool = False,
                         module_type: Optional[str] = None, category: Optional[str] = None,
                         requester: Optional[UserContext] = None) -> ModuleResolution:
        try:
            profile = self.profiles.get(user_id)
            if profile is None:
                return ModuleResolution()
            if requester is not None:
                ensure_can_view(requester, profile)
            modules = self.resolve(profile)
        except StoreUnavailableError as exc:
            logger.warning("Module resolution for user %s degraded: %s", user_id, exc)
            return ModuleResolution(warnings=[MODULES_UNAVAILABLE])

        return ModuleResolution(
            modules=filter_modules(
                modules, profile,
                include_disabled=include_disabled, module_type=module_type, category=category,
            )
        )

    def check_company_module_access(self, company_id, module_name: str) -> bool:
        try:
            module = self.store.get_system_module(name=module_name) or \
                self.store.get_system_module(key=module_name)
            if module is None or not module.is_active:
                return False
            settings = self.store.list_company_settings(company_id)
        except StoreUnavailableError as exc:
            logger.warning("Company %s module check for %s degraded to deny: %s", company_id, module_name, exc)
            return False
        setting = next((s for s in settings if s.module_id == module.id), None)
        return company_enables(module, setting)

    def enabled_keys_for_company(self, company_id) -> List[str]:
        settings = {s.module_id: s for s in self.store.list_company_settings(company_id)}
        return [
            module.key for module in self.catalog()
            if module.is_active and company_enables(module, settings.get(module.id))
        ]

    # ───────── Mutations ───────── #
    def _require_module(self, module_id) -> SystemModule:
        module = self.store.get_system_module(module_id)
        if module is None:
            raise NotFoundError("Module not found.", module_id=module_id)
        return module

    def set_company_module(self, actor: UserContext, company_id, module_id, is_enabled: bool,
                           locked: Optional[bool] = None) -> CompanyModuleSetting:
        ensure_can_manage_company(actor, company_id)
        module = self._require_module(module_id)
        current = next(
            (s for s in self.store.list_company_settings(company_id) if s.module_id == module.id), None
        )

        if not is_super_admin(actor.role):
            if locked is not None:
                raise AuthorizationError("Only system administrators can lock modules.",
                                         module_id=module.id)
            if current is not None and current.is_locked_by_system:
                raise AuthorizationError("This module is locked by the system.", module_id=module.id)
            if module.is_core_required and not is_enabled:
                raise AuthorizationError("Core modules cannot be disabled.", module_id=module.id)

        if is_enabled:
            missing = validate_module_dependencies(module, self.enabled_keys_for_company(company_id))
            if missing:
                raise DependencyError(
                    "Enable the required modules first: %s." % ", ".join(missing),
                    module_id=module.id,
                    missing=missing,
                )

        setting = self.store.upsert_company_setting(
            company_id, module.id, is_enabled=is_enabled, locked=locked,
            enabled_by=actor.actor_id or actor.user_id,
        )
        self.cache.invalidate_company(company_id)
        write_audit(
            self.store,
            "module_enabled" if is_enabled else "module_disabled",
            actor_id=actor.actor_id or actor.user_id,
            company_id=company_id,
            subject=module.key,
            details={"scope": "company", "locked": setting.is_locked_by_system},
        )
        logger.info(
            "Module %s %s for company %s by %s (locked=%s)",
            module.key, "enabled" if is_enabled else "disabled", company_id, actor.user_id,
            setting.is_locked_by_system,
        )
        return setting

    def set_user_module(self, actor: UserContext, user_id, module_id,
                        is_enabled: bool) -> UserModuleOverride:
        target = self.profiles.require(user_id)
        ensure_can_manage_user(actor, target)
        module = self._require_module(module_id)
        override = self.store.upsert_user_override(
            target.user_id, target.company_id, module.id, is_enabled,
            granted_by=actor.actor_id or actor.user_id,
        )
        self.cache.invalidate_user(target.user_id)
        write_audit(
            self.store,
            "module_enabled" if is_enabled else "module_disabled",
            actor_id=actor.actor_id or actor.user_id,
            user_id=target.user_id,
            company_id=target.company_id,
            subject=module.key,
            details={"scope": "user"},
        )
        logger.info(
            "Module %s override set to %s for user %s by %s",
            module.key, is_enabled, target.user_id, actor.user_id,
        )
        return override

    def clear_user_module(self, actor: UserContext, user_id, module_id) -> bool:
        target = self.profiles.require(user_id)
        ensure_can_manage_user(actor, target)
        module = self._require_module(module_id)
        removed = self.store.delete_user_override(target.user_id, target.company_id, module.id)
        self.cache.invalidate_user(target.user_id)
        if removed:
            write_audit(
                self.store,
                "module_cleared",
                actor_id=actor.actor_id or actor.user_id,
                user_id=target.user_id,
                company_id=target.company_id,
                subject=module.key,
                details={"scope": "user"},
            )
            logger.info("Module %s override cleared for user %s", module.key, target.user_id)
        return removed
