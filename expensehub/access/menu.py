# -*- coding: utf-8 -*-
"""
Menu composition.

The static tree is reordered (top level only) by the user's saved preferences,
annotated with lock/hidden flags, and then pruned twice from the same annotated
tree: once for display, where hidden unlocked items disappear, and once for
editing, where they stay so the user can re-enable them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from expensehub.access.cache import AccessCache
from expensehub.access.errors import StoreUnavailableError
from expensehub.access.modules import ModuleAccessResolver, company_enables
from expensehub.access.permissions import PermissionResolver
from expensehub.access.preferences import PreferenceStore
from expensehub.access.types import (
    AccessSnapshot,
    CompanyModuleSetting,
    MenuComposition,
    MenuItem,
    MenuItemPreference,
    ResolvedMenuItem,
    SystemModule,
    UserContext,
    UserModuleOverride,
)
from expensehub.utils.roles import is_super_admin

logger = logging.getLogger(__name__)

PREFERENCES_UNAVAILABLE = "Menu preferences are temporarily unavailable; showing the default order."
MENU_MODULES_UNAVAILABLE = "Module data is temporarily unavailable; module features are hidden."
PERMISSIONS_UNAVAILABLE = "Permission data is temporarily unavailable; some items are hidden."


@dataclass
class MenuFilterContext:
    """Everything ``filter_items`` needs, read from one snapshot."""

    role: Optional[str]
    company_id: Optional[int]
    modules: Dict[str, SystemModule] = field(default_factory=dict)
    settings: Dict[int, CompanyModuleSetting] = field(default_factory=dict)
    overrides: Dict[int, UserModuleOverride] = field(default_factory=dict)
    modules_unavailable: bool = False
    has_any_permission: Callable[[Sequence[str]], bool] = lambda keys: False

    @classmethod
    def from_snapshot(cls, profile: UserContext, snapshot: AccessSnapshot,
                      has_any_permission: Callable[[Sequence[str]], bool]) -> "MenuFilterContext":
        return cls(
            role=profile.role,
            company_id=profile.company_id,
            modules={m.key: m for m in snapshot.system_modules},
            settings={s.module_id: s for s in snapshot.company_settings
                      if s.company_id == profile.company_id},
            overrides={o.module_id: o for o in snapshot.user_overrides
                       if o.user_id == profile.user_id and o.company_id == profile.company_id},
            modules_unavailable=snapshot.modules_unavailable,
            has_any_permission=has_any_permission,
        )


def reorder_top_level(tree: Sequence[MenuItem], preferences: Iterable[MenuItemPreference]) -> List[MenuItem]:
    by_id = {item.id: item for item in tree}
    ordered: List[MenuItem] = []
    placed = set()
    for pref in preferences:
        if pref.id in by_id and pref.id not in placed:
            ordered.append(by_id[pref.id])
            placed.add(pref.id)
    ordered.extend(item for item in tree if item.id not in placed)
    return ordered


def annotate(items: Sequence[MenuItem], modules: Dict[str, SystemModule],
             settings: Dict[int, CompanyModuleSetting],
             hidden: Dict[str, bool]) -> List[ResolvedMenuItem]:
    annotated = []
    for item in items:
        module = modules.get(item.module) if item.module else None
        locked = item.locked
        if module is not None:
            setting = settings.get(module.id)
            locked = locked or module.type == "core" or bool(setting and setting.is_locked_by_system)
        children = annotate(item.children, modules, settings, hidden)
        annotated.append(
            ResolvedMenuItem(
                id=item.id,
                label=item.label,
                path=item.path,
                icon=item.icon,
                module=item.module,
                required_roles=item.required_roles,
                required_permissions=item.required_permissions,
                company_required=item.company_required,
                is_hidden=hidden.get(item.id, False),
                is_locked=locked,
                children=children,
                has_children=bool(item.children),
            )
        )
    return annotated


def _is_visible(item: ResolvedMenuItem, ctx: MenuFilterContext, mode: str) -> bool:
    module = ctx.modules.get(item.module) if item.module else None
    privileged = is_super_admin(ctx.role)

    if item.module and module is None and ctx.modules_unavailable:
        # cannot tell whether the bound module is enabled
        if not privileged and ctx.company_id is not None:
            return False

    if module is not None:
        if not module.is_active:
            return False
        if item.path and ctx.company_id is not None and not privileged:
            if not company_enables(module, ctx.settings.get(module.id)):
                return False
        override = ctx.overrides.get(module.id)
        if override is not None and not override.is_enabled:
            return False
        if not module.allows_role(ctx.role):
            return False

    if mode == "display" and item.is_hidden and not item.is_locked:
        return False
    if item.company_required and ctx.company_id is None:
        return False
    if item.required_permissions and not ctx.has_any_permission(item.required_permissions):
        return False
    if item.required_roles and ctx.role not in item.required_roles:
        return False
    return True


def filter_items(items: Sequence[ResolvedMenuItem], ctx: MenuFilterContext,
                 mode: str = "display") -> List[ResolvedMenuItem]:
    """Prune ``items`` recursively; the input tree is left untouched."""
    kept = []
    for item in items:
        if not _is_visible(item, ctx, mode):
            continue
        if item.has_children:
            children = filter_items(item.children, ctx, mode)
            if not children:
                continue
            kept.append(replace(item, children=children))
        else:
            kept.append(replace(item, children=[]))
    return kept


class MenuComposer:
    def __init__(self, store, cache: AccessCache, modules: ModuleAccessResolver,
                 permissions: PermissionResolver, preferences: PreferenceStore):
        self.store = store
        self.cache = cache
        self.modules = modules
        self.permissions = permissions
        self.preferences = preferences

    def load_snapshot(self, profile: UserContext) -> AccessSnapshot:
        """
        Read catalog, company settings, overrides and preferences together.

        A degraded snapshot is returned but never cached, so the next call
        retries every source.
        """
        key = ("snapshot", profile.user_id, profile.company_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        warnings = []
        modules_unavailable = False
        try:
            catalog = tuple(self.modules.catalog())
            settings = tuple(self.store.list_company_settings(profile.company_id))
            overrides = tuple(self.store.list_user_overrides(profile.user_id, profile.company_id))
        except StoreUnavailableError as exc:
            logger.warning("Menu module data for user %s unavailable: %s", profile.user_id, exc)
            catalog, settings, overrides = (), (), ()
            modules_unavailable = True
            warnings.append(MENU_MODULES_UNAVAILABLE)

        try:
            preferences = tuple(self.preferences.load(profile.user_id))
        except StoreUnavailableError as exc:
            logger.warning("Menu preferences for user %s unavailable: %s", profile.user_id, exc)
            preferences = ()
            warnings.append(PREFERENCES_UNAVAILABLE)

        snapshot = AccessSnapshot(
            system_modules=catalog,
            company_settings=settings,
            user_overrides=overrides,
            preferences=preferences,
            modules_unavailable=modules_unavailable,
            warnings=tuple(warnings),
        )
        if not warnings:
            self.cache.set(key, snapshot)
        return snapshot

    def compose(self, tree: Sequence[MenuItem], profile: UserContext, mode: str = "both") -> MenuComposition:
        snapshot = self.load_snapshot(profile)
        warnings = list(snapshot.warnings)
        answers: Dict[str, bool] = {}

        def has_any_permission(keys: Sequence[str]) -> bool:
            pending = [key for key in keys if key not in answers]
            for check in self.permissions.check_multiple_permissions(
                profile.user_id, pending, profile.company_id
            ):
                answers[check.permission_key] = check.granted
                if check.source == "error" and PERMISSIONS_UNAVAILABLE not in warnings:
                    warnings.append(PERMISSIONS_UNAVAILABLE)
            return any(answers.get(key, False) for key in keys)

        ctx = MenuFilterContext.from_snapshot(profile, snapshot, has_any_permission)
        hidden = {pref.id: pref.is_hidden for pref in snapshot.preferences}
        annotated = annotate(reorder_top_level(tree, snapshot.preferences), ctx.modules, ctx.settings, hidden)

        composition = MenuComposition(warnings=warnings)
        if mode in ("display", "both"):
            composition.display = filter_items(annotated, ctx, "display")
        if mode in ("editable", "both"):
            composition.editable = filter_items(annotated, ctx, "editable")
        return composition
