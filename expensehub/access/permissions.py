# -*- coding: utf-8 -*-
"""
Permission resolution.

A single check walks, in order: an unexpired explicit deny, an unexpired
explicit grant, the role default, and finally fails closed. Super-admins hold
every permission at the role-default layer, so an explicit deny still applies
to them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from expensehub.access.audit import write_audit
from expensehub.access.authz import ensure_can_manage_user, ensure_can_view
from expensehub.access.cache import AccessCache
from expensehub.access.errors import (
    AuthorizationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from expensehub.access.profiles import ProfileLookup
from expensehub.access.types import (
    BulkGrantResult,
    PermissionCheck,
    PermissionGrant,
    PermissionListing,
    PermissionTemplate,
    UserContext,
)
from expensehub.utils.dates import utcnow
from expensehub.utils.roles import AVAILABLE_ROLES, is_company_admin, is_super_admin, normalize_role

logger = logging.getLogger(__name__)


PERMISSIONS_UNAVAILABLE = "Permission data is temporarily unavailable."


class PermissionResolver:
    def __init__(self, store, cache: AccessCache, profiles: Optional[ProfileLookup] = None,
                 clock=utcnow):
        self.store = store
        self.cache = cache
        self.profiles = profiles or ProfileLookup(store, cache)
        self.clock = clock

    # ───────── Checks ───────── #
    def check_permission(self, user_id, permission_key: str, company_id=None, *,
                         requester: Optional[UserContext] = None) -> PermissionCheck:
        try:
            profile = self.profiles.get(user_id)
        except StoreUnavailableError as exc:
            return self._errored(permission_key, exc)
        if profile is None:
            return PermissionCheck(permission_key=permission_key, granted=False, source="none")
        if requester is not None:
            ensure_can_view(requester, profile)

        scope = company_id if company_id is not None else profile.company_id
        cache_key = ("perm", profile.user_id, permission_key, scope)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            result = self._resolve(profile, permission_key, scope)
        except StoreUnavailableError as exc:
            return self._errored(permission_key, exc)

        self.cache.set(cache_key, result, ttl=self._ttl_for(result))
        return result

    def _resolve(self, profile: UserContext, permission_key: str, company_id) -> PermissionCheck:
        now = self.clock()
        grant = self.store.find_grant(profile.user_id, permission_key, company_id)
        if grant is not None and not grant.is_expired(now):
            return PermissionCheck(
                permission_key=permission_key,
                granted=grant.is_granted,
                source="user",
                expires_at=grant.expires_at,
            )

        if is_super_admin(profile.role):
            return PermissionCheck(permission_key=permission_key, granted=True, source="role")

        default = self.store.find_role_default(profile.role, permission_key)
        if default is not None:
            return PermissionCheck(permission_key=permission_key, granted=default.is_default, source="role")

        return PermissionCheck(permission_key=permission_key, granted=False, source="none")

    def _ttl_for(self, result: PermissionCheck) -> Optional[float]:
        # an expiring grant must not outlive its expiry in the cache
        if result.expires_at is None:
            return None
        remaining = (result.expires_at - self.clock()).total_seconds()
        return max(0.0, min(remaining, self.cache.ttl_seconds))

    @staticmethod
    def _errored(permission_key: str, exc: Exception) -> PermissionCheck:
        logger.warning("Permission check for %s degraded to deny: %s", permission_key, exc)
        return PermissionCheck(
            permission_key=permission_key,
            granted=False,
            source="error",
            error=PERMISSIONS_UNAVAILABLE,
        )

    def check_multiple_permissions(self, user_id, permission_keys: Iterable[str], company_id=None, *,
                                   requester: Optional[UserContext] = None) -> List[PermissionCheck]:
        results = []
        for key in permission_keys:
            try:
                results.append(self.check_permission(user_id, key, company_id, requester=requester))
            except StoreUnavailableError as exc:
                results.append(self._errored(key, exc))
        return results

    def has_any(self, user_id, permission_keys: Iterable[str], company_id=None) -> bool:
        checks = self.check_multiple_permissions(user_id, permission_keys, company_id)
        return any(check.granted for check in checks)

    def has_all(self, user_id, permission_keys: Iterable[str], company_id=None) -> bool:
        checks = self.check_multiple_permissions(user_id, permission_keys, company_id)
        return all(check.granted for check in checks)

    def effective_permissions(self, user_id, company_id=None, *,
                              requester: Optional[UserContext] = None) -> PermissionListing:
        """Every permission the user currently holds, with where it came from.

        When the store cannot be read the listing comes back empty with a
        warning instead of raising.
        """
        try:
            profile = self.profiles.get(user_id)
        except StoreUnavailableError as exc:
            return self._unavailable_listing(user_id, exc)
        if profile is None:
            return PermissionListing()
        if requester is not None:
            ensure_can_view(requester, profile)
        scope = company_id if company_id is not None else profile.company_id

        try:
            resolved = self._effective(profile, scope)
        except StoreUnavailableError as exc:
            return self._unavailable_listing(user_id, exc)
        return PermissionListing(
            permissions=[resolved[key] for key in sorted(resolved) if resolved[key].granted],
        )

    def _effective(self, profile: UserContext, company_id) -> Dict[str, PermissionCheck]:
        now = self.clock()
        resolved = {}
        if is_super_admin(profile.role):
            for key in self.store.list_permission_keys():
                resolved[key] = PermissionCheck(permission_key=key, granted=True, source="role")
        else:
            for default in self.store.list_role_defaults(profile.role):
                resolved[default.permission_key] = PermissionCheck(
                    permission_key=default.permission_key, granted=default.is_default, source="role"
                )
        for grant in self.store.list_grants(profile.user_id, company_id):
            if grant.is_expired(now):
                continue
            resolved[grant.permission_key] = PermissionCheck(
                permission_key=grant.permission_key,
                granted=grant.is_granted,
                source="user",
                expires_at=grant.expires_at,
            )
        return resolved

    @staticmethod
    def _unavailable_listing(user_id, exc: Exception) -> PermissionListing:
        logger.warning("Effective permissions for user %s degraded to empty: %s", user_id, exc)
        return PermissionListing(warnings=[PERMISSIONS_UNAVAILABLE])

    def _missing_requirements(self, target: UserContext, required: Sequence[str],
                              granted=(), denied=()) -> List[str]:
        # keys in the same batch count as held (granted) or not held (denied)
        missing = []
        for key in required:
            if key in denied:
                missing.append(key)
            elif key in granted:
                continue
            elif not self.check_permission(target.user_id, key, target.company_id).granted:
                missing.append(key)
        return missing

    # ───────── Mutations ───────── #
    def grant_permission(self, actor: UserContext, user_id, permission_key: str, is_granted: bool,
                         expires_at: Optional[datetime] = None) -> PermissionGrant:
        target = self.profiles.require(user_id)
        ensure_can_manage_user(actor, target)
        if is_granted:
            required = self.store.permission_requirements([permission_key]).get(permission_key, ())
            missing = self._missing_requirements(target, required)
            if missing:
                raise DependencyError(
                    "Grant the required permissions first: %s" % ", ".join(missing),
                    permission_key=permission_key,
                    missing=missing,
                )
        grant = self.store.upsert_grant(
            target.user_id,
            permission_key,
            target.company_id,
            is_granted,
            granted_by=actor.actor_id or actor.user_id,
            expires_at=expires_at,
        )
        if grant is None:
            raise NotFoundError("Permission not found.", permission_key=permission_key)
        self.cache.invalidate_user(target.user_id)
        write_audit(
            self.store,
            "granted" if is_granted else "revoked",
            actor_id=actor.actor_id or actor.user_id,
            user_id=target.user_id,
            company_id=target.company_id,
            subject=permission_key,
            details={"expires_at": expires_at.isoformat() if expires_at else None},
        )
        logger.info(
            "Permission %s %s for user %s by %s",
            permission_key, "granted" if is_granted else "denied", target.user_id, actor.user_id,
        )
        return grant

    def clear_permission(self, actor: UserContext, user_id, permission_key: str) -> bool:
        """Drop the explicit grant/deny so the role default applies again."""
        target = self.profiles.require(user_id)
        ensure_can_manage_user(actor, target)
        if not self.store.permission_exists(permission_key):
            raise NotFoundError("Permission not found.", permission_key=permission_key)
        removed = self.store.delete_grant(target.user_id, permission_key, target.company_id)
        self.cache.invalidate_user(target.user_id)
        if removed:
            write_audit(
                self.store,
                "cleared",
                actor_id=actor.actor_id or actor.user_id,
                user_id=target.user_id,
                company_id=target.company_id,
                subject=permission_key,
            )
            logger.info("Permission %s override cleared for user %s", permission_key, target.user_id)
        return removed

    def bulk_grant(self, actor: UserContext, user_id, entries: Iterable[Tuple[str, bool]],
                   expires_at: Optional[datetime] = None, *, action: str = "bulk_granted",
                   subject: Optional[str] = None) -> BulkGrantResult:
        """Apply many grants/denies at once.

        Unknown keys and grants whose required permissions are neither held
        nor granted in the same batch are reported per key; the rest are
        written in one transaction. A later entry for the same key wins.
        """
        target = self.profiles.require(user_id)
        ensure_can_manage_user(actor, target)

        requested: Dict[str, bool] = {}
        for permission_key, is_granted in entries:
            requested[permission_key] = bool(is_granted)

        result = BulkGrantResult(user_id=target.user_id)
        known = set(self.store.list_permission_keys())
        for permission_key in [key for key in requested if key not in known]:
            del requested[permission_key]
            result.errors.append({"permission_key": permission_key, "error": "Permission not found."})

        requirements = self.store.permission_requirements(list(requested))
        while True:
            granted = {key for key, value in requested.items() if value}
            denied = {key for key, value in requested.items() if not value}
            blocked = {}
            for permission_key in sorted(granted):
                missing = self._missing_requirements(
                    target, requirements.get(permission_key, ()), granted, denied
                )
                if missing:
                    blocked[permission_key] = missing
            if not blocked:
                break
            # dropping a grant can strand others that relied on it
            for permission_key, missing in blocked.items():
                del requested[permission_key]
                result.errors.append({
                    "permission_key": permission_key,
                    "error": "Grant the required permissions first.",
                    "missing": missing,
                })

        if requested:
            result.applied = self.store.apply_grants(
                target.user_id,
                target.company_id,
                list(requested.items()),
                granted_by=actor.actor_id or actor.user_id,
                expires_at=expires_at,
            )
            self.cache.invalidate_user(target.user_id)
            write_audit(
                self.store,
                action,
                actor_id=actor.actor_id or actor.user_id,
                user_id=target.user_id,
                company_id=target.company_id,
                subject=subject,
                details={
                    "permissions": {g.permission_key: g.is_granted for g in result.applied},
                    "expires_at": expires_at.isoformat() if expires_at else None,
                },
            )
        logger.info(
            "Bulk permission change for user %s by %s: %s applied, %s rejected",
            target.user_id, actor.user_id, len(result.applied), len(result.errors),
        )
        return result

    # ───────── Templates ───────── #
    def list_templates(self) -> List[PermissionTemplate]:
        return self.store.list_templates()

    def apply_template(self, actor: UserContext, user_id, template_id) -> BulkGrantResult:
        target = self.profiles.require(user_id)
        ensure_can_manage_user(actor, target)
        template = self.store.get_template(template_id)
        if template is None:
            raise NotFoundError("Template not found.", template_id=template_id)
        return self.bulk_grant(
            actor,
            target.user_id,
            [(key, True) for key in template.permission_keys],
            action="template_applied",
            subject=template.name,
        )

    def create_template(self, actor: UserContext, name: str, display_name: str,
                        permission_keys: Iterable[str], target_role: str = "user",
                        description: Optional[str] = None) -> PermissionTemplate:
        if not (is_super_admin(actor.role) or is_company_admin(actor.role)):
            raise AuthorizationError("Not allowed to manage permission templates.", actor_id=actor.user_id)

        name = (name or "").strip()
        display_name = (display_name or "").strip() or name
        role = normalize_role(target_role)
        keys = list(dict.fromkeys(permission_keys or []))
        if not name:
            raise ValidationError("Template name is required.")
        if role not in AVAILABLE_ROLES:
            raise ValidationError("Invalid target role.", target_role=target_role)
        if not keys:
            raise ValidationError("A template needs at least one permission.")
        unknown = sorted(set(keys) - set(self.store.list_permission_keys()))
        if unknown:
            raise ValidationError("Unknown permissions.", missing_keys=unknown)
        if self.store.get_template(name=name) is not None:
            raise ConflictError("A template with this name already exists.", name=name)

        template = self.store.create_template(
            name, display_name, keys,
            target_role=role,
            description=description,
            created_by=actor.actor_id or actor.user_id,
        )
        write_audit(
            self.store,
            "template_created",
            actor_id=actor.actor_id or actor.user_id,
            company_id=actor.company_id,
            subject=name,
            details={"permission_keys": keys, "target_role": role},
        )
        logger.info("Permission template %s created by %s", name, actor.user_id)
        return template
