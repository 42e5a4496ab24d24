# -*- coding: utf-8 -*-
"""
Menu preference document per user: an ordered list of ``{id, isHidden}``.

Older records hold a bare list of ids; they are normalised on load and written
back in the current shape.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Tuple

from expensehub.access.audit import write_audit
from expensehub.access.authz import ensure_can_manage_user
from expensehub.access.cache import AccessCache
from expensehub.access.errors import StoreUnavailableError
from expensehub.access.profiles import ProfileLookup
from expensehub.access.types import MenuItemPreference, UserContext

logger = logging.getLogger(__name__)


def _coerce(entry: Any) -> Optional[MenuItemPreference]:
    if isinstance(entry, MenuItemPreference):
        return entry
    if isinstance(entry, str):
        return MenuItemPreference(id=entry) if entry.strip() else None
    if isinstance(entry, dict):
        item_id = entry.get("id")
        if not isinstance(item_id, str) or not item_id.strip():
            return None
        hidden = entry.get("isHidden", entry.get("is_hidden", False))
        return MenuItemPreference(id=item_id, is_hidden=bool(hidden))
    return None


def normalize_preferences(raw: Any) -> Tuple[List[MenuItemPreference], bool]:
    """
    Coerce a stored document into preferences.

    Returns ``(preferences, changed)`` where ``changed`` is true when the stored
    shape differed from the canonical one (legacy ids, malformed or duplicate
    entries).
    """
    if raw is None:
        return [], False
    if not isinstance(raw, (list, tuple)):
        return [], True

    seen = set()
    result = []
    changed = False
    for entry in raw:
        pref = _coerce(entry)
        if pref is None or pref.id in seen:
            changed = True
            continue
        if not isinstance(entry, dict) or "isHidden" not in entry:
            changed = True
        seen.add(pref.id)
        result.append(pref)
    return result, changed


class PreferenceStore:
    def __init__(self, store, cache: AccessCache, profiles: Optional[ProfileLookup] = None):
        self.store = store
        self.cache = cache
        self.profiles = profiles or ProfileLookup(store, cache)

    def load(self, user_id) -> List[MenuItemPreference]:
        raw = self.store.load_preferences_document(user_id)
        preferences, changed = normalize_preferences(raw)
        if changed and raw is not None:
            try:
                self.store.save_preferences_document(user_id, [p.to_dict() for p in preferences])
                logger.info("Normalised stored menu preferences for user %s", user_id)
            except StoreUnavailableError as exc:
                logger.warning("Could not rewrite menu preferences for user %s: %s", user_id, exc)
        return preferences

    def save(self, user_id, preferences: Iterable[Any],
             actor: Optional[UserContext] = None) -> List[MenuItemPreference]:
        profile = self.profiles.get(user_id)
        # cache keys carry the stored id, not whatever the caller passed
        target_id = profile.user_id if profile is not None else user_id
        if actor is not None and actor.user_id != target_id:
            ensure_can_manage_user(actor, self.profiles.require(user_id))
        normalized, _ = normalize_preferences(list(preferences))
        self.store.save_preferences_document(target_id, [p.to_dict() for p in normalized])
        self.cache.invalidate_user(target_id)

        write_audit(
            self.store,
            "preferences_saved",
            actor_id=(actor.actor_id or actor.user_id) if actor else target_id,
            user_id=target_id,
            company_id=profile.company_id if profile else None,
            details={"items": len(normalized)},
        )
        logger.info("Saved %d menu preferences for user %s", len(normalized), target_id)
        return normalized
