# -*- coding: utf-8 -*-
"""
Manage blueprint routes (permission grants and templates, module switches, audit trail).
"""

from datetime import datetime

from flask import Blueprint, current_app, jsonify, request

from expensehub import csrf
from expensehub.access.authz import ensure_can_view
from expensehub.access.errors import AccessError
from expensehub.access.identity import current_context
from expensehub.utils.roles import ROLE_ADMIN, ROLE_SUPER_ADMIN, role_required

manage_bp = Blueprint("manage", __name__)
csrf.exempt(manage_bp)

PERMISSION_ACTIONS = ("grant", "deny", "clear")
MODULE_ACTIONS = ("enable", "disable", "clear")


def _error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def _access():
    return current_app.extensions["access"]


def _parse_datetime(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


@manage_bp.errorhandler(AccessError)
def _access_error(exc: AccessError):
    return _error(exc.message or "Request failed.", exc.status_code)


# ───────── Users ───────── #
@manage_bp.route("/users/<int:user_id>/permissions", methods=["GET"])
@role_required(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def user_permissions(user_id: int):
    actor = current_context()
    access = _access()
    target = access.profiles.require(user_id)
    ensure_can_view(actor, target)

    listing = access.effective_permissions(user_id)
    modules = access.get_user_modules(user_id, include_disabled=True)
    return jsonify({
        "user": {"id": target.user_id, "role": target.role, "company_id": target.company_id},
        "permissions": [p.to_dict() for p in listing.permissions],
        "modules": [m.to_dict() for m in modules.modules],
        "warnings": listing.warnings + modules.warnings,
    })


@manage_bp.route("/users/<int:user_id>/permissions", methods=["POST"])
@role_required(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def update_user_permission(user_id: int):
    payload = request.get_json(silent=True) or {}
    key = (payload.get("permission_key") or "").strip()
    action = (payload.get("action") or "").strip().lower()
    if not key:
        return _error("permission_key is required.")
    if action not in PERMISSION_ACTIONS:
        return _error("action must be grant, deny or clear.")
    try:
        expires_at = _parse_datetime(payload.get("expires_at"))
    except ValueError:
        return _error("expires_at must be an ISO 8601 timestamp.")

    actor = current_context()
    access = _access()
    if action == "clear":
        removed = access.clear_permission(actor, user_id, key)
        return jsonify({"permission_key": key, "cleared": removed})

    grant = access.grant_permission(actor, user_id, key, action == "grant", expires_at)
    return jsonify({
        "permission_key": grant.permission_key,
        "is_granted": grant.is_granted,
        "expires_at": grant.expires_at.isoformat() if grant.expires_at else None,
    })


@manage_bp.route("/users/<int:user_id>/permissions/bulk", methods=["POST"])
@role_required(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def bulk_update_user_permissions(user_id: int):
    payload = request.get_json(silent=True) or {}
    entries = payload.get("permissions")
    if not isinstance(entries, list) or not entries:
        return _error("permissions must be a non-empty list.")
    pairs = []
    for entry in entries:
        if not isinstance(entry, dict):
            return _error("Each permission needs permission_key and is_granted.")
        key = entry.get("permission_key")
        is_granted = entry.get("is_granted")
        if not isinstance(key, str) or not key.strip() or not isinstance(is_granted, bool):
            return _error("Each permission needs permission_key and is_granted.")
        pairs.append((key.strip(), is_granted))
    try:
        expires_at = _parse_datetime(payload.get("expires_at"))
    except ValueError:
        return _error("expires_at must be an ISO 8601 timestamp.")

    result = _access().bulk_grant(current_context(), user_id, pairs, expires_at)
    return jsonify(result.to_dict())


@manage_bp.route("/users/<int:user_id>/modules/<int:module_id>", methods=["POST"])
@role_required(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def update_user_module(user_id: int, module_id: int):
    payload = request.get_json(silent=True) or {}
    action = (payload.get("action") or "").strip().lower()
    if action not in MODULE_ACTIONS:
        return _error("action must be enable, disable or clear.")

    actor = current_context()
    access = _access()
    if action == "clear":
        removed = access.clear_user_module(actor, user_id, module_id)
        return jsonify({"module_id": module_id, "cleared": removed})

    override = access.set_user_module(actor, user_id, module_id, action == "enable")
    return jsonify({
        "user_id": override.user_id,
        "module_id": override.module_id,
        "is_enabled": override.is_enabled,
    })


# ───────── Templates ───────── #
@manage_bp.route("/templates", methods=["GET"])
@role_required(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def list_templates():
    return jsonify({"templates": [t.to_dict() for t in _access().list_templates()]})


@manage_bp.route("/templates", methods=["POST"])
@role_required(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def create_template():
    payload = request.get_json(silent=True) or {}
    keys = payload.get("permission_keys")
    if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
        return _error("permission_keys must be a list of permission keys.")

    template = _access().create_template(
        current_context(),
        payload.get("name") or "",
        payload.get("display_name") or "",
        keys,
        target_role=payload.get("target_role") or "user",
        description=payload.get("description"),
    )
    return jsonify(template.to_dict()), 201


@manage_bp.route("/templates/<int:template_id>/apply", methods=["POST"])
@role_required(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def apply_template(template_id: int):
    payload = request.get_json(silent=True) or {}
    user_id = payload.get("user_id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return _error("user_id must be an integer.")
    result = _access().apply_template(current_context(), user_id, template_id)
    return jsonify(result.to_dict())


# ───────── Companies ───────── #
@manage_bp.route("/companies/<int:company_id>/modules/<int:module_id>", methods=["POST"])
@role_required(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def update_company_module(company_id: int, module_id: int):
    payload = request.get_json(silent=True) or {}
    is_enabled = payload.get("is_enabled")
    locked = payload.get("locked")
    if not isinstance(is_enabled, bool):
        return _error("is_enabled must be true or false.")
    if locked is not None and not isinstance(locked, bool):
        return _error("locked must be true or false.")

    setting = _access().set_company_module(current_context(), company_id, module_id, is_enabled, locked)
    return jsonify({
        "company_id": setting.company_id,
        "module_id": setting.module_id,
        "is_enabled": setting.is_enabled,
        "is_locked_by_system": setting.is_locked_by_system,
    })


# ───────── Audit ───────── #
@manage_bp.route("/audit", methods=["GET"])
@role_required(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def audit_log():
    try:
        limit = min(max(int(request.args.get("limit", 50)), 1), 500)
    except ValueError:
        return _error("limit must be an integer.")
    user_id = request.args.get("user_id", type=int)
    entries = _access().list_audit(current_context(), user_id=user_id, limit=limit)
    return jsonify({"entries": entries})
