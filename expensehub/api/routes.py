# -*- coding: utf-8 -*-
"""
ExpenseHub access API (v1).
Authentication is a bearer JWT (identity = user id, claims ``role`` and
``company_id``) or an existing login session.
"""

from typing import Optional

from flask import Blueprint, current_app, g, jsonify, request

from expensehub import csrf
from expensehub.access.errors import AccessError
from expensehub.access.identity import current_context
from expensehub.access.types import MENU_MODES, MODULE_TYPES
from expensehub.navigation import definition_map
from expensehub.utils.roles import is_company_admin, is_super_admin

api_bp = Blueprint("api", __name__)
csrf.exempt(api_bp)


# ───────── Helpers ───────── #
def _error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def _access():
    return current_app.extensions["access"]


def _truthy(value) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def _item_id(item):
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        return item.get("id")
    return None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _int_arg(name: str) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@api_bp.before_request
def _authenticate():
    context = current_context()
    if context is None:
        return _error("Authentication required.", 401)
    g.context = context


@api_bp.errorhandler(AccessError)
def _access_error(exc: AccessError):
    return _error(exc.message or "Request failed.", exc.status_code)


# ───────── Permissions ───────── #
@api_bp.route("/access/permissions/<path:permission_key>", methods=["GET"])
def check_permission(permission_key: str):
    user_id = _int_arg("user_id") or g.context.user_id
    check = _access().check_permission(
        user_id, permission_key, _int_arg("company_id"), requester=g.context
    )
    return jsonify(check.to_dict())


@api_bp.route("/access/permissions/check", methods=["POST"])
def check_permissions():
    payload = request.get_json(silent=True) or {}
    keys = payload.get("keys")
    if not isinstance(keys, list) or not all(isinstance(k, str) and k.strip() for k in keys):
        return _error("keys must be a list of permission keys.")
    user_id = payload.get("user_id") or g.context.user_id
    if not _is_int(user_id):
        return _error("user_id must be an integer.")

    checks = _access().check_multiple_permissions(
        user_id, keys, payload.get("company_id"), requester=g.context
    )
    return jsonify({
        "results": [c.to_dict() for c in checks],
        "has_any": any(c.granted for c in checks),
        "has_all": all(c.granted for c in checks),
    })


@api_bp.route("/access/permissions", methods=["GET"])
def effective_permissions():
    user_id = _int_arg("user_id") or g.context.user_id
    listing = _access().effective_permissions(
        user_id, _int_arg("company_id"), requester=g.context
    )
    return jsonify(listing.to_dict())


# ───────── Modules ───────── #
@api_bp.route("/access/modules", methods=["GET"])
def user_modules():
    module_type = request.args.get("type") or None
    if module_type is not None and module_type not in MODULE_TYPES:
        return _error("type must be one of: %s." % ", ".join(MODULE_TYPES))
    resolution = _access().get_user_modules(
        _int_arg("user_id") or g.context.user_id,
        include_disabled=_truthy(request.args.get("include_disabled")),
        module_type=module_type,
        category=request.args.get("category") or None,
        requester=g.context,
    )
    return jsonify({
        "modules": [m.to_dict() for m in resolution.modules],
        "warnings": resolution.warnings,
    })


@api_bp.route("/access/companies/<int:company_id>/modules/<path:module_name>", methods=["GET"])
def company_module_access(company_id: int, module_name: str):
    context = g.context
    if not is_super_admin(context.role) and context.company_id != company_id:
        return _error("Not allowed to inspect this company.", 403)
    return jsonify({
        "company_id": company_id,
        "module": module_name,
        "has_access": _access().check_company_module_access(company_id, module_name),
    })


# ───────── Menu ───────── #
@api_bp.route("/access/menu", methods=["GET"])
def menu():
    mode = (request.args.get("mode") or "both").strip().lower()
    if mode not in MENU_MODES and mode != "both":
        return _error("mode must be display, editable or both.")
    composition = _access().compose_menu(g.context, mode)
    return jsonify(composition.to_dict())


@api_bp.route("/access/menu/preferences", methods=["PUT"])
def save_menu_preferences():
    payload = request.get_json(silent=True)
    items = payload.get("items") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        return _error("items must be a list of menu preferences.")

    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    user_id = user_id or g.context.user_id
    if not _is_int(user_id):
        return _error("user_id must be an integer.")
    if user_id != g.context.user_id and not (
        is_super_admin(g.context.role) or is_company_admin(g.context.role)
    ):
        return _error("Not allowed to change preferences for this user.", 403)

    known = definition_map()
    items = [item for item in items if _item_id(item) in known]
    saved = _access().save_preferences(user_id, items, actor=g.context)
    return jsonify({"preferences": [p.to_dict() for p in saved]})
