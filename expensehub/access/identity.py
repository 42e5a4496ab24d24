# -*- coding: utf-8 -*-
"""
Per-request identity.

The context is built explicitly from a bearer token (identity = user id,
claims ``role`` and ``company_id``) or, without one, from the Flask-Login
session. Super-admins may act as another user through ``X-Impersonate-User``.
"""

from typing import Optional

from flask import current_app, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from flask_login import current_user

from expensehub.access.errors import NotFoundError
from expensehub.access.types import UserContext
from expensehub.utils.roles import is_super_admin, normalize_role

IMPERSONATE_HEADER = "X-Impersonate-User"


def _to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _from_token() -> Optional[UserContext]:
    verify_jwt_in_request(optional=True)
    identity = _to_int(get_jwt_identity())
    if identity is None:
        return None
    claims = get_jwt()
    role = claims.get("role")
    company_id = _to_int(claims.get("company_id"))
    if not role:
        profile = current_app.extensions["access"].profiles.get(identity)
        if profile is None:
            return None
        role, company_id = profile.role, profile.company_id
    return UserContext(user_id=identity, role=normalize_role(role), company_id=company_id)


def _from_session() -> Optional[UserContext]:
    if not current_user or not current_user.is_authenticated:
        return None
    return UserContext(
        user_id=current_user.id,
        role=normalize_role(current_user.role),
        company_id=current_user.company_id,
    )


def _impersonate(context: UserContext) -> UserContext:
    target_id = _to_int(request.headers.get(IMPERSONATE_HEADER))
    if target_id is None or not is_super_admin(context.role) or target_id == context.user_id:
        return context
    target = current_app.extensions["access"].profiles.get(target_id)
    if target is None:
        raise NotFoundError("Impersonated user not found.", user_id=target_id)
    current_app.logger.info("User %s is acting as user %s", context.user_id, target.user_id)
    return UserContext(
        user_id=target.user_id,
        role=target.role,
        company_id=target.company_id,
        actor_id=context.user_id,
    )


def current_context() -> Optional[UserContext]:
    """The authenticated caller for this request, or ``None``."""
    context = _from_token() or _from_session()
    if context is not None:
        context = _impersonate(context)
    return context

