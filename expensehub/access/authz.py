# -*- coding: utf-8 -*-
"""
Caller-vs-target checks for resolving or changing another user's access.
"""

import logging

from expensehub.access.errors import AuthorizationError
from expensehub.access.types import UserContext
from expensehub.utils.roles import is_company_admin, is_super_admin

logger = logging.getLogger(__name__)


def _same_company(actor: UserContext, company_id) -> bool:
    return actor.company_id is not None and actor.company_id == company_id


def ensure_can_view(actor: UserContext, target: UserContext) -> None:
    """Users may resolve themselves; admins may resolve users of their own company."""
    if is_super_admin(actor.role) or actor.user_id == target.user_id:
        return
    if is_company_admin(actor.role) and _same_company(actor, target.company_id):
        return
    logger.warning(
        "Rejected access resolution by user %s (role=%s, company=%s) for user %s (company=%s)",
        actor.user_id, actor.role, actor.company_id, target.user_id, target.company_id,
    )
    raise AuthorizationError(
        "Not allowed to resolve access for this user.",
        actor_id=actor.user_id,
        user_id=target.user_id,
    )


def ensure_can_manage_user(actor: UserContext, target: UserContext) -> None:
    if is_super_admin(actor.role):
        return
    if is_company_admin(actor.role) and _same_company(actor, target.company_id):
        return
    logger.warning(
        "Rejected access change by user %s (role=%s) for user %s",
        actor.user_id, actor.role, target.user_id,
    )
    raise AuthorizationError(
        "Not allowed to change access for this user.",
        actor_id=actor.user_id,
        user_id=target.user_id,
    )


def ensure_can_manage_company(actor: UserContext, company_id) -> None:
    if is_super_admin(actor.role):
        return
    if is_company_admin(actor.role) and _same_company(actor, company_id):
        return
    logger.warning(
        "Rejected company module change by user %s (role=%s) for company %s",
        actor.user_id, actor.role, company_id,
    )
    raise AuthorizationError(
        "Not allowed to change modules for this company.",
        actor_id=actor.user_id,
        company_id=company_id,
    )
