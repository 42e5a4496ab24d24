from functools import wraps
from flask import jsonify

ROLE_USER = "user"
ROLE_CONTROLLER = "controller"
ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super-admin"

AVAILABLE_ROLES = [ROLE_USER, ROLE_CONTROLLER, ROLE_ADMIN, ROLE_SUPER_ADMIN]
COMPANY_ADMIN_ROLES = (ROLE_ADMIN,)


def normalize_role(role) -> str:
    return (role or "").strip().lower()


def is_super_admin(role) -> bool:
    return normalize_role(role) == ROLE_SUPER_ADMIN


def is_company_admin(role) -> bool:
    return normalize_role(role) in COMPANY_ADMIN_ROLES


def role_required(*roles):
    """
    Restrict access to identities whose role is in the given list.
    Example: @role_required('admin', 'super-admin')
    """
    allowed = {normalize_role(r) for r in roles}

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            from expensehub.access.identity import current_context

            context = current_context()
            if context is None:
                return jsonify({"error": "Authentication required."}), 401
            if normalize_role(context.role) not in allowed:
                return jsonify({"error": "Forbidden."}), 403
            return f(*args, **kwargs)
        return wrapper
    return decorator
