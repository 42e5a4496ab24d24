# -*- coding: utf-8 -*-
"""
View decorators backed by the access engine.
"""

from functools import wraps

from flask import current_app, jsonify

from expensehub.access.identity import current_context


def _service():
    return current_app.extensions["access"]


def permission_required(*permission_keys, any_of: bool = True):
    """
    Allow the view when the caller holds any (default) or all of the keys.
    Example: @permission_required('expenses.view', 'expenses.review')
    """

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            context = current_context()
            if context is None:
                return jsonify({"error": "Authentication required."}), 401
            service = _service()
            check = service.has_any if any_of else service.has_all
            if not check(context.user_id, permission_keys, context.company_id):
                return jsonify({"error": "Forbidden."}), 403
            return f(*args, **kwargs)
        return wrapper
    return decorator


def module_required(module_key: str):
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            context = current_context()
            if context is None:
                return jsonify({"error": "Authentication required."}), 401
            if not _service().has_module(context, module_key):
                return jsonify({"error": "Module not available."}), 403
            return f(*args, **kwargs)
        return wrapper
    return decorator
