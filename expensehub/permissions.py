# -*- coding: utf-8 -*-
"""
Permission and module catalog definitions, plus helpers for the current caller.
"""

from typing import Any, Dict, List

from flask import current_app

from expensehub.utils.roles import ROLE_ADMIN, ROLE_CONTROLLER, ROLE_SUPER_ADMIN, ROLE_USER

# key, name, category, module key, keys it requires
PERMISSION_DEFINITIONS: List[Dict[str, Any]] = [
    {"key": "dashboard.view", "name": "View dashboard", "category": "core", "module": "dashboard"},
    {"key": "users.view", "name": "View users", "category": "admin", "module": "user_management"},
    {"key": "users.create", "name": "Create users", "category": "admin", "module": "user_management"},
    {"key": "users.edit", "name": "Edit users", "category": "admin", "module": "user_management"},
    {"key": "users.delete", "name": "Delete users", "category": "admin", "module": "user_management",
     "requires": ["users.edit"]},
    {"key": "company.settings.view", "name": "View company settings", "category": "admin",
     "module": "company_settings"},
    {"key": "company.settings.edit", "name": "Edit company settings", "category": "admin",
     "module": "company_settings"},
    {"key": "notifications.view", "name": "View notifications", "category": "core", "module": "notifications"},
    {"key": "notifications.manage", "name": "Manage notifications", "category": "core",
     "module": "notifications"},
    {"key": "vendors.view", "name": "View vendors", "category": "operations", "module": "vendors"},
    {"key": "vendors.create", "name": "Create vendors", "category": "operations", "module": "vendors"},
    {"key": "vendors.edit", "name": "Edit vendors", "category": "operations", "module": "vendors"},
    {"key": "vendors.delete", "name": "Delete vendors", "category": "operations", "module": "vendors"},
    {"key": "customers.view", "name": "View customers", "category": "operations", "module": "customers"},
    {"key": "customers.create", "name": "Create customers", "category": "operations", "module": "customers"},
    {"key": "customers.edit", "name": "Edit customers", "category": "operations", "module": "customers"},
    {"key": "customers.delete", "name": "Delete customers", "category": "operations", "module": "customers"},
    {"key": "expenses.view", "name": "View expenses", "category": "operations", "module": "expense_management"},
    {"key": "expenses.create", "name": "Create expenses", "category": "operations",
     "module": "expense_management"},
    {"key": "expenses.edit", "name": "Edit expenses", "category": "operations", "module": "expense_management"},
    {"key": "expenses.delete", "name": "Delete expenses", "category": "operations",
     "module": "expense_management"},
    {"key": "expenses.approve", "name": "Approve expenses", "category": "operations",
     "module": "expense_management", "requires": ["expenses.view"]},
    {"key": "expenses.review", "name": "Review expenses", "category": "operations",
     "module": "expense_management", "requires": ["expenses.view"]},
    {"key": "ingrid.suggestions.view", "name": "View AI suggestions", "category": "ai", "module": "ingrid_ai"},
    {"key": "ingrid.suggestions.approve", "name": "Approve AI suggestions", "category": "ai",
     "module": "ingrid_ai", "requires": ["ingrid.suggestions.view"]},
    {"key": "ingrid.configure", "name": "Configure Ingrid AI", "category": "ai", "module": "ingrid_ai"},
    {"key": "ingrid.analytics.view", "name": "View AI analytics", "category": "ai", "module": "ingrid_ai"},
    {"key": "gl_accounts.view", "name": "View GL accounts", "category": "accounting", "module": "gl_accounts"},
    {"key": "gl_accounts.create", "name": "Create GL accounts", "category": "accounting",
     "module": "gl_accounts"},
    {"key": "gl_accounts.edit", "name": "Edit GL accounts", "category": "accounting", "module": "gl_accounts"},
    {"key": "gl_accounts.delete", "name": "Delete GL accounts", "category": "accounting",
     "module": "gl_accounts"},
    {"key": "expense_categories.view", "name": "View expense categories", "category": "accounting",
     "module": "expense_categories"},
    {"key": "expense_categories.create", "name": "Create expense categories", "category": "accounting",
     "module": "expense_categories"},
    {"key": "expense_categories.edit", "name": "Edit expense categories", "category": "accounting",
     "module": "expense_categories"},
    {"key": "expense_categories.delete", "name": "Delete expense categories", "category": "accounting",
     "module": "expense_categories"},
    {"key": "automation.view", "name": "View automations", "category": "automation",
     "module": "process_automation"},
    {"key": "automation.create", "name": "Create automations", "category": "automation",
     "module": "process_automation"},
    {"key": "automation.edit", "name": "Edit automations", "category": "automation",
     "module": "process_automation"},
    {"key": "automation.delete", "name": "Delete automations", "category": "automation",
     "module": "process_automation"},
    {"key": "automation.execute", "name": "Run automations", "category": "automation",
     "module": "process_automation", "requires": ["automation.view"]},
    {"key": "analytics.view", "name": "View analytics", "category": "analytics", "module": "advanced_analytics"},
    {"key": "analytics.export", "name": "Export analytics", "category": "analytics",
     "module": "advanced_analytics", "requires": ["analytics.view"]},
    {"key": "analytics.advanced", "name": "Advanced analytics", "category": "analytics",
     "module": "advanced_analytics"},
    {"key": "billing.super.manage", "name": "Manage system billing", "category": "admin", "module": "billing"},
    {"key": "api_keys.super.manage", "name": "Manage API keys", "category": "admin", "module": "api_keys"},
]

ALL_PERMISSION_KEYS = [p["key"] for p in PERMISSION_DEFINITIONS]

_USER_DEFAULTS = [
    "dashboard.view",
    "vendors.view",
    "customers.view",
    "expenses.view",
    "expenses.create",
    "gl_accounts.view",
    "expense_categories.view",
]

DEFAULT_ROLE_PERMISSIONS: Dict[str, List[str]] = {
    ROLE_USER: _USER_DEFAULTS,
    ROLE_CONTROLLER: _USER_DEFAULTS + [
        "expenses.approve",
        "expenses.review",
        "automation.view",
        "analytics.view",
    ],
    ROLE_ADMIN: [k for k in ALL_PERMISSION_KEYS if "delete" not in k and "super" not in k],
    ROLE_SUPER_ADMIN: list(ALL_PERMISSION_KEYS),
}

# Seeded as system templates; admins can add their own through /manage/templates.
PERMISSION_TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": "expense_approver",
        "display_name": "Expense approver",
        "description": "Review and approve expenses submitted by colleagues.",
        "target_role": ROLE_USER,
        "permissions": ["expenses.view", "expenses.review", "expenses.approve"],
    },
    {
        "name": "automation_operator",
        "display_name": "Automation operator",
        "description": "Inspect and run existing automations.",
        "target_role": ROLE_USER,
        "permissions": ["automation.view", "automation.execute"],
    },
    {
        "name": "vendor_manager",
        "display_name": "Vendor manager",
        "description": "Maintain the vendor list.",
        "target_role": ROLE_USER,
        "permissions": ["vendors.view", "vendors.create", "vendors.edit"],
    },
]

_ADMINS = [ROLE_ADMIN, ROLE_SUPER_ADMIN]

MODULE_CATALOG: List[Dict] = [
    {"key": "dashboard", "name": "Dashboard", "type": "core", "category": "core", "core_required": True},
    {"key": "user_management", "name": "User Management", "type": "core", "category": "core",
     "core_required": True, "roles": _ADMINS},
    {"key": "company_settings", "name": "Company Settings", "type": "core", "category": "core",
     "core_required": True, "roles": _ADMINS},
    {"key": "notifications", "name": "Notifications", "type": "core", "category": "core", "core_required": True},
    {"key": "vendors", "name": "Vendors", "type": "core", "category": "operations", "core_required": True},
    {"key": "customers", "name": "Customers", "type": "core", "category": "operations", "core_required": True},
    {"key": "gl_accounts", "name": "GL Accounts", "type": "core", "category": "accounting",
     "core_required": True},
    {"key": "expense_categories", "name": "Expense Categories", "type": "core", "category": "accounting",
     "core_required": True},
    {"key": "expense_management", "name": "Expense Management", "type": "add-on", "category": "operations"},
    {"key": "ingrid_ai", "name": "Ingrid AI", "type": "add-on", "category": "ai",
     "requires": ["expense_management"]},
    {"key": "process_automation", "name": "Process Automation", "type": "add-on", "category": "automation",
     "roles": [ROLE_ADMIN, ROLE_CONTROLLER, ROLE_SUPER_ADMIN]},
    {"key": "advanced_analytics", "name": "Advanced Analytics", "type": "add-on", "category": "analytics"},
    {"key": "billing", "name": "Billing", "type": "super", "category": "general", "roles": [ROLE_SUPER_ADMIN]},
    {"key": "api_keys", "name": "API Key Manager", "type": "super", "category": "general",
     "roles": [ROLE_SUPER_ADMIN]},
]


def user_can(permission_key: str) -> bool:
    """Whether the current caller holds ``permission_key``."""
    from expensehub.access.identity import current_context

    context = current_context()
    if context is None:
        return False
    check = current_app.extensions["access"].check_permission(
        context.user_id, permission_key, context.company_id
    )
    return check.granted


def user_has_module(module_key: str) -> bool:
    from expensehub.access.identity import current_context

    context = current_context()
    if context is None:
        return False
    return current_app.extensions["access"].has_module(context, module_key)
