# -*- coding: utf-8 -*-
"""
Static navigation tree. Items bind to modules through their ``module`` key.
"""

from typing import Dict, List, Optional, Sequence

from flask_babel import lazy_gettext as _l

from expensehub.access.types import MenuItem
from expensehub.utils.roles import ROLE_ADMIN, ROLE_SUPER_ADMIN

MENU_DEFINITIONS = (
    MenuItem(
        id="dashboard",
        label=_l("Dashboard"),
        path="/dashboard",
        icon="layout-dashboard",
        module="dashboard",
        required_permissions=("dashboard.view",),
    ),
    MenuItem(
        id="users",
        label=_l("Users"),
        icon="users",
        module="user_management",
        locked=True,
        children=(
            MenuItem(
                id="manage-users",
                label=_l("Manage Users"),
                path="/users",
                icon="user-cog",
                module="user_management",
                required_permissions=("users.view",),
                company_required=True,
            ),
            MenuItem(
                id="provision-company",
                label=_l("Provision Company"),
                path="/users/provision",
                icon="building",
                required_roles=(ROLE_SUPER_ADMIN,),
            ),
        ),
    ),
    MenuItem(
        id="vendors",
        label=_l("Vendors"),
        path="/vendors",
        icon="store",
        module="vendors",
        required_permissions=("vendors.view",),
        company_required=True,
    ),
    MenuItem(
        id="customers",
        label=_l("Customers"),
        path="/customers",
        icon="contact",
        module="customers",
        required_permissions=("customers.view",),
        company_required=True,
    ),
    MenuItem(
        id="expenses",
        label=_l("Expenses"),
        path="/expenses",
        icon="receipt",
        module="expense_management",
        required_permissions=("expenses.view",),
        company_required=True,
    ),
    MenuItem(
        id="ingrid-ai",
        label=_l("Ingrid AI"),
        path="/ingrid",
        icon="sparkles",
        module="ingrid_ai",
        required_permissions=("ingrid.suggestions.view",),
        company_required=True,
    ),
    MenuItem(
        id="automations",
        label=_l("Automations"),
        path="/automations",
        icon="workflow",
        module="process_automation",
        required_permissions=("automation.view",),
        company_required=True,
    ),
    MenuItem(
        id="notifications-page",
        label=_l("Notifications"),
        path="/notifications",
        icon="bell",
        module="notifications",
        required_permissions=("notifications.view",),
    ),
    MenuItem(
        id="accounting",
        label=_l("Accounting"),
        icon="calculator",
        children=(
            MenuItem(
                id="expense-categories",
                label=_l("Expense Categories"),
                path="/expense-categories",
                icon="tags",
                module="expense_categories",
                required_permissions=("expense_categories.view",),
                company_required=True,
            ),
            MenuItem(
                id="gl-accounts",
                label=_l("GL Accounts"),
                path="/gl-accounts",
                icon="book",
                module="gl_accounts",
                required_permissions=("gl_accounts.view",),
                company_required=True,
            ),
        ),
    ),
    MenuItem(
        id="billing",
        label=_l("Billing"),
        path="/billing",
        icon="credit-card",
        module="billing",
    ),
    MenuItem(
        id="api-key-manager",
        label=_l("API Keys"),
        path="/api-keys",
        icon="key",
        module="api_keys",
    ),
    MenuItem(
        id="analytics",
        label=_l("Analytics"),
        path="/analytics",
        icon="chart-bar",
        module="advanced_analytics",
        required_permissions=("analytics.view",),
        company_required=True,
    ),
    MenuItem(
        id="settings",
        label=_l("Settings"),
        icon="settings",
        children=(
            MenuItem(
                id="profile-settings",
                label=_l("Profile"),
                path="/settings/profile",
                icon="user",
            ),
            MenuItem(
                id="company-settings",
                label=_l("Company"),
                path="/settings/company",
                icon="building-2",
                module="company_settings",
                required_permissions=("company.settings.view",),
                company_required=True,
            ),
            MenuItem(
                id="system-billing-settings",
                label=_l("System Billing"),
                path="/settings/billing",
                icon="wallet",
                required_roles=(ROLE_SUPER_ADMIN,),
            ),
            MenuItem(
                id="system-notification-settings",
                label=_l("System Notifications"),
                path="/settings/notifications",
                icon="bell-ring",
                required_roles=(ROLE_ADMIN, ROLE_SUPER_ADMIN),
            ),
        ),
    ),
)


def flatten_menu(definitions: Optional[Sequence[MenuItem]] = None) -> List[MenuItem]:
    definitions = MENU_DEFINITIONS if definitions is None else definitions
    items: List[MenuItem] = []
    for item in definitions:
        items.append(item)
        if item.children:
            items.extend(flatten_menu(item.children))
    return items


def definition_map(definitions: Optional[Sequence[MenuItem]] = None) -> Dict[str, MenuItem]:
    return {item.id: item for item in flatten_menu(definitions)}
