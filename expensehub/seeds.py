from time import sleep
from typing import Any, Iterable

import click
from sqlalchemy.exc import OperationalError

from expensehub import db
from expensehub.models import CompanyModule, Permission, PermissionTemplate, RolePermission, SystemModule
from expensehub.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    MODULE_CATALOG,
    PERMISSION_DEFINITIONS,
    PERMISSION_TEMPLATES,
)


def _sync_modules(app: Any) -> dict:
    modules = {m.key: m for m in SystemModule.query.all()}
    created = 0
    for entry in MODULE_CATALOG:
        module = modules.get(entry["key"])
        if module is None:
            module = SystemModule(key=entry["key"])
            db.session.add(module)
            modules[entry["key"]] = module
            created += 1
        module.name = entry["name"]
        module.module_type = entry["type"]
        module.category = entry.get("category", "general")
        module.is_core_required = bool(entry.get("core_required", False))
        module.allowed_roles = list(entry.get("roles") or [])
        module.requires_modules = list(entry.get("requires") or [])
        if module.is_active is None:
            module.is_active = True
    db.session.flush()
    if created:
        app.logger.info("Seeded %d system modules", created)
    return modules


def _sync_permissions(app: Any, modules: dict) -> dict:
    permissions = {p.key: p for p in Permission.query.all()}
    created = 0
    for entry in PERMISSION_DEFINITIONS:
        permission = permissions.get(entry["key"])
        if permission is None:
            permission = Permission(key=entry["key"])
            db.session.add(permission)
            permissions[entry["key"]] = permission
            created += 1
        permission.name = entry["name"]
        permission.category = entry["category"]
        permission.requires_permissions = list(entry.get("requires") or [])
        module = modules.get(entry.get("module"))
        permission.module_id = module.id if module else None
    db.session.flush()
    if created:
        app.logger.info("Seeded %d permissions", created)
    return permissions


def _sync_role_defaults(app: Any, permissions: dict) -> None:
    existing = {(rp.role, rp.permission_id): rp for rp in RolePermission.query.all()}
    created = 0
    for role, keys in DEFAULT_ROLE_PERMISSIONS.items():
        for key in keys:
            permission = permissions[key]
            if (role, permission.id) in existing:
                continue
            db.session.add(
                RolePermission(
                    role=role,
                    permission_id=permission.id,
                    module_id=permission.module_id,
                    is_default=True,
                )
            )
            created += 1
    if created:
        app.logger.info("Seeded %d role permission defaults", created)


def _sync_templates(app: Any) -> None:
    templates = {t.name: t for t in PermissionTemplate.query.all()}
    created = 0
    for entry in PERMISSION_TEMPLATES:
        template = templates.get(entry["name"])
        if template is not None and not template.is_system_template:
            continue
        if template is None:
            template = PermissionTemplate(name=entry["name"], is_system_template=True)
            db.session.add(template)
            created += 1
        template.display_name = entry["display_name"]
        template.description = entry.get("description")
        template.target_role = entry["target_role"]
        template.permission_keys = list(entry["permissions"])
    if created:
        app.logger.info("Seeded %d permission templates", created)


def seed_access_catalog(app: Any) -> None:
    """Create or refresh system modules, permissions, role defaults and templates."""
    modules = _sync_modules(app)
    permissions = _sync_permissions(app, modules)
    _sync_role_defaults(app, permissions)
    _sync_templates(app)
    db.session.commit()
    app.extensions["access"].invalidate()


def seed_access_catalog_with_retry(app: Any) -> None:
    """Retry wrapper so container startup can handle transient DB availability."""
    attempts = max(1, int(app.config.get("SEED_RETRY_ATTEMPTS", 5)))
    delay = float(app.config.get("SEED_RETRY_DELAY", 2.0))

    for attempt in range(1, attempts + 1):
        try:
            seed_access_catalog(app)
            return
        except OperationalError as exc:
            db.session.rollback()
            if attempt == attempts:
                app.logger.error(
                    "Unable to seed access catalog after %d attempts: %s", attempt, exc
                )
                raise
            app.logger.warning(
                "Database not ready (attempt %d/%d): %s; retrying in %.1f sec",
                attempt,
                attempts,
                exc,
                delay,
            )
            sleep(delay)


def provision_company_modules(app: Any, company_id: int, enabled_keys: Iterable[str] = ()) -> int:
    """
    Create the per-company module rows for a newly provisioned company.

    Core-required modules are enabled and locked by the system; other modules
    are enabled only when listed in ``enabled_keys``. Existing rows are kept.
    """
    enabled = set(enabled_keys)
    existing = {cm.module_id for cm in CompanyModule.query.filter_by(company_id=company_id).all()}
    created = 0
    for module in SystemModule.query.filter_by(is_active=True).all():
        if module.id in existing:
            continue
        db.session.add(
            CompanyModule(
                company_id=company_id,
                module_id=module.id,
                is_enabled=module.is_core_required or module.key in enabled,
                is_locked_by_system=bool(module.is_core_required),
            )
        )
        created += 1
    db.session.commit()
    app.extensions["access"].invalidate(company_id=company_id)
    app.logger.info("Provisioned %d module settings for company %s", created, company_id)
    return created


def register_cli(app: Any) -> None:
    @app.cli.command("seed-access")
    def seed_access_command():
        """Seed the module and permission catalog."""
        seed_access_catalog_with_retry(app)
        click.echo("Access catalog seeded.")

    @app.cli.command("provision-company")
    @click.argument("company_id", type=int)
    @click.option("--enable", "enable", multiple=True, help="Add-on module key to enable.")
    def provision_company_command(company_id, enable):
        """Create module settings for a company."""
        created = provision_company_modules(app, company_id, enable)
        click.echo(f"Created {created} module settings for company {company_id}.")
