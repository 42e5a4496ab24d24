from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from expensehub import create_app, db
from expensehub.access.cache import AccessCache
from expensehub.access.errors import StoreUnavailableError
from expensehub.access.service import AccessService
from expensehub.access.types import (
    CompanyModuleSetting,
    MenuItem,
    PermissionGrant,
    PermissionTemplate,
    RolePermissionDefault,
    SystemModule,
    UserContext,
    UserModuleOverride,
)
from expensehub.config import TestingConfig


class FakeStore:
    """In-memory stand-in for SqlAccessStore. Methods listed in ``failing`` raise."""

    def __init__(self):
        self.profiles = {}
        self.modules = {}
        self.company_settings = {}
        self.user_overrides = {}
        self.permission_keys = set()
        self.grants = {}
        self.role_defaults = {}
        self.preferences = {}
        self.requirements = {}
        self.templates = {}
        self.audit = []
        self.failing = set()
        self.calls = []

    def _call(self, name):
        self.calls.append(name)
        if name in self.failing:
            raise StoreUnavailableError(f"{name} failed", operation=name)

    # ───────── Fixture helpers ───────── #
    def add_profile(self, user_id, role, company_id=None):
        self.profiles[user_id] = UserContext(user_id=user_id, role=role, company_id=company_id)

    def add_module(self, module_id, key, name=None, type="add-on", category="general", roles=(),
                   core_required=False, requires=(), active=True):
        self.modules[module_id] = SystemModule(
            id=module_id, key=key, name=name or key.replace("_", " ").title(), type=type,
            category=category, allowed_roles=frozenset(roles), is_core_required=core_required,
            is_active=active, requires_modules=tuple(requires),
        )
        return self.modules[module_id]

    def set_company(self, company_id, module_id, enabled=True, locked=False):
        self.company_settings[(company_id, module_id)] = CompanyModuleSetting(
            company_id=company_id, module_id=module_id, is_enabled=enabled, is_locked_by_system=locked
        )

    def set_override(self, user_id, company_id, module_id, enabled):
        self.user_overrides[(user_id, company_id, module_id)] = UserModuleOverride(
            user_id=user_id, company_id=company_id, module_id=module_id, is_enabled=enabled
        )

    def set_role_default(self, role, key, is_default=True):
        self.permission_keys.add(key)
        self.role_defaults[(role, key)] = RolePermissionDefault(role=role, permission_key=key, is_default=is_default)

    def set_grant(self, user_id, key, company_id, granted, expires_at=None):
        self.permission_keys.add(key)
        self.grants[(user_id, key, company_id)] = PermissionGrant(
            user_id=user_id, permission_key=key, company_id=company_id, is_granted=granted, expires_at=expires_at
        )

    def set_requirements(self, key, *required):
        self.permission_keys.update((key,) + required)
        self.requirements[key] = tuple(required)

    def add_template(self, template_id, name, keys, target_role="user"):
        self.templates[template_id] = PermissionTemplate(
            id=template_id, name=name, display_name=name.replace("_", " ").title(),
            permission_keys=tuple(keys), target_role=target_role,
        )
        return self.templates[template_id]

    # ───────── Reads ───────── #
    def get_profile(self, user_id):
        self._call("get_profile")
        return self.profiles.get(user_id)

    def list_system_modules(self):
        self._call("list_system_modules")
        return sorted(self.modules.values(), key=lambda m: (m.type, m.name))

    def get_system_module(self, module_id=None, *, key=None, name=None):
        self._call("get_system_module")
        for module in self.modules.values():
            if module_id is not None and module.id == module_id:
                return module
            if key is not None and module.key == key:
                return module
            if name is not None and module.name == name:
                return module
        return None

    def list_company_settings(self, company_id):
        self._call("list_company_settings")
        return [s for (cid, _), s in self.company_settings.items() if cid == company_id]

    def list_user_overrides(self, user_id, company_id=None):
        self._call("list_user_overrides")
        return [
            o for (uid, cid, _), o in self.user_overrides.items()
            if uid == user_id and (company_id is None or cid == company_id)
        ]

    def permission_exists(self, permission_key):
        self._call("permission_exists")
        return permission_key in self.permission_keys

    def find_grant(self, user_id, permission_key, company_id=None):
        self._call("find_grant")
        return self.grants.get((user_id, permission_key, company_id))

    def list_grants(self, user_id, company_id=None):
        self._call("list_grants")
        return [g for (uid, _, cid), g in sorted(self.grants.items(), key=lambda kv: kv[0][1])
                if uid == user_id and cid == company_id]

    def find_role_default(self, role, permission_key):
        self._call("find_role_default")
        return self.role_defaults.get((role, permission_key))

    def list_role_defaults(self, role):
        self._call("list_role_defaults")
        return [d for (r, _), d in sorted(self.role_defaults.items()) if r == role]

    def list_permission_keys(self):
        self._call("list_permission_keys")
        return sorted(self.permission_keys)

    def load_preferences_document(self, user_id):
        self._call("load_preferences_document")
        return self.preferences.get(user_id)

    def list_audit(self, company_id=None, user_id=None, limit=50):
        self._call("list_audit")
        rows = [a for a in self.audit
                if (company_id is None or a["company_id"] == company_id)
                and (user_id is None or a["user_id"] == user_id)]
        return list(reversed(rows))[:limit]

    def permission_requirements(self, permission_keys):
        self._call("permission_requirements")
        return {k: self.requirements.get(k, ()) for k in permission_keys if k in self.permission_keys}

    def list_templates(self):
        self._call("list_templates")
        return sorted(self.templates.values(), key=lambda t: t.display_name)

    def get_template(self, template_id=None, *, name=None):
        self._call("get_template")
        for template in self.templates.values():
            if template_id is not None and template.id == template_id:
                return template
            if name is not None and template.name == name:
                return template
        return None

    # ───────── Writes ───────── #
    def upsert_grant(self, user_id, permission_key, company_id, is_granted, granted_by=None, expires_at=None):
        self._call("upsert_grant")
        if permission_key not in self.permission_keys:
            return None
        grant = PermissionGrant(
            user_id=user_id, permission_key=permission_key, company_id=company_id,
            is_granted=is_granted, granted_by=granted_by, expires_at=expires_at,
        )
        self.grants[(user_id, permission_key, company_id)] = grant
        return grant

    def delete_grant(self, user_id, permission_key, company_id):
        self._call("delete_grant")
        return self.grants.pop((user_id, permission_key, company_id), None) is not None

    def apply_grants(self, user_id, company_id, entries, granted_by=None, expires_at=None):
        self._call("apply_grants")
        applied = []
        for key, is_granted in entries:
            if key not in self.permission_keys:
                continue
            grant = PermissionGrant(
                user_id=user_id, permission_key=key, company_id=company_id,
                is_granted=is_granted, granted_by=granted_by, expires_at=expires_at,
            )
            self.grants[(user_id, key, company_id)] = grant
            applied.append(grant)
        return applied

    def upsert_company_setting(self, company_id, module_id, is_enabled=None, locked=None, enabled_by=None):
        self._call("upsert_company_setting")
        current = self.company_settings.get((company_id, module_id)) or CompanyModuleSetting(company_id, module_id)
        setting = CompanyModuleSetting(
            company_id=company_id,
            module_id=module_id,
            is_enabled=current.is_enabled if is_enabled is None else is_enabled,
            is_locked_by_system=current.is_locked_by_system if locked is None else locked,
        )
        self.company_settings[(company_id, module_id)] = setting
        return setting

    def upsert_user_override(self, user_id, company_id, module_id, is_enabled, granted_by=None):
        self._call("upsert_user_override")
        self.set_override(user_id, company_id, module_id, is_enabled)
        return self.user_overrides[(user_id, company_id, module_id)]

    def delete_user_override(self, user_id, company_id, module_id):
        self._call("delete_user_override")
        return self.user_overrides.pop((user_id, company_id, module_id), None) is not None

    def save_preferences_document(self, user_id, items):
        self._call("save_preferences_document")
        self.preferences[user_id] = list(items)

    def create_template(self, name, display_name, permission_keys, target_role="user",
                        description=None, created_by=None):
        self._call("create_template")
        template = PermissionTemplate(
            id=max(self.templates, default=0) + 1, name=name, display_name=display_name,
            permission_keys=tuple(permission_keys), target_role=target_role, description=description,
        )
        self.templates[template.id] = template
        return template

    def record_audit(self, action, *, actor_id=None, user_id=None, company_id=None, subject=None, details=None):
        self._call("record_audit")
        self.audit.append({
            "action": action, "actor_id": actor_id, "user_id": user_id,
            "company_id": company_id, "subject": subject, "details": details or {},
        })


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def cache_clock():
    return FrozenClock(0.0)


@pytest.fixture
def cache(cache_clock):
    return AccessCache(ttl_seconds=300, clock=lambda: cache_clock.now)


@pytest.fixture
def now():
    return FrozenClock(datetime(2026, 10, 18, 12, 0, 0))


@pytest.fixture
def service(store, cache, now):
    svc = AccessService(store, cache=cache)
    svc.permissions.clock = now
    return svc


@pytest.fixture
def sample_tree():
    return (
        MenuItem(id="dashboard", label="Dashboard", path="/dashboard", module="dashboard"),
        MenuItem(id="billing", label="Billing", path="/billing", module="billing"),
        MenuItem(
            id="settings",
            label="Settings",
            children=(
                MenuItem(id="profile-settings", label="Profile", path="/settings/profile"),
                MenuItem(id="company-settings", label="Company", path="/settings/company",
                         company_required=True),
            ),
        ),
    )


# ───────── Application fixtures ───────── #
@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seeded(app):
    """Seeded catalog plus two companies and a handful of profiles."""
    from expensehub.models import Company, Profile
    from expensehub.seeds import provision_company_modules, seed_access_catalog

    seed_access_catalog(app)
    acme = Company(name="Acme")
    globex = Company(name="Globex")
    db.session.add_all([acme, globex])
    db.session.commit()

    people = {
        "user": Profile(email="user@acme.test", role="user", company_id=acme.id),
        "controller": Profile(email="controller@acme.test", role="controller", company_id=acme.id),
        "admin": Profile(email="admin@acme.test", role="admin", company_id=acme.id),
        "other_admin": Profile(email="admin@globex.test", role="admin", company_id=globex.id),
        "super": Profile(email="root@expensehub.test", role="super-admin", company_id=None),
    }
    db.session.add_all(people.values())
    db.session.commit()

    provision_company_modules(app, acme.id, enabled_keys=["expense_management", "process_automation"])
    provision_company_modules(app, globex.id)
    return {"acme": acme.id, "globex": globex.id, **{name: p.id for name, p in people.items()}}


@pytest.fixture
def auth_headers(app):
    from expensehub.models import Profile

    def make(user_id, **headers):
        profile = db.session.get(Profile, user_id)
        token = create_access_token(
            identity=str(profile.id),
            additional_claims={"role": profile.role, "company_id": profile.company_id},
        )
        return {"Authorization": f"Bearer {token}", **headers}

    return make
