from datetime import datetime
from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError

from expensehub import db
from expensehub.access.errors import StoreUnavailableError
from expensehub.access.store import SqlAccessStore
from expensehub.models import Profile, SystemModule


@pytest.fixture
def sql_store(app):
    return SqlAccessStore(db.session)


def test_modules_are_normalised_to_value_objects(sql_store, seeded):
    modules = sql_store.list_system_modules()
    automation = next(m for m in modules if m.key == "process_automation")
    assert automation.allowed_roles == frozenset({"admin", "controller", "super-admin"})
    assert automation.type == "add-on"

    ingrid = sql_store.get_system_module(key="ingrid_ai")
    assert ingrid.requires_modules == ("expense_management",)
    assert sql_store.get_system_module(name="Ingrid AI") == ingrid
    assert sql_store.get_system_module(key="missing") is None
    assert sql_store.get_system_module() is None


def test_list_and_tuple_join_results_collapse_to_one_module(seeded):
    row = SystemModule.query.filter_by(key="dashboard").first()
    assert SqlAccessStore._module([row]).key == "dashboard"
    assert SqlAccessStore._module(()) is None
    assert SqlAccessStore._module(None) is None


def test_inactive_profile_is_treated_as_missing(sql_store, seeded):
    profile = db.session.get(Profile, seeded["user"])
    assert sql_store.get_profile(profile.id).role == "user"
    profile.is_active_profile = False
    db.session.commit()
    assert sql_store.get_profile(profile.id) is None


def test_grant_upsert_keeps_one_row(sql_store, seeded):
    expires = datetime(2030, 1, 1)
    sql_store.upsert_grant(seeded["user"], "vendors.delete", seeded["acme"], True)
    grant = sql_store.upsert_grant(seeded["user"], "vendors.delete", seeded["acme"], False, expires_at=expires)
    assert grant.is_granted is False
    assert sql_store.list_grants(seeded["user"], seeded["acme"]) == [grant]
    assert sql_store.find_grant(seeded["user"], "vendors.delete", seeded["acme"]).expires_at == expires
    assert sql_store.upsert_grant(seeded["user"], "nope", seeded["acme"], True) is None

    assert sql_store.delete_grant(seeded["user"], "vendors.delete", seeded["acme"]) is True
    assert sql_store.delete_grant(seeded["user"], "vendors.delete", seeded["acme"]) is False


def test_role_defaults_follow_seed(sql_store, seeded):
    assert sql_store.find_role_default("user", "expenses.view").is_default is True
    assert sql_store.find_role_default("user", "users.delete") is None
    admin_keys = [d.permission_key for d in sql_store.list_role_defaults("admin")]
    assert "users.edit" in admin_keys
    assert not any("delete" in key for key in admin_keys)


def test_company_settings_never_deleted_only_toggled(sql_store, seeded):
    module = sql_store.get_system_module(key="advanced_analytics")
    sql_store.upsert_company_setting(seeded["acme"], module.id, is_enabled=True)
    setting = sql_store.upsert_company_setting(seeded["acme"], module.id, is_enabled=False)
    assert setting.is_enabled is False
    rows = [s for s in sql_store.list_company_settings(seeded["acme"]) if s.module_id == module.id]
    assert len(rows) == 1


def test_preferences_document_round_trip(sql_store, seeded):
    assert sql_store.load_preferences_document(seeded["user"]) is None
    sql_store.save_preferences_document(seeded["user"], [{"id": "billing", "isHidden": True}])
    assert sql_store.load_preferences_document(seeded["user"]) == [{"id": "billing", "isHidden": True}]


def test_database_errors_become_store_unavailable(app):
    session = mock.Mock()
    session.query.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
    store = SqlAccessStore(session)

    with pytest.raises(StoreUnavailableError) as excinfo:
        store.list_permission_keys()
    assert excinfo.value.context["operation"] == "list_permission_keys"
    # reads roll back too so the session is usable for the next statement
    session.rollback.assert_called_once()

    with pytest.raises(StoreUnavailableError):
        store.delete_user_override(1, 1, 1)
    assert session.rollback.call_count == 2


def test_audit_entries_newest_first(sql_store, seeded):
    sql_store.record_audit("granted", actor_id=seeded["admin"], user_id=seeded["user"],
                           company_id=seeded["acme"], subject="vendors.view")
    sql_store.record_audit("revoked", actor_id=seeded["admin"], user_id=seeded["user"],
                           company_id=seeded["acme"], subject="vendors.view")
    entries = sql_store.list_audit(company_id=seeded["acme"])
    assert [e["action"] for e in entries[:2]] == ["revoked", "granted"]
    assert sql_store.list_audit(company_id=seeded["globex"]) == []


def test_permission_requirements_follow_catalog(sql_store, seeded):
    requirements = sql_store.permission_requirements(["users.delete", "users.view", "missing.key"])
    assert requirements == {"users.delete": ("users.edit",), "users.view": ()}
    assert sql_store.permission_requirements([]) == {}


def test_apply_grants_writes_every_known_key_once(sql_store, seeded):
    sql_store.upsert_grant(seeded["user"], "vendors.delete", seeded["acme"], False)
    applied = sql_store.apply_grants(
        seeded["user"], seeded["acme"],
        [("vendors.delete", True), ("vendors.edit", True), ("nope.nope", True)],
        granted_by=seeded["admin"],
    )
    assert [(g.permission_key, g.is_granted) for g in applied] == [("vendors.delete", True), ("vendors.edit", True)]
    grants = sql_store.list_grants(seeded["user"], seeded["acme"])
    assert sorted(g.permission_key for g in grants) == ["vendors.delete", "vendors.edit"]
    assert all(g.granted_by == seeded["admin"] for g in grants)


def test_templates_are_seeded_and_created(sql_store, seeded):
    approver = sql_store.get_template(name="expense_approver")
    assert approver.is_system_template is True
    assert approver.permission_keys == ("expenses.view", "expenses.review", "expenses.approve")
    assert sql_store.get_template(approver.id) == approver
    assert sql_store.get_template() is None

    created = sql_store.create_template("auditor", "Auditor", ["analytics.view"], created_by=seeded["admin"])
    assert created.is_system_template is False
    assert "auditor" in [t.name for t in sql_store.list_templates()]
