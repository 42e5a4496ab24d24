from expensehub.models import PermissionTemplate, SystemModule


def module_id(key):
    return SystemModule.query.filter_by(key=key).first().id


def menu_ids(items):
    return [item["id"] for item in items]


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_requests_without_identity_are_rejected(client, seeded):
    response = client.get("/api/v1/access/menu")
    assert response.status_code == 401
    assert response.get_json() == {"error": "Authentication required."}


def test_single_permission_check(client, seeded, auth_headers):
    headers = auth_headers(seeded["user"])
    granted = client.get("/api/v1/access/permissions/expenses.view", headers=headers).get_json()
    assert granted["granted"] is True
    assert granted["source"] == "role"

    denied = client.get("/api/v1/access/permissions/vendors.delete", headers=headers).get_json()
    assert denied["granted"] is False


def test_batch_permission_check(client, seeded, auth_headers):
    headers = auth_headers(seeded["user"])
    response = client.post(
        "/api/v1/access/permissions/check",
        json={"keys": ["expenses.view", "users.delete"]},
        headers=headers,
    )
    body = response.get_json()
    assert response.status_code == 200
    assert [r["granted"] for r in body["results"]] == [True, False]
    assert body["has_any"] is True
    assert body["has_all"] is False

    bad = client.post("/api/v1/access/permissions/check", json={"keys": "expenses.view"}, headers=headers)
    assert bad.status_code == 400


def test_checking_a_user_in_another_company_is_forbidden(client, seeded, auth_headers):
    response = client.get(
        f"/api/v1/access/permissions/expenses.view?user_id={seeded['user']}",
        headers=auth_headers(seeded["other_admin"]),
    )
    assert response.status_code == 403


def test_effective_permissions_listing(client, seeded, auth_headers):
    body = client.get("/api/v1/access/permissions", headers=auth_headers(seeded["user"])).get_json()
    keys = [p["permission_key"] for p in body["permissions"]]
    assert "expenses.create" in keys
    assert "users.view" not in keys
    assert body["warnings"] == []


def test_user_modules(client, seeded, auth_headers):
    body = client.get("/api/v1/access/modules", headers=auth_headers(seeded["user"])).get_json()
    keys = [m["key"] for m in body["modules"]]
    assert "expense_management" in keys
    assert "dashboard" in keys
    assert "process_automation" not in keys
    assert "ingrid_ai" not in keys

    controller = client.get("/api/v1/access/modules?type=add-on", headers=auth_headers(seeded["controller"]))
    assert [m["key"] for m in controller.get_json()["modules"]] == ["expense_management", "process_automation"]

    bogus = client.get("/api/v1/access/modules?type=plugin", headers=auth_headers(seeded["user"]))
    assert bogus.status_code == 400


def test_company_module_access(client, seeded, auth_headers):
    headers = auth_headers(seeded["admin"])
    own = client.get(f"/api/v1/access/companies/{seeded['acme']}/modules/expense_management", headers=headers)
    assert own.get_json()["has_access"] is True

    foreign = client.get(f"/api/v1/access/companies/{seeded['globex']}/modules/expense_management",
                         headers=headers)
    assert foreign.status_code == 403

    root = client.get(f"/api/v1/access/companies/{seeded['globex']}/modules/expense_management",
                      headers=auth_headers(seeded["super"]))
    assert root.get_json()["has_access"] is False


def test_menu_for_regular_user(client, seeded, auth_headers):
    body = client.get("/api/v1/access/menu", headers=auth_headers(seeded["user"])).get_json()
    assert menu_ids(body["menu"]) == ["dashboard", "vendors", "customers", "expenses", "accounting", "settings"]
    settings = body["menu"][-1]
    assert menu_ids(settings["children"]) == ["profile-settings"]
    assert body["menu"][0]["label"] == "Dashboard"

    bad = client.get("/api/v1/access/menu?mode=sideways", headers=auth_headers(seeded["user"]))
    assert bad.status_code == 400


def test_saving_preferences_reorders_and_hides(client, seeded, auth_headers):
    headers = auth_headers(seeded["user"])
    response = client.put(
        "/api/v1/access/menu/preferences",
        json={"items": [
            {"id": "expenses", "isHidden": False},
            {"id": "accounting", "isHidden": True},
            {"id": "not-a-menu-item", "isHidden": False},
        ]},
        headers=headers,
    )
    assert response.status_code == 200
    assert menu_ids(response.get_json()["preferences"]) == ["expenses", "accounting"]

    body = client.get("/api/v1/access/menu", headers=headers).get_json()
    assert menu_ids(body["menu"])[:2] == ["expenses", "dashboard"]
    assert "accounting" not in menu_ids(body["menu"])
    assert "accounting" in menu_ids(body["editable"])


def test_preferences_body_must_be_a_list(client, seeded, auth_headers):
    response = client.put("/api/v1/access/menu/preferences", json={"items": "dashboard"},
                          headers=auth_headers(seeded["user"]))
    assert response.status_code == 400


def test_preferences_user_id_must_be_an_integer(client, seeded, auth_headers):
    response = client.put(
        "/api/v1/access/menu/preferences",
        json={"user_id": str(seeded["user"]), "items": [{"id": "expenses", "isHidden": True}]},
        headers=auth_headers(seeded["admin"]),
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "user_id must be an integer."


def test_admin_grant_is_visible_immediately(client, seeded, auth_headers):
    user_headers = auth_headers(seeded["user"])
    before = client.get("/api/v1/access/permissions/vendors.delete", headers=user_headers).get_json()
    assert before["granted"] is False

    response = client.post(
        f"/manage/users/{seeded['user']}/permissions",
        json={"permission_key": "vendors.delete", "action": "grant"},
        headers=auth_headers(seeded["admin"]),
    )
    assert response.status_code == 200

    after = client.get("/api/v1/access/permissions/vendors.delete", headers=user_headers).get_json()
    assert after["granted"] is True
    assert after["source"] == "user"

    cleared = client.post(
        f"/manage/users/{seeded['user']}/permissions",
        json={"permission_key": "vendors.delete", "action": "clear"},
        headers=auth_headers(seeded["admin"]),
    )
    assert cleared.get_json()["cleared"] is True


def test_admin_cannot_manage_other_company(client, seeded, auth_headers):
    response = client.post(
        f"/manage/users/{seeded['user']}/permissions",
        json={"permission_key": "vendors.delete", "action": "grant"},
        headers=auth_headers(seeded["other_admin"]),
    )
    assert response.status_code == 403


def test_manage_validation_and_unknown_keys(client, seeded, auth_headers):
    headers = auth_headers(seeded["admin"])
    url = f"/manage/users/{seeded['user']}/permissions"
    assert client.post(url, json={"permission_key": "vendors.delete", "action": "maybe"},
                       headers=headers).status_code == 400
    assert client.post(url, json={"permission_key": "nope.nope", "action": "grant"},
                       headers=headers).status_code == 404
    assert client.post(url, json={"permission_key": "vendors.view", "action": "grant", "expires_at": "soon"},
                       headers=headers).status_code == 400


def test_regular_user_cannot_reach_manage(client, seeded, auth_headers):
    response = client.get(f"/manage/users/{seeded['user']}/permissions", headers=auth_headers(seeded["user"]))
    assert response.status_code == 403


def test_company_module_toggle_and_user_override(client, seeded, auth_headers):
    admin_headers = auth_headers(seeded["admin"])
    user_headers = auth_headers(seeded["user"])
    ingrid = module_id("ingrid_ai")

    response = client.post(f"/manage/companies/{seeded['acme']}/modules/{ingrid}",
                           json={"is_enabled": True}, headers=admin_headers)
    assert response.status_code == 200
    keys = [m["key"] for m in client.get("/api/v1/access/modules", headers=user_headers).get_json()["modules"]]
    assert "ingrid_ai" in keys

    response = client.post(f"/manage/users/{seeded['user']}/modules/{ingrid}",
                           json={"action": "disable"}, headers=admin_headers)
    assert response.get_json()["is_enabled"] is False
    keys = [m["key"] for m in client.get("/api/v1/access/modules", headers=user_headers).get_json()["modules"]]
    assert "ingrid_ai" not in keys

    locked = client.post(f"/manage/companies/{seeded['acme']}/modules/{module_id('dashboard')}",
                         json={"is_enabled": False}, headers=admin_headers)
    assert locked.status_code == 403


def test_dependency_check_on_company_module(client, seeded, auth_headers):
    response = client.post(
        f"/manage/companies/{seeded['globex']}/modules/{module_id('ingrid_ai')}",
        json={"is_enabled": True},
        headers=auth_headers(seeded["super"]),
    )
    assert response.status_code == 409


def test_audit_log_is_scoped_to_company(client, seeded, auth_headers):
    client.post(
        f"/manage/users/{seeded['user']}/permissions",
        json={"permission_key": "vendors.delete", "action": "deny"},
        headers=auth_headers(seeded["admin"]),
    )
    own = client.get("/manage/audit", headers=auth_headers(seeded["admin"])).get_json()["entries"]
    assert own[0]["action"] == "revoked"
    assert own[0]["subject"] == "vendors.delete"

    other = client.get("/manage/audit", headers=auth_headers(seeded["other_admin"])).get_json()["entries"]
    assert all(entry["company_id"] == seeded["globex"] for entry in other)


def test_super_admin_impersonation(client, seeded, auth_headers):
    headers = auth_headers(seeded["super"], **{"X-Impersonate-User": str(seeded["user"])})
    body = client.get("/api/v1/access/permissions/users.delete", headers=headers).get_json()
    assert body["granted"] is False

    ignored = auth_headers(seeded["admin"], **{"X-Impersonate-User": str(seeded["super"])})
    body = client.get("/api/v1/access/permissions/users.delete", headers=ignored).get_json()
    assert body["granted"] is False

    missing = auth_headers(seeded["super"], **{"X-Impersonate-User": "9999"})
    assert client.get("/api/v1/access/menu", headers=missing).status_code == 404


def test_current_user_helpers(app, seeded, auth_headers):
    from expensehub.permissions import user_can, user_has_module

    with app.test_request_context(headers=auth_headers(seeded["user"])):
        assert user_can("expenses.view") is True
        assert user_can("users.delete") is False
        assert user_has_module("expense_management") is True
        assert user_has_module("process_automation") is False

    with app.test_request_context():
        assert user_can("expenses.view") is False


def test_bulk_permission_update(client, seeded, auth_headers):
    headers = auth_headers(seeded["admin"])
    response = client.post(
        f"/manage/users/{seeded['user']}/permissions/bulk",
        json={"permissions": [
            {"permission_key": "expenses.approve", "is_granted": True},
            {"permission_key": "users.delete", "is_granted": True},
            {"permission_key": "nope.nope", "is_granted": True},
        ]},
        headers=headers,
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["results"] == [{"permission_key": "expenses.approve", "is_granted": True}]
    assert {e["permission_key"] for e in body["errors"]} == {"users.delete", "nope.nope"}
    assert body["summary"] == {"total_requested": 3, "successful": 1, "failed": 2}

    check = client.get("/api/v1/access/permissions/expenses.approve", headers=auth_headers(seeded["user"]))
    assert check.get_json()["granted"] is True

    bad = client.post(f"/manage/users/{seeded['user']}/permissions/bulk",
                      json={"permissions": [{"permission_key": "expenses.view"}]}, headers=headers)
    assert bad.status_code == 400


def test_single_grant_with_missing_requirement_conflicts(client, seeded, auth_headers):
    response = client.post(
        f"/manage/users/{seeded['user']}/permissions",
        json={"permission_key": "users.delete", "action": "grant"},
        headers=auth_headers(seeded["admin"]),
    )
    assert response.status_code == 409


def test_permission_templates(client, seeded, auth_headers):
    headers = auth_headers(seeded["admin"])
    listed = client.get("/manage/templates", headers=headers).get_json()["templates"]
    assert {"expense_approver", "automation_operator", "vendor_manager"} <= {t["name"] for t in listed}

    created = client.post("/manage/templates", json={
        "name": "auditor",
        "display_name": "Auditor",
        "permission_keys": ["expenses.view", "analytics.view"],
    }, headers=headers)
    assert created.status_code == 201
    assert created.get_json()["is_system_template"] is False

    duplicate = client.post("/manage/templates", json={
        "name": "auditor", "display_name": "Auditor", "permission_keys": ["expenses.view"],
    }, headers=headers)
    assert duplicate.status_code == 409
    unknown = client.post("/manage/templates", json={
        "name": "ghost", "display_name": "Ghost", "permission_keys": ["ghost.key"],
    }, headers=headers)
    assert unknown.status_code == 400

    template_id = PermissionTemplate.query.filter_by(name="expense_approver").first().id
    applied = client.post(f"/manage/templates/{template_id}/apply",
                          json={"user_id": seeded["user"]}, headers=headers)
    assert applied.status_code == 200
    assert applied.get_json()["summary"]["failed"] == 0
    check = client.get("/api/v1/access/permissions/expenses.review", headers=auth_headers(seeded["user"]))
    assert check.get_json()["granted"] is True

    foreign = client.post(f"/manage/templates/{template_id}/apply",
                          json={"user_id": seeded["user"]}, headers=auth_headers(seeded["other_admin"]))
    assert foreign.status_code == 403
    missing = client.post("/manage/templates/9999/apply", json={"user_id": seeded["user"]}, headers=headers)
    assert missing.status_code == 404
