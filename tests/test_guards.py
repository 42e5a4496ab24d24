import pytest
from flask import jsonify

from expensehub.access.guards import module_required, permission_required
from expensehub.utils.roles import role_required


@pytest.fixture
def guarded(app):
    @app.route("/guarded/expenses")
    @permission_required("expenses.view", "expenses.approve")
    def any_expense_view():
        return jsonify({"ok": True})

    @app.route("/guarded/expenses-all")
    @permission_required("expenses.view", "expenses.approve", any_of=False)
    def all_expense_keys():
        return jsonify({"ok": True})

    @app.route("/guarded/automation")
    @module_required("process_automation")
    def automation_page():
        return jsonify({"ok": True})

    @app.route("/guarded/admin")
    @role_required("admin", "super-admin")
    def admin_page():
        return jsonify({"ok": True})

    return app.test_client()


def test_permission_required_any_and_all(guarded, seeded, auth_headers):
    user = auth_headers(seeded["user"])
    controller = auth_headers(seeded["controller"])
    assert guarded.get("/guarded/expenses", headers=user).status_code == 200
    assert guarded.get("/guarded/expenses-all", headers=user).status_code == 403
    assert guarded.get("/guarded/expenses-all", headers=controller).status_code == 200


def test_module_required(guarded, seeded, auth_headers):
    assert guarded.get("/guarded/automation", headers=auth_headers(seeded["user"])).status_code == 403
    assert guarded.get("/guarded/automation", headers=auth_headers(seeded["controller"])).status_code == 200


def test_role_required(guarded, seeded, auth_headers):
    assert guarded.get("/guarded/admin", headers=auth_headers(seeded["user"])).status_code == 403
    assert guarded.get("/guarded/admin", headers=auth_headers(seeded["admin"])).status_code == 200


def test_guards_require_identity(guarded, seeded):
    assert guarded.get("/guarded/expenses").status_code == 401
    assert guarded.get("/guarded/automation").status_code == 401
    assert guarded.get("/guarded/admin").status_code == 401
