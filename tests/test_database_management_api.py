from unittest.mock import MagicMock

from propdesk.auth.security import create_access_token
from propdesk.services.table_store import DDLExecutor


URL = "/database-management"


def post(client, identity, body):
    headers = identity["headers"] if identity else {}
    return client.post(URL, json=body, headers=headers)


def test_missing_token_is_unauthorized(client):
    r = client.post(URL, json={"action": "list_tables"})
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


def test_garbage_and_non_bearer_tokens_are_unauthorized(client):
    r = client.post(URL, json={"action": "list_tables"}, headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}

    r = client.post(URL, json={"action": "list_tables"}, headers={"Authorization": "Basic dXNlcjpwYXNz"})
    assert r.status_code == 401


def test_expired_token_is_unauthorized(client, super_admin):
    token = create_access_token(super_admin["id"], ttl_seconds=-60)
    r = client.post(URL, json={"action": "list_tables"}, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_non_super_admin_is_denied(client, manager):
    r = post(client, manager, {"action": "list_tables"})
    assert r.status_code == 403
    assert r.json()["error"].startswith("Access denied")


def test_auth_checked_before_body(client, manager):
    r = client.post(URL, content=b"{not json", headers={**manager["headers"], "Content-Type": "application/json"})
    assert r.status_code == 403


def test_invalid_json_body(client, super_admin):
    r = client.post(URL, content=b"{not json", headers={**super_admin["headers"], "Content-Type": "application/json"})
    assert r.status_code == 400
    assert "error" in r.json()


def test_unknown_action(client, super_admin):
    r = post(client, super_admin, {"action": "drop_database"})
    assert r.status_code == 400
    assert r.json() == {"error": "Unknown action: drop_database"}


def test_list_tables(client, super_admin):
    r = post(client, super_admin, {"action": "list_tables"})
    assert r.status_code == 200
    tables = {t["name"]: t["row_count"] for t in r.json()["tables"]}
    assert len(tables) == 20
    assert tables["user_roles"] == 1
    assert tables["profiles"] == 1


def test_disallowed_table(client, super_admin):
    r = post(client, super_admin, {"action": "get_table_data", "table": "pg_shadow"})
    assert r.status_code == 400
    assert r.json() == {"error": "Table 'pg_shadow' is not allowed"}


def test_add_column_then_audit_log(client, super_admin):
    r = post(
        client,
        super_admin,
        {"action": "add_column", "table": "invoices", "columnName": "late_fee", "columnType": "numeric", "nullable": True},
    )
    assert r.status_code == 200
    assert r.json()["success"] is True

    r = post(client, super_admin, {"action": "get_audit_log"})
    assert r.status_code == 200
    entries = r.json()["data"]
    added = [e for e in entries if e["action"] == "COLUMN_ADDED"]
    assert len(added) == 1
    assert added[0]["entity_type"] == "invoices"
    assert added[0]["user_id"] == super_admin["id"]
    assert added[0]["details"]["column"] == "late_fee"

    r = post(client, super_admin, {"action": "get_table_schema", "table": "invoices"})
    assert "late_fee" in [c["column_name"] for c in r.json()["columns"]]


def test_add_column_rejects_injection(client, super_admin):
    r = post(
        client,
        super_admin,
        {"action": "add_column", "table": "invoices", "columnName": 'x"; DROP TABLE tenants; --', "columnType": "text"},
    )
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid identifier")


def test_delete_protected_column_issues_no_ddl(client, super_admin, monkeypatch):
    spy = MagicMock()
    monkeypatch.setattr(DDLExecutor, "execute", spy)
    r = post(client, super_admin, {"action": "delete_column", "table": "tenants", "columnName": "organization_id"})
    assert r.status_code == 400
    assert "protected column" in r.json()["error"]
    spy.assert_not_called()


def test_row_lifecycle(client, super_admin, organization):
    r = post(
        client,
        super_admin,
        {"action": "insert_row", "table": "tenants", "rowData": {"name": "Grace", "organization_id": organization.id}},
    )
    assert r.status_code == 200
    row_id = r.json()["data"]["id"]

    r = post(client, super_admin, {"action": "update_row", "table": "tenants", "id": row_id, "rowData": {"phone": "555"}})
    assert r.status_code == 200
    assert r.json()["data"]["phone"] == "555"

    r = post(client, super_admin, {"action": "get_table_data", "table": "tenants", "search": row_id})
    assert r.json()["total"] == 1

    r = post(client, super_admin, {"action": "delete_row", "table": "tenants", "id": row_id})
    assert r.json() == {"success": True}

    r = post(client, super_admin, {"action": "get_audit_log", "entityType": "tenants"})
    actions = sorted(e["action"] for e in r.json()["data"])
    assert actions == ["ROW_DELETED", "ROW_INSERTED", "ROW_UPDATED"]


def test_database_health_and_export(client, super_admin):
    r = post(client, super_admin, {"action": "database_health"})
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert r.json()["totalTables"] == 20

    r = post(client, super_admin, {"action": "export_table", "table": "profiles", "format": "csv"})
    assert r.status_code == 200
    assert r.json()["format"] == "csv"
    assert "root@example.com" in r.json()["data"]


def test_list_enums_fallback(client, super_admin):
    r = post(client, super_admin, {"action": "list_enums"})
    assert r.status_code == 200
    assert r.json()["enums"][0]["name"] == "app_role"


def test_preflight(client):
    r = client.options(URL)
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "*"
    assert "OPTIONS" in r.headers["access-control-allow-methods"]


def test_migration_status(client, super_admin):
    r = client.get(f"{URL}/migration-status", headers=super_admin["headers"])
    assert r.status_code == 200
    assert r.json()["data"]["isEnhanced"] is True


def test_migration_status_requires_super_admin(client, manager):
    r = client.get(f"{URL}/migration-status", headers=manager["headers"])
    assert r.status_code == 403


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
