from datetime import date

from labourhub.models.models import AuditLog, Project
from labourhub.services import audit
from labourhub.services.projects import create_project, update_project

from conftest import auth_headers


def test_compute_diff_keeps_only_changes():
    before = {"name": "A", "location": "Soweto", "updated_at": "2025-08-01T10:00:00"}
    after = {"name": "B", "location": "Soweto", "updated_at": "2025-08-02T10:00:00"}
    assert audit.compute_diff(before, after) == {"name": {"old": "A", "new": "B"}}


def test_compute_diff_new_key():
    assert audit.compute_diff({}, {"budget": "10.00"}) == {"budget": {"old": None, "new": "10.00"}}


def test_project_rename_audit(db, admin):
    project = create_project(db, {"name": "A", "location": "Soweto"}, admin.id)
    update_project(db, project.id, {"name": "B", "location": "Soweto"}, admin.id)

    row = (
        db.query(AuditLog)
        .filter(AuditLog.entity_type == "project", AuditLog.action == "UPDATE")
        .one()
    )
    assert row.changes == {"name": {"old": "A", "new": "B"}}
    assert row.entity_id == str(project.id)
    assert row.user_name == "Alice Admin"
    assert row.user_email == admin.email


def test_user_name_is_a_snapshot(db, admin):
    project = create_project(db, {"name": "Snapshot"}, admin.id)
    admin.first_name = "Renamed"
    db.commit()

    created = db.query(AuditLog).filter(AuditLog.entity_id == str(project.id), AuditLog.action == "CREATE").one()
    assert created.user_name == "Alice Admin"
    assert created.changes["new"]["name"] == "Snapshot"


def test_audit_failure_never_fails_the_operation(db, admin, monkeypatch):
    def boom(db, event):
        raise RuntimeError("audit store down")

    monkeypatch.setattr(audit, "create_audit_log", boom)
    project = create_project(db, {"name": "Still Saved"}, admin.id)

    assert db.get(Project, project.id).name == "Still Saved"
    assert db.query(AuditLog).count() == 0


def test_audit_failure_rolls_back_only_the_audit_row(db, admin, monkeypatch):
    project = create_project(db, {"name": "Before"}, admin.id)
    real_create = audit.create_audit_log

    def failing_insert(db, event):
        db.add(AuditLog(action=event.action, entity_type=event.entity_type, entity_id=str(event.entity_id)))
        raise RuntimeError("constraint violated")

    monkeypatch.setattr(audit, "create_audit_log", failing_insert)
    update_project(db, project.id, {"name": "After"}, admin.id)
    monkeypatch.setattr(audit, "create_audit_log", real_create)

    assert db.get(Project, project.id).name == "After"
    assert db.query(AuditLog).filter(AuditLog.action == "UPDATE").count() == 0


def test_unknown_user_is_recorded_as_unknown(db):
    row = audit.log_action(db, "ASSIGN", "project", "abc", None, {"note": "system"})
    assert row.user_name == "Unknown"
    assert row.meta == {"note": "system"}
    assert row.changes is None


def test_audit_log_query_api(client, admin, make_user):
    headers = auth_headers(admin)
    project = client.post("/projects", json={"name": "A", "location": "Soweto"}, headers=headers).json()
    client.put(f"/projects/{project['id']}", json={"name": "B"}, headers=headers)

    logs = client.get("/audit-logs", params={"entity_type": "project", "action": "update"}, headers=headers).json()
    assert len(logs) == 1
    assert logs[0]["changes"] == {"name": {"old": "A", "new": "B"}}

    one = client.get(f"/audit-logs/{logs[0]['id']}", headers=headers)
    assert one.status_code == 200
    assert one.json()["user_email"] == admin.email

    by_user = client.get("/audit-logs", params={"user_id": str(admin.id)}, headers=headers).json()
    assert len(by_user) == 2

    supervisor = make_user("supervisor")
    assert client.get("/audit-logs", headers=auth_headers(supervisor)).status_code == 403


def test_audit_log_date_filter(client, admin):
    headers = auth_headers(admin)
    client.post("/projects", json={"name": "A"}, headers=headers)
    future = client.get("/audit-logs", params={"start": f"{date.today().year + 1}-01-01T00:00:00"}, headers=headers)
    assert future.json() == []
