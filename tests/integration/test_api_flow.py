"""End-to-end request / decide flows through the HTTP API."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from sopgate.api.routers import health as health_router
from sopgate.db.models import Document
from tests.factories import TEST_PASSWORD, create_approver, create_document, create_pending_operation

pytestmark = pytest.mark.integration


NEW_DOCUMENT = {
    "fileName": "forklift-operation.pdf",
    "filePath": "/srv/sops/acme/ops/forklift-operation.pdf",
    "fileSize": 52000,
    "category": "ops",
    "brand": "acme",
    "uploadedBy": "alice",
    "requestedBy": "alice@example.com",
    "comments": "first issue",
}


@pytest.fixture
def approver(db_session):
    approver = create_approver(db_session, username="bob", name="Bob Reviewer", email="bob@example.com")
    db_session.commit()
    return approver


@pytest.fixture
def document(db_session):
    document = create_document(db_session, file_name="lockout.pdf", brand="acme", category="safety")
    db_session.commit()
    return document


def credentials(**extra):
    return {"username": "bob", "password": TEST_PASSWORD, **extra}


class TestDocumentRequests:

    def test_create_request_is_pending(self, client, approver, db_session):
        response = client.post("/api/documents", json=NEW_DOCUMENT)

        assert response.status_code == 202
        data = response.json()
        assert data["operationKind"] == "CREATE"
        assert data["status"] == "PENDING"
        assert data["assignedApproverId"] == str(approver.id)
        assert data["proposedPayload"]["fileName"] == "forklift-operation.pdf"
        assert data["proposedPayload"]["version"] == "v1.0"
        assert db_session.query(Document).count() == 0

    def test_create_request_validation(self, client):
        response = client.post("/api/documents", json={"fileName": "x.pdf", "requestedBy": "alice"})

        assert response.status_code == 422

    def test_modify_request(self, client, approver, document):
        response = client.patch(
            f"/api/documents/{document.id}",
            json={"brand": "globex", "requestedBy": "alice"},
        )

        assert response.status_code == 202
        assert response.json()["proposedPayload"] == {
            "changes": {"brand": {"old": "acme", "new": "globex"}}
        }

        pending = client.get(f"/api/documents/{document.id}/pending").json()
        assert [op["operationKind"] for op in pending] == ["MODIFY"]

    def test_modify_without_fields(self, client, document):
        response = client.patch(f"/api/documents/{document.id}", json={"requestedBy": "alice"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_argument"

    def test_modify_unknown_document(self, client):
        response = client.patch(f"/api/documents/{uuid4()}", json={"brand": "x", "requestedBy": "alice"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_delete_request_captures_snapshot(self, client, document):
        response = client.delete(
            f"/api/documents/{document.id}",
            params={"requested_by": "alice", "reason": "superseded"},
        )

        assert response.status_code == 202
        payload = response.json()["proposedPayload"]
        assert payload["snapshot"]["fileName"] == "lockout.pdf"
        assert payload["reason"] == "superseded"
        assert client.get(f"/api/documents/{document.id}").status_code == 200

    def test_unknown_approver_hint(self, client):
        response = client.post("/api/documents", json={**NEW_DOCUMENT, "approverId": str(uuid4())})

        assert response.status_code == 400


class TestDecisions:

    def test_approve_create(self, client, approver, notifier):
        operation = client.post("/api/documents", json=NEW_DOCUMENT).json()

        response = client.post(f"/api/approvals/{operation['id']}/approve", json=credentials(comments="ok"))

        assert response.status_code == 200
        assert response.json() == {
            "operationId": operation["id"],
            "status": "APPROVED",
            "message": "Operation approved and applied",
        }

        documents = client.get("/api/documents").json()
        assert [d["fileName"] for d in documents] == ["forklift-operation.pdf"]
        assert client.get(f"/api/approvals/{operation['id']}").status_code == 404
        assert client.get("/api/approvals/pending").json() == []

        assert [event.value for event in notifier.events()] == ["approval_requested", "operation_approved"]
        assert notifier.sent[0][0] == "bob@example.com"
        assert notifier.sent[1][0] == "alice@example.com"

    def test_reject_delete(self, client, approver, document):
        operation = client.delete(
            f"/api/documents/{document.id}", params={"requested_by": "alice"}
        ).json()

        response = client.post(
            f"/api/approvals/{operation['id']}/reject", json=credentials(comments="still in use")
        )

        assert response.status_code == 200
        assert response.json()["status"] == "REJECTED"
        assert client.get(f"/api/documents/{document.id}").status_code == 200

        history = client.get("/api/history", params={"pending_operation_id": operation["id"]}).json()
        assert sorted(entry["action"] for entry in history["items"]) == ["DELETE_REJECTED", "DELETE_REQUESTED"]
        rejected = [entry for entry in history["items"] if entry["action"] == "DELETE_REJECTED"][0]
        assert rejected["actorName"] == "Bob Reviewer"
        assert rejected["comments"] == "still in use"

    def test_reject_requires_comments(self, client, approver):
        operation = client.post("/api/documents", json=NEW_DOCUMENT).json()

        response = client.post(f"/api/approvals/{operation['id']}/reject", json=credentials())

        assert response.status_code == 400
        assert client.get(f"/api/approvals/{operation['id']}").json()["status"] == "PENDING"

    def test_wrong_password(self, client, approver):
        operation = client.post("/api/documents", json=NEW_DOCUMENT).json()

        response = client.post(
            f"/api/approvals/{operation['id']}/approve",
            json={"username": "bob", "password": "wrong"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert client.get(f"/api/approvals/{operation['id']}").json()["status"] == "PENDING"

    def test_unknown_user_looks_like_wrong_password(self, client, approver):
        operation = client.post("/api/documents", json=NEW_DOCUMENT).json()

        unknown = client.post(
            f"/api/approvals/{operation['id']}/approve", json={"username": "mallory", "password": "x"}
        )
        wrong = client.post(
            f"/api/approvals/{operation['id']}/approve", json={"username": "bob", "password": "x"}
        )

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()

    def test_lockout_after_repeated_failures(self, client, approver, settings):
        operation = client.post("/api/documents", json=NEW_DOCUMENT).json()
        url = f"/api/approvals/{operation['id']}/approve"

        for _ in range(settings.auth_max_attempts):
            assert client.post(url, json={"username": "bob", "password": "wrong"}).status_code == 401

        response = client.post(url, json=credentials())

        assert response.status_code == 401
        assert client.get(f"/api/approvals/{operation['id']}").json()["status"] == "PENDING"

    def test_second_decision(self, client, approver):
        operation = client.post("/api/documents", json=NEW_DOCUMENT).json()
        client.post(f"/api/approvals/{operation['id']}/approve", json=credentials())

        response = client.post(
            f"/api/approvals/{operation['id']}/reject", json=credentials(comments="too late")
        )

        assert response.status_code == 404
        assert len(client.get("/api/documents").json()) == 1

    def test_unknown_operation(self, client, approver):
        response = client.post(f"/api/approvals/{uuid4()}/approve", json=credentials())

        assert response.status_code == 404

    def test_execution_failure(self, client, approver, document, db_session):
        operation = client.patch(
            f"/api/documents/{document.id}", json={"brand": "globex", "requestedBy": "alice"}
        ).json()
        db_session.delete(db_session.get(Document, document.id))
        db_session.commit()

        response = client.post(f"/api/approvals/{operation['id']}/approve", json=credentials())

        assert response.status_code == 500
        assert response.json()["error"] == "execution_failure"
        assert client.get(f"/api/approvals/{operation['id']}").json()["status"] == "PENDING"


class TestQueries:

    def test_pending_filtered_by_approver(self, client, db_session):
        first = create_approver(db_session)
        second = create_approver(db_session)
        db_session.commit()

        client.post("/api/documents", json={**NEW_DOCUMENT, "approverId": str(second.id)})

        assert client.get("/api/approvals/pending", params={"approver_id": str(first.id)}).json() == []
        assert len(client.get("/api/approvals/pending", params={"approver_id": str(second.id)}).json()) == 1

    def test_approvers_lists_active_only(self, client, db_session):
        create_approver(db_session, username="active-one")
        create_approver(db_session, username="retired", is_active=False)
        db_session.commit()

        usernames = [a["username"] for a in client.get("/api/approvers").json()]

        assert usernames == ["active-one"]

    def test_documents_filter(self, client, db_session):
        create_document(db_session, brand="acme", category="safety")
        create_document(db_session, brand="globex", category="safety")
        db_session.commit()

        assert len(client.get("/api/documents", params={"brand": "acme"}).json()) == 1

    def test_history_pagination(self, client, approver):
        for n in range(3):
            client.post("/api/documents", json={**NEW_DOCUMENT, "fileName": f"doc-{n}.pdf"})

        page = client.get("/api/history", params={"per_page": 2}).json()

        assert page["total"] == 3
        assert page["pages"] == 2
        assert len(page["items"]) == 2


class TestHealth:

    @pytest.fixture
    def stub_dependencies(self, monkeypatch):
        """Replace the broker and storage checks; returns a setter for their results."""
        results = {"broker": {"status": "healthy"}, "storage": {"status": "healthy"}}
        monkeypatch.setattr(health_router, "check_broker", lambda settings: results["broker"])
        monkeypatch.setattr(health_router, "check_storage", lambda settings: results["storage"])
        return results

    def test_root(self, client):
        assert client.get("/").json()["name"] == "SOP Gate"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/health/live").json()["status"] == "alive"

    def test_ready(self, client, stub_dependencies):
        response = client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["database"]["dialect"] == "sqlite"
        assert data["checks"]["backlog"]["pending"] == 0

    def test_ready_degraded_without_broker(self, client, stub_dependencies):
        stub_dependencies["broker"] = {"status": "unhealthy", "error": "connection refused"}

        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_not_ready_when_storage_full(self, client, stub_dependencies):
        stub_dependencies["storage"] = {"status": "critical"}

        assert client.get("/health/ready").status_code == 503

    def test_backlog_reports_lagging_sweeper(self, client, stub_dependencies, db_session):
        create_pending_operation(db_session, requested_at=datetime.utcnow() - timedelta(days=30))
        db_session.commit()

        data = client.get("/health/ready").json()

        assert data["status"] == "degraded"
        assert data["checks"]["backlog"]["status"] == "warning"
        assert data["checks"]["backlog"]["pending"] == 1


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ({"database": "healthy", "broker": "healthy"}, "ready"),
        ({"database": "healthy", "broker": "unhealthy"}, "degraded"),
        ({"database": "healthy", "storage": "unknown"}, "degraded"),
        ({"database": "unhealthy", "broker": "healthy"}, "not_ready"),
        ({"database": "healthy", "storage": "critical"}, "not_ready"),
    ],
)
def test_overall_status(statuses, expected):
    checks = {name: {"status": value} for name, value in statuses.items()}

    assert health_router.overall_status(checks) == expected
