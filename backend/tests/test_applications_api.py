import pytest

from licence_admin import repositories
from licence_admin.errors import StorageError

BASE = "/admin/aapi"
APPS = f"{BASE}/applications"


@pytest.fixture
def submitted(client, application_payload):
    r = client.post(APPS, json=application_payload())
    assert r.status_code == 201
    return r.json()


def test_diagnostics(client):
    r = client.get(f"{BASE}/test")
    assert r.status_code == 200
    assert r.json()["message"] == "Backend is working!"
    assert "timestamp" in r.json()
    h = client.get(f"{BASE}/health").json()
    assert h["status"] == "OK"
    assert h["service"] == "Application Admin API"


def test_unknown_route(client):
    r = client.get("/nowhere")
    assert r.status_code == 404
    assert r.json() == {"error": "Route not found"}


def test_request_id_is_propagated(client):
    r = client.get(f"{BASE}/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
    assert client.get(f"{BASE}/health").headers["X-Request-ID"]


def test_create_application(submitted):
    assert submitted["application_id"] == "APP-1"
    assert submitted["status"] == "pending"
    assert submitted["selected_categories"] == [{"code": "B", "label": "Car"}]
    assert submitted["date_of_birth"] == "1995-04-12"


def test_create_duplicate_application(client, submitted, application_payload):
    r = client.post(APPS, json=application_payload())
    assert r.status_code == 400
    assert "Duplicate entry" in r.json()["error"]


def test_create_application_validation(client, application_payload):
    r = client.post(APPS, json=application_payload(email="nope"))
    assert r.status_code == 400
    assert r.json() == {"error": "Failed to save application: Invalid email format"}
    r = client.post(APPS, json={"sub": "user-1"})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Failed to save application: Missing required fields: application_id")


def test_get_application_by_each_identifier(client, submitted):
    for identifier in ("APP-1", str(submitted["id"]), "MED-1"):
        r = client.get(f"{APPS}/{identifier}")
        assert r.status_code == 200
        assert r.json()["application_id"] == "APP-1"
    r = client.get(f"{APPS}/APP-404")
    assert r.status_code == 404
    assert r.json() == {"error": "Application not found"}


def test_patch_status(client, submitted):
    r = client.patch(f"{APPS}/APP-1/status", json={"status": "approved"})
    assert r.status_code == 200
    assert r.json()["message"] == "Application status updated successfully"
    assert r.json()["application"]["status"] == "approved"

    assert client.patch(f"{APPS}/APP-1/status", json={}).json() == {"error": "Status is required"}
    r = client.patch(f"{APPS}/APP-1/status", json={"status": "done"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid status value"}
    r = client.patch(f"{APPS}/APP-404/status", json={"status": "approved"})
    assert r.status_code == 404


def test_put_partial_update(client, submitted):
    r = client.put(f"{APPS}/MED-1", json={"remarks": "Verified", "written_test": {"score": 91}, "sub": "ignored"})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Application updated successfully"
    assert body["application"]["remarks"] == "Verified"
    assert body["application"]["written_test"] == {"score": 91}
    assert body["application"]["sub"] == "user-1"

    r = client.put(f"{APPS}/APP-1", json={"unknown": 1})
    assert r.status_code == 400
    assert r.json() == {"error": "No valid fields to update"}
    r = client.put(f"{APPS}/APP-404", json={"remarks": "x"})
    assert r.status_code == 404
    r = client.put(f"{APPS}/APP-1", json={"status": "archived"})
    assert r.status_code == 400
    assert "Invalid status" in r.json()["error"]


def test_list_and_filters(client, submitted, application_payload):
    client.post(APPS, json=application_payload(application_id="APP-2", medical_certificate_id="MED-2",
                                               fullName="Alice", status="approved"))
    r = client.get(APPS)
    assert r.status_code == 200
    assert [a["application_id"] for a in r.json()["applications"]] == ["APP-2", "APP-1"]

    r = client.get(APPS, params={"status": "approved"})
    assert [a["application_id"] for a in r.json()["applications"]] == ["APP-2"]

    r = client.get(APPS, params={"sortBy": "full_name", "sortOrder": "ASC", "limit": 1, "page": 2})
    data = r.json()
    assert [a["full_name"] for a in data["applications"]] == ["Nimal Perera"]
    assert data["pagination"] == {"currentPage": 2, "totalPages": 2, "totalCount": 2, "hasNext": False, "hasPrev": True}


def test_list_rejects_malformed_query(client):
    r = client.get(APPS, params={"page": "first"})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid request")


def test_list_falls_back_when_filtered_query_fails(client, submitted, monkeypatch):
    def broken(*args, **kwargs):
        raise StorageError("syntax error")

    monkeypatch.setattr(repositories.ApplicationRepository, "list_filtered", broken)
    r = client.get(APPS, params={"status": "rejected"})
    assert r.status_code == 200
    assert r.json()["pagination"]["totalCount"] == 1


def test_stats_endpoints(client, submitted):
    client.patch(f"{APPS}/APP-1/status", json={"status": "submitted"})
    assert client.get(f"{APPS}/stats").json() == {
        "stats": {"total": 1, "pending": 0, "approved": 0, "rejected": 0}
    }
    assert client.get(f"{APPS}/stats/summary").json() == {"total": 1, "byStatus": {"submitted": 1}}


def test_sample_data(client):
    data = client.get(f"{APPS}/test/data").json()
    assert len(data["applications"]) == 2
    assert data["applications"][1]["status"] == "approved"


def test_user_applications(client, submitted):
    data = client.get(f"{APPS}/user/user-1").json()
    assert data["pagination"]["totalCount"] == 1
    assert data["applications"][0]["application_id"] == "APP-1"
    assert client.get(f"{APPS}/user/someone-else").json()["applications"] == []
