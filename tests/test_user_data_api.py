"""User data API tests — per-user document point-read and upsert."""

from budget_tracker.models.user_data import UserData


def _document(name="A"):
    return {
        "agencies": [{"id": "a", "name": name, "projects": [], "categories": [],
                      "totalAllocatedBudget": 1}],
        "currentAgencyId": "a",
    }


def test_read_missing(client, auth_headers):
    res = client.get("/api/v1/user-data", headers=auth_headers)
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_upsert_then_read(client, auth_headers):
    res = client.put("/api/v1/user-data", headers=auth_headers, json={"data": _document()})
    assert res.status_code == 200

    res = client.get("/api/v1/user-data", headers=auth_headers)
    assert res.status_code == 200
    assert res.get_json()["data"] == _document()
    assert res.get_json()["updated_at"]


def test_last_write_wins(client, auth_headers):
    client.put("/api/v1/user-data", headers=auth_headers, json={"data": _document("first")})
    client.put("/api/v1/user-data", headers=auth_headers, json={"data": _document("second")})
    assert UserData.query.count() == 1
    res = client.get("/api/v1/user-data", headers=auth_headers)
    assert res.get_json()["data"]["agencies"][0]["name"] == "second"


def test_documents_are_per_user(client, signup, auth_headers):
    client.put("/api/v1/user-data", headers=auth_headers, json={"data": _document()})
    other = signup("other@agency.co.th", "secret123")
    res = client.get("/api/v1/user-data",
                     headers={"Authorization": f"Bearer {other['access_token']}"})
    assert res.status_code == 404


def test_requires_jwt(client):
    assert client.get("/api/v1/user-data").status_code == 401
    assert client.put("/api/v1/user-data", json={"data": _document()}).status_code == 401


def test_missing_data(client, auth_headers):
    res = client.put("/api/v1/user-data", headers=auth_headers, json={})
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_invalid_document(client, auth_headers):
    res = client.put("/api/v1/user-data", headers=auth_headers,
                     json={"data": {"agencies": [], "currentAgencyId": None}})
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
