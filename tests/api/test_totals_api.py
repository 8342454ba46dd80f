from tests.fakes import auth_headers

STUDENT = "student-1"
BASE = "/api/v1/totals"


def test_add_subject_and_list_projections(client):
    headers = auth_headers(STUDENT)
    response = client.post(BASE, json={"subject": "OS"}, headers=headers)
    assert response.status_code == 201
    assert response.json() == {
        "subject": "OS", "count": 0, "total": 20, "capped": 0, "percent": 0, "at_max": False
    }
    client.post(BASE, json={"subject": "CN", "total": 8}, headers=headers)
    client.post("/api/v1/attendance", json={"subject": "CN"}, headers=headers)

    rows = client.get(BASE, headers=headers).json()

    assert [(r["subject"], r["count"], r["percent"]) for r in rows] == [("CN", 1, 13), ("OS", 0, 0)]


def test_add_subject_errors(client):
    headers = auth_headers(STUDENT)
    unknown = client.post(BASE, json={"subject": "ALCHEMY", "total": 3}, headers=headers)
    assert unknown.status_code == 422
    assert unknown.json()["detail"]["error"] == "UnknownSubject"

    assert client.post(BASE, json={"subject": "CN"}, headers=headers).status_code == 201
    duplicate = client.post(BASE, json={"subject": "CN", "total": 50}, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["error"] == "AlreadyExists"


def test_set_total_below_count_is_clamped_in_view(client, backend):
    storage, notifier = backend
    headers = auth_headers(STUDENT)
    client.post(BASE, json={"subject": "CN", "total": 10}, headers=headers)
    for _ in range(5):
        client.post("/api/v1/attendance", json={"subject": "CN"}, headers=headers)

    response = client.patch(f"{BASE}/CN", json={"total": "3"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert (body["count"], body["capped"], body["total"], body["percent"], body["at_max"]) == (5, 3, 3, 100, True)
    assert storage.totals[(STUDENT, "CN")].count == 5
    assert notifier.published[-1] == (STUDENT, "attendance_totals", "UPDATE", "CN")


def test_set_total_rejects_bad_values(client):
    headers = auth_headers(STUDENT)
    client.post(BASE, json={"subject": "CN", "total": 10}, headers=headers)

    negative = client.patch(f"{BASE}/CN", json={"total": -1}, headers=headers)
    assert negative.status_code == 422
    assert negative.json()["detail"]["error"] == "InvalidValue"
    assert client.patch(f"{BASE}/CN", json={"total": "ten"}, headers=headers).status_code == 422
    # Booleans fail request validation before reaching the service.
    assert client.patch(f"{BASE}/CN", json={"total": True}, headers=headers).status_code == 422


def test_set_total_for_missing_subject(client):
    response = client.patch(f"{BASE}/OS", json={"total": 5}, headers=auth_headers(STUDENT))
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "NotConfigured"


def test_reconcile_returns_repaired_rows(client, backend):
    storage, _ = backend
    headers = auth_headers(STUDENT)
    client.post(BASE, json={"subject": "CN", "total": 10}, headers=headers)
    client.post("/api/v1/attendance", json={"subject": "CN"}, headers=headers)
    storage.totals[(STUDENT, "CN")].count = 6

    response = client.post(f"{BASE}/reconcile", headers=headers)

    assert response.status_code == 200
    assert [(r["subject"], r["count"]) for r in response.json()] == [("CN", 1)]
    assert client.post(f"{BASE}/reconcile", headers=headers).json() == []


def test_onboarding_token_is_not_an_access_token(client):
    pending = client.post(
        "/api/v1/onboarding/pending", json={"name": "Ada", "subjects": [{"code": "CN"}]}
    ).json()
    response = client.get(BASE, headers={"Authorization": f"Bearer {pending['token']}"})
    assert response.status_code == 401
