from tests.fakes import auth_headers

STUDENT = "student-1"


def test_profile_missing_before_onboarding(client):
    response = client.get("/api/v1/profile", headers=auth_headers(STUDENT))
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "NotFound"


def test_profile_follows_added_subjects(client):
    headers = auth_headers(STUDENT)
    token = client.post(
        "/api/v1/onboarding/pending", json={"name": "Ada", "subjects": [{"code": "CN"}]}
    ).json()["token"]
    client.post("/api/v1/onboarding/complete", json={"token": token}, headers=headers)

    assert client.post("/api/v1/totals", json={"subject": "OS"}, headers=headers).status_code == 201

    response = client.get("/api/v1/profile", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"name": "Ada", "selected_subjects": ["CN", "OS"]}


def test_profile_requires_authentication(client):
    assert client.get("/api/v1/profile").status_code == 401
