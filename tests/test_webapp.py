from __future__ import annotations

import pytest

from athlete_hub import webapp
from athlete_hub.services import accounts, guides

PROFILE = {
    "username": "jamie_runs",
    "firstName": "Jamie",
    "lastName": "Runner",
    "dateOfBirth": "2000-01-01",
    "bio": "Sprinter chasing a new personal best.",
    "primarySport": "running",
    "city": "Brno",
    "state": "South Moravia",
    "country": "Czechia",
}

STATS = {
    "height": 180,
    "weight": 80,
    "age": 25,
    "bodyFat": 12,
    "strength": {"Deadlift_Velocity": {"attempts": [{"data": {"load": 160, "reps": 3}}]}},
    "speed": {"Ten_Meter_Sprint": {"attempts": [{"sprintTime": 1.9}]}},
    "stamina": {"Beep_Test": {"attempts": [{"finalLevel": 10, "finalShuttle": 5}]}},
}


@pytest.fixture()
def client():
    webapp.FAILED_LOGINS.clear()
    app = webapp.create_app()
    app.config.update(TESTING=True)
    with app.test_client() as test_client:
        yield test_client
    webapp.FAILED_LOGINS.clear()


def _register(client, email="jamie@example.com", password="password123"):
    response = client.post("/register", json={"email": email, "password": password})
    assert response.status_code == 201, response.get_json()
    return response.get_json()["user"]


def _login(client, email, password="password123"):
    response = client.post("/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_register_then_me(client):
    user = _register(client)
    assert user["email"] == "jamie@example.com"

    me = client.get("/api/me").get_json()
    assert me["user"]["id"] == user["id"]
    assert me["hasProfile"] is False
    assert me["unreadNotifications"] == 0

    duplicate = client.post("/register", json={"email": "JAMIE@example.com", "password": "password123"})
    assert duplicate.status_code == 409
    assert duplicate.get_json()["code"] == "CONFLICT"


def test_api_requires_login(client):
    response = client.get("/api/me")
    assert response.status_code == 401
    assert response.get_json()["code"] == "AUTHENTICATION_ERROR"


def test_login_failures_are_rate_limited(client):
    accounts.register_user("jamie@example.com", "password123")

    for _ in range(webapp.MAX_FAILED_ATTEMPTS):
        response = client.post("/login", json={"email": "jamie@example.com", "password": "wrong-password"})
        assert response.status_code == 401

    blocked = client.post("/login", json={"email": "jamie@example.com", "password": "password123"})
    assert blocked.status_code == 429
    assert blocked.get_json()["code"] == "RATE_LIMITED"

    webapp.FAILED_LOGINS.clear()
    assert _login(client, "jamie@example.com")["hasProfile"] is False


def test_config_and_step_validation(client):
    config = client.get("/api/config").get_json()
    assert "running" in config["allowedSports"]
    assert [step["step"] for step in config["wizardSteps"]] == [1, 2, 3, 4, 5]

    _register(client)
    ok = client.post("/api/onboarding/validate", json={"step": 1, "data": PROFILE}).get_json()
    assert ok == {"step": 1, "valid": True, "errors": {}}

    invalid = client.post("/api/onboarding/validate", json={"step": 1, "data": {"city": "Brno"}}).get_json()
    assert invalid["valid"] is False
    assert "country" in invalid["errors"]

    unknown = client.post("/api/onboarding/validate", json={"step": 9, "data": {}})
    assert unknown.status_code == 400


def test_profile_flow(client):
    _register(client)
    missing = client.get("/api/profile")
    assert missing.status_code == 404

    invalid = client.post("/api/profile", json={**PROFILE, "primarySport": "chess"})
    assert invalid.status_code == 400
    assert invalid.get_json()["code"] == "VALIDATION_ERROR"
    assert "primarySport" in invalid.get_json()["details"]

    created = client.post("/api/profile", json=PROFILE)
    assert created.status_code == 201
    assert created.get_json()["user"]["username"] == "jamie_runs"

    updated = client.patch("/api/profile", json={"bio": "Now focusing on the 400 metres."})
    assert updated.get_json()["profile"]["bio"] == "Now focusing on the 400 metres."
    assert client.get("/api/profile").get_json()["counters"]["followers"] == 0


def test_follow_search_and_notifications(client, make_user):
    target = make_user("bob_swims", firstName="Robert")
    _register(client)
    client.post("/api/profile", json=PROFILE)

    followed = client.post(f"/api/users/{target.id}/follow")
    assert followed.status_code == 200
    assert followed.get_json()["counters"]["followers"] == 1
    assert client.post(f"/api/users/{target.id}/follow").status_code == 409

    found = client.get("/api/users/search", query_string={"q": "robert"}).get_json()["users"]
    assert [user["username"] for user in found] == ["bob_swims"]
    assert client.get("/api/users/search", query_string={"q": "r"}).status_code == 400

    card = client.get("/api/users/bob_swims").get_json()
    assert card["isFollowing"] is True

    _login(client, target.email)
    items = client.get("/api/notifications").get_json()["notifications"]
    assert [item["type"] for item in items] == ["FOLLOW"]
    read = client.post(f"/api/notifications/{items[0]['id']}/read").get_json()
    assert read["notification"]["isRead"] is True
    assert client.get("/api/me").get_json()["unreadNotifications"] == 0


def test_stats_endpoints(client, make_user):
    athlete = make_user("athlete")
    accounts.register_user("admin@example.com", "password123", role="admin")
    _login(client, athlete.email)

    forbidden = client.post(f"/api/stats/{athlete.id}", json=STATS)
    assert forbidden.status_code == 403
    assert client.get(f"/api/stats/{athlete.id}/report").status_code == 404

    _login(client, "admin@example.com")
    invalid = client.post(f"/api/stats/{athlete.id}", json={**STATS, "weight": 500})
    assert invalid.status_code == 400
    assert "weight" in invalid.get_json()["details"]

    saved = client.post(f"/api/stats/{athlete.id}", json=STATS)
    assert saved.status_code == 201
    assert saved.get_json()["snapshot"]["scores"]["strength"] == pytest.approx(20.0)

    stats = client.get(f"/api/stats/{athlete.id}").get_json()
    assert stats["latest"]["bmiClassification"] == "Normal"
    assert len(stats["history"]) == 1

    report = client.get(f"/api/stats/{athlete.id}/report").get_json()
    assert report["bodyWeight"] == 80

    chart = client.get(f"/api/stats/{athlete.id}/chart.png")
    assert chart.status_code == 200
    assert chart.mimetype == "image/png"
    assert chart.data.startswith(b"\x89PNG")

    pdf = client.get(f"/api/stats/{athlete.id}/report.pdf")
    assert pdf.status_code == 200
    assert pdf.mimetype == "application/pdf"
    assert pdf.data.startswith(b"%PDF")


def test_guide_application_flow(client):
    _register(client, "coach@example.com")
    assert client.get("/api/guides/me").status_code == 404

    applied = client.post("/api/guides", json={"sport": "running", "experienceYears": 3, "lat": 49.19, "lon": 16.61})
    assert applied.status_code == 201
    guide_id = applied.get_json()["guide"]["id"]
    assert client.get("/api/guides/me").get_json()["guide"]["status"] == "pending"
    assert client.post(f"/api/guides/{guide_id}/approve", json={"approved": True}).status_code == 403
    assert client.get("/api/guides/requests/incoming").status_code == 403

    accounts.register_user("admin@example.com", "password123", role="admin")
    _login(client, "admin@example.com")
    approved = client.post(f"/api/guides/{guide_id}/approve", json={"approved": True})
    assert approved.get_json()["guide"]["status"] == "approved"

    _login(client, "coach@example.com")
    assert client.get("/api/me").get_json()["user"]["role"] == "guide"
    assert client.get("/api/guides/requests/incoming").get_json() == {"requests": []}


def test_admin_can_reject_with_form_or_json_false(client, make_user):
    first = make_user("first_coach")
    second = make_user("second_coach")
    from_form = guides.register_guide(first.id, sport="running")
    from_json = guides.register_guide(second.id, sport="running")
    accounts.register_user("admin@example.com", "password123", role="admin")
    _login(client, "admin@example.com")

    rejected = client.post(f"/api/guides/{from_form.id}/approve", data={"approved": "false"})
    assert rejected.get_json()["guide"]["status"] == "rejected"
    rejected = client.post(f"/api/guides/{from_json.id}/approve", json={"approved": False})
    assert rejected.get_json()["guide"]["status"] == "rejected"
    assert accounts.get_user(first.id).role == "athlete"

    unclear = client.post(f"/api/guides/{from_form.id}/approve", data={"approved": "maybe"})
    assert unclear.status_code == 400
    approved = client.post(f"/api/guides/{from_form.id}/approve", data={"approved": "true"})
    assert approved.get_json()["guide"]["status"] == "approved"


def test_login_tracking_forgets_clean_addresses(client):
    accounts.register_user("jamie@example.com", "password123")
    _login(client, "jamie@example.com")
    assert webapp.FAILED_LOGINS == {}

    client.post("/login", json={"email": "jamie@example.com", "password": "wrong-password"})
    assert len(webapp.FAILED_LOGINS["127.0.0.1"]) == 1
    _login(client, "jamie@example.com")
    assert webapp.FAILED_LOGINS == {}
