from app import main
from app.database import SessionLocal
from app.models.profile import MentorshipKeyword, Profile
from app.routers import mentor_requests
from app.services.auth_middleware import get_current_user
from tests.factories import make_user


def _seed_mentor(user_id=5, shown=True):
    session = SessionLocal()
    try:
        profile = Profile(
            user_id=user_id,
            name="Meera Shah",
            email="meera@example.com",
            occupation="business",
            membership_type="Mentor",
            area_of_expertise="Retail",
            previous_experience="Built a retail chain",
            available_for_mentorship=True,
            profile_verified=True,
            show_in_mentor_section=shown,
        )
        profile.keywords = [MentorshipKeyword(keyword="retail", position=0)]
        session.add(profile)
        session.commit()
        return profile.id
    finally:
        session.close()


def _capture_notifications(monkeypatch):
    sent = []
    monkeypatch.setattr(mentor_requests, "notify_mentor_request", lambda *args: sent.append(args))
    return sent


def test_request_to_hidden_mentor_is_not_found(client, monkeypatch):
    sent = _capture_notifications(monkeypatch)
    mentor_id = _seed_mentor(shown=False)

    response = client.post("/mentor-requests", json={"mentorId": mentor_id})

    assert response.status_code == 404
    assert sent == []


def test_request_then_duplicate_is_conflict(client, monkeypatch):
    sent = _capture_notifications(monkeypatch)
    mentor_id = _seed_mentor()

    first = client.post("/mentor-requests", json={"mentorId": mentor_id, "message": "  Would love guidance  "})
    second = client.post("/mentor-requests", json={"mentorId": mentor_id})

    assert first.status_code == 201
    assert first.json()["data"]["status"] == "pending"
    assert first.json()["data"]["message"] == "Would love guidance"
    assert second.status_code == 409
    assert second.json()["message"] == "You already have a pending request to this mentor."
    assert sent == [("meera@example.com", "Meera Shah", "Asha Rao", "Would love guidance")]


def test_cannot_request_yourself(client, monkeypatch):
    _capture_notifications(monkeypatch)
    mentor_id = _seed_mentor(user_id=1)

    response = client.post("/mentor-requests", json={"mentorId": mentor_id})

    assert response.status_code == 400


def test_list_only_own_requests(client, monkeypatch):
    _capture_notifications(monkeypatch)
    mentor_id = _seed_mentor()
    client.post("/mentor-requests", json={"mentorId": mentor_id})

    main.app.dependency_overrides[get_current_user] = lambda: make_user(2, "Ravi Kumar")
    others = client.get("/mentor-requests").json()["data"]
    main.app.dependency_overrides[get_current_user] = lambda: make_user(1)
    mine = client.get("/mentor-requests").json()["data"]

    assert others == []
    assert [item["mentorProfileId"] for item in mine] == [mentor_id]
