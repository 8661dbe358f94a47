from app.database import SessionLocal
from app.models.profile import MentorshipKeyword, Profile


def _seed_profile(user_id, name, membership_type="Mentor", keywords=("fintech",), shown=False, verified=True):
    session = SessionLocal()
    try:
        profile = Profile(
            user_id=user_id,
            name=name,
            email=f"{user_id}@example.com",
            occupation="services",
            membership_type=membership_type,
            area_of_expertise="Payments",
            previous_experience="Founder",
            available_for_mentorship=True,
            profile_verified=verified,
            show_in_mentor_section=shown,
        )
        profile.keywords = [
            MentorshipKeyword(keyword=keyword, position=index) for index, keyword in enumerate(keywords)
        ]
        session.add(profile)
        session.commit()
        return profile.id
    finally:
        session.close()


def _flags(profile_id):
    session = SessionLocal()
    try:
        profile = session.query(Profile).filter(Profile.id == profile_id).one()
        return profile.show_in_mentor_section, profile.profile_verified, profile.is_active
    finally:
        session.close()


def test_list_mentors_with_filters(client):
    _seed_profile(1, "Fintech Mentor", shown=True)
    _seed_profile(2, "Growth Mentor", keywords=("growth",), shown=True)

    response = client.get("/mentors", params={"expertise": "fintech,lending", "availableOnly": "true"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert [mentor["name"] for mentor in data["mentors"]] == ["Fintech Mentor"]
    assert data["mentors"][0]["mentorshipFields"] == ["fintech"]
    assert "email" not in data["mentors"][0]
    assert data["filters"]["appliedFilters"]["availableOnly"] is True
    assert data["pagination"]["total"] == 1


def test_list_mentors_empty_message(client):
    response = client.get("/mentors")

    assert response.status_code == 200
    assert response.json()["message"] == "No mentors found matching your criteria"
    assert response.json()["data"]["mentors"] == []


def test_mentor_detail_and_visibility(client):
    visible = _seed_profile(1, "Visible", shown=True)
    hidden = _seed_profile(2, "Hidden", shown=False)

    assert client.get(f"/mentors/{visible}").json()["data"]["email"] == "1@example.com"
    assert client.get(f"/mentors/{hidden}").status_code == 404


def test_expertise_and_stats_endpoints(client):
    _seed_profile(1, "A", keywords=("fintech", "growth"), shown=True)

    expertise = client.get("/mentors/expertise").json()["data"]
    stats = client.get("/mentors/stats").json()["data"]

    assert {"expertise": "fintech", "count": 1} in expertise
    assert stats["listedMentors"] == 1


def test_toggle_mentor_rejects_individual(client):
    member = _seed_profile(1, "Member", membership_type="Individual", keywords=())

    response = client.patch(f"/admin/profiles/{member}/toggle-mentor", json={"showInMentorSection": True})

    assert response.status_code == 400
    assert response.json()["message"] == "Only mentors can be shown in mentor section"
    assert _flags(member)[0] is False


def test_toggle_mentor_lists_profile(client):
    mentor = _seed_profile(1, "Mentor")

    response = client.patch(f"/admin/profiles/{mentor}/toggle-mentor", json={"showInMentorSection": True})

    assert response.status_code == 200
    assert response.json()["message"] == "Profile added to mentor section successfully"
    assert [item["id"] for item in client.get("/mentors").json()["data"]["mentors"]] == [mentor]


def test_verify_and_soft_delete(client):
    profile_id = _seed_profile(1, "Mentor", verified=False)

    verified = client.patch(f"/admin/profiles/{profile_id}/verify", json={"profileVerified": True})
    deleted = client.delete(f"/admin/profiles/{profile_id}")

    assert verified.status_code == 200
    assert verified.json()["data"]["profileVerified"] is True
    assert deleted.status_code == 200
    assert _flags(profile_id) == (False, True, False)
    assert client.delete(f"/admin/profiles/{profile_id}").status_code == 404


def test_admin_listing_filters(client):
    _seed_profile(1, "Mentor One")
    _seed_profile(2, "Member Two", membership_type="Individual", keywords=())

    response = client.get("/admin/profiles", params={"membershipType": "Individual"})
    invalid = client.get("/admin/profiles", params={"status": "archived"})

    assert [item["name"] for item in response.json()["data"]["profiles"]] == ["Member Two"]
    assert "imagePublicId" in response.json()["data"]["profiles"][0]
    assert invalid.status_code == 400


def test_admin_search_treats_wildcards_literally(client):
    _seed_profile(1, "100% Growth")
    _seed_profile(2, "Steady Growth")

    response = client.get("/admin/profiles", params={"search": "%"})

    assert [item["name"] for item in response.json()["data"]["profiles"]] == ["100% Growth"]
