from app import main
from app.services.auth_middleware import get_current_user
from tests.factories import make_image, make_user


def _post_form(**overrides):
    form = {
        "category": "services_wanted",
        "title": "Looking for a CA",
        "description": "Need help with GST filings for a seed stage startup.",
    }
    form.update(overrides)
    return form


def _act_as(user_id):
    main.app.dependency_overrides[get_current_user] = lambda: make_user(user_id, f"User {user_id}")


def test_create_post_without_image(client, s3_client):
    response = client.post("/whiteboard", data=_post_form(websiteUrl="https://example.com"))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["createdBy"] == 1
    assert data["imageUrl"] is None
    assert data["websiteUrl"] == "https://example.com"
    s3_client.put_object.assert_not_called()


def test_create_post_with_image(client):
    files = {"image": ("flyer.png", make_image(300, 300), "image/png")}

    response = client.post("/whiteboard", data=_post_form(), files=files)

    assert response.status_code == 201
    assert "/club/whiteboard/" in response.json()["data"]["imageUrl"]


def test_invalid_post(client):
    response = client.post("/whiteboard", data=_post_form(category="gossip", description="short"))

    assert response.status_code == 400
    assert {error["field"] for error in response.json()["errors"]} == {"category", "description"}


def test_listing_is_grouped_by_category(client):
    client.post("/whiteboard", data=_post_form())
    client.post("/whiteboard", data=_post_form(category="startup_news", title="We launched"))

    everything = client.get("/whiteboard").json()["data"]
    news_only = client.get("/whiteboard", params={"category": "startup_news"}).json()["data"]

    assert set(everything) == {"startup_news", "services_wanted", "services_offering"}
    assert everything["services_offering"]["pagination"]["total"] == 0
    assert [post["title"] for post in news_only["startup_news"]["posts"]] == ["We launched"]
    assert list(news_only) == ["startup_news"]


def test_only_creator_can_update_or_delete(client):
    post_id = client.post("/whiteboard", data=_post_form()).json()["data"]["id"]

    _act_as(2)
    forbidden_update = client.put(f"/whiteboard/{post_id}", data={"title": "Hijacked"})
    forbidden_delete = client.delete(f"/whiteboard/{post_id}")

    _act_as(1)
    updated = client.put(f"/whiteboard/{post_id}", data={"title": "Looking for a CA urgently"})

    assert forbidden_update.status_code == 403
    assert forbidden_delete.status_code == 403
    assert updated.status_code == 200
    assert updated.json()["data"]["title"] == "Looking for a CA urgently"
    assert client.delete(f"/whiteboard/{post_id}").status_code == 200
    assert client.get(f"/whiteboard/{post_id}").status_code == 404


def test_admin_moderation_hides_rejected_posts(client):
    post_id = client.post("/whiteboard", data=_post_form()).json()["data"]["id"]

    response = client.patch(f"/whiteboard/{post_id}/status", json={"status": "rejected", "adminNotes": "Spam"})

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "rejected"
    listing = client.get("/whiteboard").json()["data"]
    assert listing["services_wanted"]["posts"] == []


def test_viewing_a_post_counts_views(client):
    post_id = client.post("/whiteboard", data=_post_form()).json()["data"]["id"]

    client.get(f"/whiteboard/{post_id}")
    response = client.get(f"/whiteboard/{post_id}")

    assert response.json()["data"]["views"] == 2
    assert client.get("/whiteboard/stats").json()["data"]["totalViews"] == 2
