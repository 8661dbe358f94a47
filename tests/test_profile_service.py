import asyncio
import threading

import pytest
from botocore.exceptions import ClientError

from app.models.profile import Profile
from app.services.errors import (
    ImageRejected,
    InvalidOperation,
    NotFound,
    PersistenceFailed,
    StorageConflict,
    UploadFailed,
    ValidationFailed,
)
from app.services.image_store import PROFILE_IMAGE
from app.services.image_uploads import ImageUpload, discard_image, upload_image
from app.services.profile_repository import ProfileRecord, ProfileRepository
from app.services.profile_validator import normalize
from app.services.profile_service import ProfileService
from tests.factories import BUCKET, CDN_URL, make_image


def _fields(**overrides):
    fields = {
        "name": "Asha Rao",
        "email": "asha@example.com",
        "pan": "ABCDE1234F",
        "occupation": "services",
        "membershipType": "Individual",
    }
    fields.update(overrides)
    return fields


def _mentor_fields(**overrides):
    fields = _fields(
        membershipType="Mentor",
        mentorshipFields="fintech, payments",
        previousExperience="Ten years at a payments company",
        areaOfExpertise="Payments",
        availableForMentorship="true",
    )
    fields.update(overrides)
    return fields


def _upload(width=400, height=400, name="avatar.png"):
    return ImageUpload(data=make_image(width, height), filename=name, content_type="image/png")


def _client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "500", "Message": "boom"}}, operation)


def _uploaded_keys(s3_client):
    return [call.kwargs["Key"] for call in s3_client.put_object.call_args_list]


def _deleted_keys(s3_client):
    return [call.kwargs["Key"] for call in s3_client.delete_object.call_args_list]


def _assert_triple_consistent(profile: Profile):
    values = (profile.image, profile.image_public_id, profile.image_metadata)
    assert all(value is None for value in values) or all(value is not None for value in values)


@pytest.fixture()
def service(db_session, store):
    return ProfileService(db_session, store)


@pytest.mark.asyncio
async def test_first_upsert_without_image_creates_profile(service, s3_client):
    outcome = await service.upsert(1, _fields())

    assert outcome.created is True
    assert outcome.profile.image is None
    assert outcome.profile.image_public_id is None
    assert outcome.profile.image_metadata is None
    assert outcome.profile.phone_country_code == "+91"
    s3_client.put_object.assert_not_called()


@pytest.mark.asyncio
async def test_upsert_with_image_writes_the_whole_triple(service, s3_client):
    outcome = await service.upsert(1, _fields(), image=_upload())

    profile = outcome.profile
    key = _uploaded_keys(s3_client)[0]
    assert profile.image_public_id == key
    assert profile.image == f"{CDN_URL}/{key}"
    assert profile.image_metadata["format"] == "webp"
    assert key.startswith("club/profiles/")
    _assert_triple_consistent(profile)


@pytest.mark.asyncio
async def test_replacing_image_deletes_old_asset_exactly_once(service, s3_client):
    first = await service.upsert(1, _fields(), image=_upload(400, 400))
    old_key = first.profile.image_public_id

    second = await service.upsert(1, _fields(name="Asha R"), image=_upload(500, 500))

    assert second.created is False
    assert second.cleanup_ok is True
    assert second.profile.image_public_id != old_key
    assert _deleted_keys(s3_client) == [old_key]
    s3_client.delete_object.assert_called_once_with(Bucket=BUCKET, Key=old_key)


@pytest.mark.asyncio
async def test_update_without_image_keeps_current_image(service, s3_client):
    first = await service.upsert(1, _fields(), image=_upload())
    key = first.profile.image_public_id

    second = await service.upsert(1, _fields(name="Asha R"))

    assert second.profile.image_public_id == key
    assert second.cleanup_ok is None
    s3_client.delete_object.assert_not_called()


@pytest.mark.asyncio
async def test_failed_commit_removes_new_upload(db_session, store, s3_client, monkeypatch):
    repository = ProfileRepository(db_session)

    def failing_save(*args, **kwargs):
        raise PersistenceFailed("database unavailable")

    monkeypatch.setattr(repository, "save", failing_save)
    service = ProfileService(db_session, store, repository=repository)

    with pytest.raises(PersistenceFailed) as excinfo:
        await service.upsert(1, _fields(), image=_upload())

    assert excinfo.value.side_effects == "none"
    assert _deleted_keys(s3_client) == _uploaded_keys(s3_client)
    assert db_session.query(Profile).count() == 0


@pytest.mark.asyncio
async def test_failed_compensation_is_reported_as_partial(db_session, store, s3_client, monkeypatch):
    repository = ProfileRepository(db_session)

    def failing_save(*args, **kwargs):
        raise PersistenceFailed("database unavailable")

    monkeypatch.setattr(repository, "save", failing_save)
    s3_client.delete_object.side_effect = _client_error("DeleteObject")
    service = ProfileService(db_session, store, repository=repository)

    with pytest.raises(PersistenceFailed) as excinfo:
        await service.upsert(1, _fields(), image=_upload())

    assert excinfo.value.side_effects == "partial"


@pytest.mark.asyncio
async def test_upload_failure_leaves_profile_untouched(service, s3_client):
    await service.upsert(1, _fields())
    s3_client.put_object.side_effect = _client_error("PutObject")

    with pytest.raises(UploadFailed):
        await service.upsert(1, _fields(name="Someone Else"), image=_upload())

    assert service.get(1).name == "Asha Rao"
    s3_client.delete_object.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_fields_never_reach_the_store(service, s3_client):
    with pytest.raises(ValidationFailed) as excinfo:
        await service.upsert(1, _fields(email="nope"), image=_upload())

    assert excinfo.value.errors == [{"field": "email", "message": "email must be a valid email address."}]
    s3_client.put_object.assert_not_called()


@pytest.mark.asyncio
async def test_rejected_image_is_not_uploaded(service, s3_client):
    with pytest.raises(ImageRejected):
        await service.upsert(1, _fields(), image=_upload(50, 50))

    s3_client.put_object.assert_not_called()


@pytest.mark.asyncio
async def test_old_image_cleanup_failure_does_not_fail_the_update(service, s3_client):
    first = await service.upsert(1, _fields(), image=_upload(400, 400))
    old_key = first.profile.image_public_id
    s3_client.delete_object.side_effect = _client_error("DeleteObject")

    second = await service.upsert(1, _fields(), image=_upload(450, 450))

    assert second.cleanup_ok is False
    assert second.profile.image_public_id != old_key
    _assert_triple_consistent(second.profile)


@pytest.mark.asyncio
async def test_remove_image_flag_clears_triple_and_deletes_asset(service, s3_client):
    first = await service.upsert(1, _fields(), image=_upload())
    old_key = first.profile.image_public_id

    second = await service.upsert(1, _fields(), remove_image=True)

    assert second.profile.image is None
    assert second.profile.image_metadata is None
    assert _deleted_keys(s3_client) == [old_key]


@pytest.mark.asyncio
async def test_image_and_remove_flag_together_are_rejected(service):
    with pytest.raises(InvalidOperation):
        await service.upsert(1, _fields(), image=_upload(), remove_image=True)


@pytest.mark.asyncio
async def test_replace_image_requires_existing_profile(service, s3_client):
    with pytest.raises(NotFound):
        await service.replace_image(1, _upload())

    s3_client.put_object.assert_not_called()


@pytest.mark.asyncio
async def test_replace_image_swaps_asset(service, s3_client):
    first = await service.upsert(1, _fields(), image=_upload(400, 400))
    old_key = first.profile.image_public_id

    outcome = await service.replace_image(1, _upload(600, 600))

    assert outcome.profile.image_metadata["width"] == 600
    assert _deleted_keys(s3_client) == [old_key]


@pytest.mark.asyncio
async def test_remove_image_without_image_is_rejected(service):
    await service.upsert(1, _fields())

    with pytest.raises(InvalidOperation, match="No profile image to delete"):
        await service.remove_image(1)


@pytest.mark.asyncio
async def test_delete_profile_removes_record_then_asset(service, s3_client):
    first = await service.upsert(1, _fields(), image=_upload())
    old_key = first.profile.image_public_id

    assert await service.delete(1) is True

    assert _deleted_keys(s3_client) == [old_key]
    with pytest.raises(NotFound):
        await service.delete(1)


@pytest.mark.asyncio
async def test_duplicate_pan_is_a_storage_conflict(service):
    await service.upsert(1, _fields())

    with pytest.raises(StorageConflict) as excinfo:
        await service.upsert(2, _fields(email="other@example.com"))

    assert excinfo.value.fields == ["pan"]


@pytest.mark.asyncio
async def test_mentor_keywords_are_replaced_in_order(service):
    await service.upsert(1, _mentor_fields())

    outcome = await service.upsert(1, _mentor_fields(mentorshipFields="payments, lending, Fintech"))

    assert outcome.profile.mentorship_fields == ["payments", "lending", "fintech"]
    assert outcome.profile.available_for_mentorship is True


@pytest.mark.asyncio
async def test_leaving_mentor_membership_hides_profile(service, db_session):
    outcome = await service.upsert(1, _mentor_fields())
    ProfileRepository(db_session).set_mentor_visibility(outcome.profile, True)

    updated = await service.upsert(1, _fields())

    assert updated.profile.show_in_mentor_section is False
    assert updated.profile.mentorship_fields == []


@pytest.mark.asyncio
async def test_admin_flags_survive_member_updates(service, db_session):
    outcome = await service.upsert(1, _fields())
    ProfileRepository(db_session).set_verified(outcome.profile.id, True)

    updated = await service.upsert(1, _fields(name="Asha R"))

    assert updated.profile.profile_verified is True


def test_deactivate_is_a_soft_delete(service, db_session):
    profile = Profile(user_id=1, name="Asha", occupation="services", membership_type="Individual")
    db_session.add(profile)
    db_session.commit()

    service.deactivate(profile.id)

    assert db_session.query(Profile).filter(Profile.id == profile.id).one().is_active is False
    with pytest.raises(NotFound):
        service.deactivate(profile.id)


@pytest.mark.asyncio
async def test_switching_to_mentor_without_details_is_rejected_before_commit(service, db_session, s3_client):
    await service.upsert(1, _fields())

    with pytest.raises(ValidationFailed) as excinfo:
        await service.upsert(1, _fields(membershipType="Mentor"), image=_upload())

    assert "mentorshipFields" in {error.field for error in excinfo.value.field_errors}
    s3_client.put_object.assert_not_called()
    db_session.expire_all()
    assert db_session.query(Profile).one().membership_type == "Individual"


@pytest.mark.asyncio
async def test_repeated_keywords_are_stored_once(service):
    outcome = await service.upsert(1, _mentor_fields(mentorshipFields="fintech, FinTech, payments"))

    assert outcome.profile.mentorship_fields == ["fintech", "payments"]


def test_insert_race_on_user_id_replaces_the_winner(db_session):
    db_session.add(Profile(user_id=1, name="First Writer", occupation="services", membership_type="Individual"))
    db_session.commit()

    record = ProfileRecord(fields=normalize(_fields(name="Last Writer")))

    profile, created = ProfileRepository(db_session).insert(1, record)

    assert created is False
    assert profile.name == "Last Writer"
    assert db_session.query(Profile).count() == 1


@pytest.mark.asyncio
async def test_deleting_the_same_image_twice_never_raises(store, s3_client):
    s3_client.delete_object.side_effect = [None, _client_error("DeleteObject"), RuntimeError("socket closed")]

    assert await discard_image(store, "club/profiles/2026/01/a.webp", reason="first") is True
    assert await discard_image(store, "club/profiles/2026/01/a.webp", reason="second") is False
    assert await discard_image(store, "club/profiles/2026/01/a.webp", reason="third") is False


@pytest.mark.asyncio
async def test_cancelled_request_removes_upload_that_lands_late(store, s3_client):
    put_started = threading.Event()
    release_put = threading.Event()

    def slow_put(**kwargs):
        put_started.set()
        release_put.wait(5)

    s3_client.put_object.side_effect = slow_put
    request = asyncio.ensure_future(upload_image(store, _upload(), PROFILE_IMAGE, "profiles"))
    while not put_started.is_set():
        await asyncio.sleep(0.01)

    request.cancel()
    with pytest.raises(asyncio.CancelledError):
        await request
    s3_client.delete_object.assert_not_called()

    release_put.set()
    for _ in range(500):
        if s3_client.delete_object.called:
            break
        await asyncio.sleep(0.01)

    key = s3_client.put_object.call_args.kwargs["Key"]
    s3_client.delete_object.assert_called_once_with(Bucket=BUCKET, Key=key)
