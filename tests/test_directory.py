"""Profile directory: account lifecycle and attribute bounds."""
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import InvalidRequestError

from profile_api.core import directory, relations
from profile_api.errors import ConflictError, NotFoundError, ValidationError
from profile_api.models import Follow, Like, Profile, ProfileInterest, User


async def _count(session, model) -> int:
    return await session.scalar(select(func.count()).select_from(model))


@pytest.mark.asyncio
async def test_create_account_creates_user_and_profile(session):
    user, profile = await directory.create_account(
        session,
        email="  Alice@Example.com ",
        password_hash="hash",
        name="Alice",
        interests=[" chess ", "art", "chess", ""],
    )

    assert user.email == "alice@example.com"
    assert profile.user_id == user.id
    assert profile.interests == ["chess", "art"]
    assert profile.bio == "" and profile.headline == ""
    assert profile.is_active is True
    assert await _count(session, User) == 1
    assert await _count(session, Profile) == 1


@pytest.mark.asyncio
async def test_duplicate_email_is_a_conflict(session, make_account):
    await make_account("Alice", email="alice@example.com")

    with pytest.raises(ConflictError):
        await directory.create_account(
            session, email="ALICE@example.com", password_hash="hash", name="Other"
        )
    assert await _count(session, User) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "A"},
        {"name": "x" * 51},
        {"bio": "x" * 501},
        {"headline": "x" * 101},
        {"interests": [f"tag{i}" for i in range(11)]},
        {"interests": ["x" * 31]},
    ],
)
async def test_create_rejects_out_of_bounds_attributes(session, overrides):
    fields = {"name": "Valid Name", **overrides}

    with pytest.raises(ValidationError):
        await directory.create_account(
            session, email="bounds@example.com", password_hash="hash", **fields
        )
    assert await _count(session, User) == 0
    assert await _count(session, Profile) == 0


@pytest.mark.asyncio
async def test_partial_update_leaves_other_fields(session, make_account):
    user, _ = await make_account("Alice", bio="original bio", interests=["chess"])

    profile = await directory.update_profile(session, user.id, headline="Engineer")

    assert profile.headline == "Engineer"
    assert profile.bio == "original bio"
    assert profile.interests == ["chess"]


@pytest.mark.asyncio
async def test_update_replaces_interest_list_in_order(session, make_account):
    user, _ = await make_account("Alice", interests=["chess", "art"])

    profile = await directory.update_profile(session, user.id, interests=["art", "go", "chess"])

    assert profile.interests == ["art", "go", "chess"]
    assert await _count(session, ProfileInterest) == 3


@pytest.mark.asyncio
async def test_update_rejects_bad_name_and_unknown_user(session, make_account):
    user, _ = await make_account("Alice")

    with pytest.raises(ValidationError):
        await directory.update_profile(session, user.id, name=" ")
    with pytest.raises(NotFoundError):
        await directory.update_profile(session, "nobody", name="Valid")


@pytest.mark.asyncio
async def test_update_photo_reports_replaced_key(session, make_account):
    user, _ = await make_account("Alice")

    first_key = f"profiles/{user.id}/1.jpg"

    _, replaced = await directory.update_photo(session, user.id, "http://m/1.jpg", first_key)
    profile, replaced_again = await directory.update_photo(
        session, user.id, "http://m/2.jpg", f"profiles/{user.id}/2.jpg"
    )

    assert replaced is None
    assert replaced_again == first_key
    assert profile.photo_url == "http://m/2.jpg"

    with pytest.raises(ValidationError):
        await directory.update_photo(session, user.id, "   ")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "key",
    [
        "profiles/someone-else/photo.jpg",
        "photo.jpg",
        "profiles/{user_id}/",
        "profiles/{user_id}/../someone-else/photo.jpg",
    ],
)
async def test_update_photo_rejects_keys_outside_own_prefix(session, make_account, key):
    user, _ = await make_account("Alice")
    owned = f"profiles/{user.id}/mine.jpg"
    await directory.update_photo(session, user.id, "http://m/mine.jpg", owned)

    with pytest.raises(ValidationError):
        await directory.update_photo(session, user.id, "http://m/x.jpg", key.format(user_id=user.id))

    profile = await directory.get_own_profile(session, user.id)
    assert profile.photo_key == owned


@pytest.mark.asyncio
async def test_delete_account_removes_profile_and_all_edges(session, make_account):
    alice, alice_profile = await make_account("Alice")
    bob, bob_profile = await make_account("Bob")
    carol, carol_profile = await make_account("Carol")

    await relations.toggle_like(session, alice.id, bob_profile.id)
    await relations.toggle_like(session, bob.id, alice_profile.id)
    await relations.toggle_like(session, bob.id, carol_profile.id)
    await relations.toggle_follow(session, alice.id, bob.id)
    await relations.toggle_follow(session, carol.id, alice.id)
    await relations.toggle_follow(session, bob.id, carol.id)

    await directory.delete_account(session, alice.id)

    assert await directory.get_user(session, alice.id) is None
    assert await directory.find_profile(session, alice.id) is None
    # Only Bob → Carol edges survive
    assert await _count(session, Like) == 1
    assert await _count(session, Follow) == 1
    assert await relations.count_following(session, carol.id) == 0
    assert await relations.count_followers(session, bob.id) == 0


@pytest.mark.asyncio
async def test_delete_account_returns_photo_key(session, make_account):
    user, _ = await make_account("Alice")
    key = f"profiles/{user.id}/a.jpg"
    await directory.update_photo(session, user.id, "http://m/a.jpg", key)

    assert await directory.delete_account(session, user.id) == key
    with pytest.raises(NotFoundError):
        await directory.delete_account(session, user.id)


@pytest.mark.asyncio
async def test_user_profile_links_are_never_loaded_implicitly(session, make_account):
    user, _ = await make_account("Alice", interests=["chess"])

    profile = await directory.get_own_profile(session, user.id)
    owner = await directory.get_user(session, user.id)

    # Interests come eagerly with the profile; the 1:1 links must be queried for
    assert profile.interests == ["chess"]
    with pytest.raises(InvalidRequestError):
        profile.user
    with pytest.raises(InvalidRequestError):
        owner.profile
