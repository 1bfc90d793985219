"""Feed assembly: candidate predicate, ordering, pagination and trending."""
import pytest

from profile_api.core import feed, relations
from profile_api.errors import NotFoundError, ValidationError


def _names(page):
    return [p.name for p in page.profiles]


@pytest.mark.asyncio
async def test_newest_first_with_limit_one(session, make_account):
    await make_account("Older", minutes=1)
    await make_account("Newer", minutes=2)

    page = await feed.get_feed(session, None, page=1, limit=1)

    assert _names(page) == ["Newer"]
    assert page.pagination.has_next is True
    assert page.pagination.has_prev is False
    assert page.pagination.total_pages == 2
    assert page.pagination.total_count == 2


@pytest.mark.asyncio
async def test_pages_cover_every_match_exactly_once(session, make_account):
    # Several profiles share a timestamp so the id tie-break matters
    for i in range(7):
        await make_account(f"Member {i}", minutes=i // 3)

    full = await feed.get_feed(session, None, page=1, limit=50)
    seen = []
    page_no = 1
    while True:
        page = await feed.get_feed(session, None, page=page_no, limit=3)
        seen.extend(p.id for p in page.profiles)
        if not page.pagination.has_next:
            break
        page_no += 1

    assert page_no == 3
    assert seen == [p.id for p in full.profiles]
    assert len(set(seen)) == 7


@pytest.mark.asyncio
async def test_interest_filter_is_set_overlap(session, make_account):
    await make_account("First", interests=["A", "B"], minutes=3)
    await make_account("Second", interests=["B", "C"], minutes=2)
    await make_account("Third", interests=["D"], minutes=1)

    overlap = await feed.get_feed(session, None, interests=["B"])
    either = await feed.get_feed(session, None, interests=["C", "D"])
    none = await feed.get_feed(session, None, interests=["Z"])

    assert _names(overlap) == ["First", "Second"]
    assert _names(either) == ["Second", "Third"]
    assert _names(none) == []
    assert none.pagination.total_count == 0
    assert none.pagination.total_pages == 0
    assert none.pagination.has_next is False


@pytest.mark.asyncio
async def test_search_matches_any_text_field_case_insensitively(session, make_account):
    await make_account("Hiker", bio="Loves HIKING in the alps", minutes=1)
    await make_account("Walker", headline="Weekend hiker", minutes=2)
    await make_account("Swimmer", bio="pool person", minutes=3)
    await make_account("Hikaru", minutes=4)

    page = await feed.get_feed(session, None, search="hik")

    assert _names(page) == ["Hikaru", "Walker", "Hiker"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(session, make_account):
    await make_account("Percent", bio="100% remote", minutes=1)
    await make_account("Plain", bio="mostly remote", minutes=2)

    assert _names(await feed.get_feed(session, None, search="0% r")) == ["Percent"]
    assert _names(await feed.get_feed(session, None, search="%")) == ["Percent"]
    assert _names(await feed.get_feed(session, None, search="_")) == []


@pytest.mark.asyncio
async def test_search_and_interests_combine_with_and(session, make_account):
    await make_account("Chess Hiker", bio="hiking", interests=["chess"], minutes=1)
    await make_account("Art Hiker", bio="hiking", interests=["art"], minutes=2)
    await make_account("Chess Player", interests=["chess"], minutes=3)

    page = await feed.get_feed(session, None, search="hiking", interests=["chess"])

    assert _names(page) == ["Chess Hiker"]
    assert page.pagination.total_count == 1


@pytest.mark.asyncio
async def test_feed_excludes_viewer_and_inactive_profiles(session, make_account):
    viewer, _ = await make_account("Viewer", minutes=1)
    await make_account("Visible", minutes=2)
    await make_account("Hidden", minutes=3, active=False)

    personal = await feed.get_feed(session, viewer.id)
    anonymous = await feed.get_feed(session, None)

    assert _names(personal) == ["Visible"]
    assert _names(anonymous) == ["Visible", "Viewer"]


@pytest.mark.asyncio
async def test_feed_items_are_annotated_for_the_viewer(session, make_account):
    viewer, _ = await make_account("Viewer", minutes=1)
    bob, bob_profile = await make_account("Bob", minutes=2)
    await relations.toggle_like(session, viewer.id, bob_profile.id)
    await relations.toggle_follow(session, viewer.id, bob.id)

    (item,) = (await feed.get_feed(session, viewer.id)).profiles

    assert item.is_liked and item.is_following
    assert item.likes_count == 1
    assert item.followers_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"page": 0},
        {"page": -3},
        {"limit": 0},
        {"limit": 51},
        {"search": "x" * 101},
    ],
)
async def test_out_of_bounds_requests_are_rejected(session, kwargs):
    with pytest.raises(ValidationError):
        await feed.get_feed(session, None, **kwargs)


@pytest.mark.asyncio
async def test_page_past_the_end_is_empty(session, make_account):
    await make_account("Only", minutes=1)

    page = await feed.get_feed(session, None, page=5, limit=10)

    assert page.profiles == []
    assert page.pagination.current_page == 5
    assert page.pagination.has_prev is True
    assert page.pagination.has_next is False


def test_parse_interest_filter():
    assert feed.parse_interest_filter(" chess, art ,,") == ["chess", "art"]
    assert feed.parse_interest_filter("") == []
    assert feed.parse_interest_filter(None) == []


@pytest.mark.asyncio
async def test_get_profile_by_owner(session, make_account):
    viewer, _ = await make_account("Viewer")
    bob, bob_profile = await make_account("Bob")
    await relations.toggle_follow(session, viewer.id, bob.id)

    profile = await feed.get_profile(session, viewer.id, bob.id)

    assert profile.id == bob_profile.id
    assert profile.is_following is True


@pytest.mark.asyncio
async def test_get_profile_hides_inactive_and_missing(session, make_account):
    ghost, _ = await make_account("Ghost", active=False)

    with pytest.raises(NotFoundError):
        await feed.get_profile(session, None, ghost.id)
    with pytest.raises(NotFoundError):
        await feed.get_profile(session, None, "nobody")


@pytest.mark.asyncio
async def test_trending_after_follow_scenario(session, make_account):
    u1, _ = await make_account("Alice", interests=["chess"])
    u2, _ = await make_account("Bob", interests=["chess", "art"])
    await relations.toggle_follow(session, u1.id, u2.id)
    await relations.toggle_follow(session, u1.id, u2.id)

    trending = await feed.trending_interests(session)

    assert [(t.interest, t.count) for t in trending] == [("chess", 2), ("art", 1)]


@pytest.mark.asyncio
async def test_trending_ties_are_lexical_and_skip_inactive(session, make_account):
    await make_account("One", interests=["zen", "art", "code"])
    await make_account("Two", interests=["code"])
    await make_account("Gone", interests=["zen", "zen-only"], active=False)

    trending = await feed.trending_interests(session)

    assert [(t.interest, t.count) for t in trending] == [("code", 2), ("art", 1), ("zen", 1)]


@pytest.mark.asyncio
async def test_trending_is_capped(session, make_account):
    await make_account("Many", interests=[f"tag{i:02d}" for i in range(10)])
    await make_account("More", interests=[f"tag{i:02d}" for i in range(10, 20)])
    await make_account("Most", interests=[f"tag{i:02d}" for i in range(20, 25)])

    assert len(await feed.trending_interests(session)) == 20
    assert len(await feed.trending_interests(session, limit=5)) == 5
