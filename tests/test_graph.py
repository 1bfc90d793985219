"""Annotation of profiles with counts and viewer-relative flags."""
from contextlib import contextmanager

import pytest
from sqlalchemy import event, select

from profile_api.core import graph, relations
from profile_api.models import Profile


@contextmanager
def count_statements(database):
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):  # noqa: ANN001
        statements.append(statement)

    engine = database.engine.sync_engine
    event.listen(engine, "before_cursor_execute", _record)
    try:
        yield statements
    finally:
        event.remove(engine, "before_cursor_execute", _record)


async def _all_profiles(session):
    rows = await session.execute(select(Profile).order_by(Profile.name))
    return list(rows.scalars().all())


@pytest.mark.asyncio
async def test_anonymous_viewer_gets_counts_but_no_flags(session, make_account):
    alice, _ = await make_account("Alice")
    bob, bob_profile = await make_account("Bob")
    await relations.toggle_like(session, alice.id, bob_profile.id)
    await relations.toggle_follow(session, alice.id, bob.id)

    annotated = {p.name: p for p in await graph.annotate(session, None, await _all_profiles(session))}

    assert annotated["Bob"].likes_count == 1
    assert annotated["Bob"].followers_count == 1
    assert annotated["Alice"].following_count == 1
    assert not any(p.is_liked or p.is_following for p in annotated.values())


@pytest.mark.asyncio
async def test_viewer_flags_reflect_own_edges_only(session, make_account):
    alice, _ = await make_account("Alice")
    bob, bob_profile = await make_account("Bob")
    carol, carol_profile = await make_account("Carol")
    await relations.toggle_like(session, alice.id, bob_profile.id)
    await relations.toggle_follow(session, alice.id, carol.id)
    # Someone else's edges must not leak into Alice's flags
    await relations.toggle_like(session, bob.id, carol_profile.id)

    annotated = {p.name: p for p in await graph.annotate(session, alice.id, await _all_profiles(session))}

    assert (annotated["Bob"].is_liked, annotated["Bob"].is_following) == (True, False)
    assert (annotated["Carol"].is_liked, annotated["Carol"].is_following) == (False, True)
    assert annotated["Carol"].likes_count == 1


@pytest.mark.asyncio
async def test_viewer_is_never_following_themselves(session, make_account):
    alice, alice_profile = await make_account("Alice")

    (annotated,) = await graph.annotate(session, alice.id, [alice_profile])

    assert annotated.is_following is False


@pytest.mark.asyncio
async def test_page_annotation_uses_fixed_number_of_queries(database, session, make_account):
    viewer, _ = await make_account("Viewer")
    for i in range(6):
        await make_account(f"Member {i}")
    profiles = await _all_profiles(session)

    with count_statements(database) as anonymous:
        await graph.annotate(session, None, profiles)
    with count_statements(database) as personal:
        await graph.annotate(session, viewer.id, profiles)

    assert len(anonymous) == 3
    assert len(personal) == 5


@pytest.mark.asyncio
async def test_annotation_preserves_input_order(session, make_account):
    await make_account("Alice")
    await make_account("Bob")
    profiles = list(reversed(await _all_profiles(session)))

    annotated = await graph.annotate(session, None, profiles)

    assert [p.id for p in annotated] == [p.id for p in profiles]


@pytest.mark.asyncio
async def test_empty_page_runs_no_queries(database, session):
    with count_statements(database) as statements:
        assert await graph.annotate(session, "anyone", []) == []
    assert statements == []
