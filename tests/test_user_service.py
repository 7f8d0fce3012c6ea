import uuid

import pytest

from skillswap.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from skillswap.schemas.swap import SwapAction
from skillswap.schemas.user import UserRole
from skillswap.utils import admin_cli


@pytest.mark.asyncio
async def test_upsert_creates_then_updates_profile(users):
    user_id = str(uuid.uuid4())

    with pytest.raises(ValidationError):
        await users.upsert_profile(user_id, "x@example.com", {"bio": "no name yet"})

    created = await users.upsert_profile(
        user_id, "x@example.com", {"name": "Xena", "skills_offered": [" Guitar ", "Guitar", ""]}
    )
    assert created["role"] == "user"
    assert created["is_public"] is True
    assert created["skills_offered"] == ["Guitar"]

    updated = await users.upsert_profile(user_id, "x@example.com", {"is_public": False})
    assert updated["is_public"] is False
    assert updated["name"] == "Xena"


@pytest.mark.asyncio
async def test_profile_visibility_rules(users, make_user):
    public = make_user("Pat", ["Chess"])
    private = make_user("Priv", is_public=False)
    banned = make_user("Ban", banned=True)

    seen = await users.get_profile(public["id"], viewer_id=private["id"])
    assert seen["name"] == "Pat"
    assert "email" not in seen and "role" not in seen

    own = await users.get_profile(private["id"], viewer_id=private["id"])
    assert own["email"] == "priv@example.com"

    with pytest.raises(ForbiddenError):
        await users.get_profile(private["id"], viewer_id=public["id"])
    with pytest.raises(ForbiddenError):
        await users.get_profile(private["id"])
    with pytest.raises(NotFoundError):
        await users.get_profile(banned["id"])


@pytest.mark.asyncio
async def test_search_by_skill_availability_and_location(users, make_user):
    me = make_user("Me", ["Python"])
    guitar = make_user("Gil", ["Guitar"], availability=["weekends"], location="Lisbon", rating=4.0)
    wants_guitar = make_user("Wendy", ["Baking"], skills_wanted=["Guitar"], availability=["evenings"], rating=5.0)
    make_user("Hidden", ["Guitar"], is_public=False)
    make_user("Banned", ["Guitar"], banned=True)

    found = await users.search(skill="Guitar", exclude_id=me["id"])
    assert [user["id"] for user in found] == [wants_guitar["id"], guitar["id"]]

    found = await users.search(skill="Guitar", availability=["weekends"])
    assert [user["id"] for user in found] == [guitar["id"]]

    found = await users.search(location="lis")
    assert [user["id"] for user in found] == [guitar["id"]]
    assert "email" not in found[0]


@pytest.mark.asyncio
async def test_grant_role_requires_admin_and_is_audited(users, store, make_user):
    admin = make_user("Root", role="admin")
    member = make_user("Member")

    with pytest.raises(ForbiddenError):
        await users.grant_role(member, member["id"], UserRole.ADMIN)

    promoted = await users.grant_role(admin, member["id"], UserRole.ADMIN)
    assert promoted["role"] == "admin"

    grants = await users.role_grants(member["id"])
    assert len(grants) == 1
    assert grants[0]["granted_by"] == admin["id"]
    assert grants[0]["old_role"] == "user"
    assert grants[0]["new_role"] == "admin"


@pytest.mark.asyncio
async def test_admin_cannot_demote_self(users, make_user):
    admin = make_user("Root", role="admin")

    with pytest.raises(ForbiddenError):
        await users.grant_role(admin, admin["id"], UserRole.USER)


@pytest.mark.asyncio
async def test_operator_bootstrap_grant_has_no_granting_admin(users, make_user):
    first = make_user("First")

    await users.grant_role(None, first["id"], UserRole.ADMIN)

    grants = await users.role_grants(first["id"])
    assert grants[0]["granted_by"] is None


@pytest.mark.asyncio
async def test_ban_and_unban(users, make_user):
    admin = make_user("Root", role="admin")
    other_admin = make_user("Ops", role="admin")
    member = make_user("Member")

    banned = await users.set_banned(admin, member["id"], True, "spam")
    assert banned["banned"] is True
    assert banned["ban_reason"] == "spam"

    unbanned = await users.set_banned(admin, member["id"], False)
    assert unbanned["banned"] is False
    assert unbanned["ban_reason"] is None

    with pytest.raises(ForbiddenError):
        await users.set_banned(admin, other_admin["id"], True)


@pytest.mark.asyncio
async def test_bootstrap_admin_only_while_no_admin_exists(users, make_user):
    first = make_user("First")
    second = make_user("Second")

    await users.bootstrap_admin(first["id"])

    with pytest.raises(ConflictError):
        await users.bootstrap_admin(second["id"])
    assert (await users.get_user(second["id"]))["role"] == "user"


def test_bootstrap_command_refuses_second_admin(store, make_user, monkeypatch, capsys):
    monkeypatch.setattr(admin_cli, "get_store", lambda: store)
    first = make_user("First")
    second = make_user("Second")

    assert admin_cli.main(["bootstrap-admin", "--user-id", first["id"]]) == 0
    assert admin_cli.main(["bootstrap-admin", "--user-id", second["id"]]) == 1
    assert "already exists" in capsys.readouterr().err
    assert [user["role"] for user in store.tables["users"]] == ["admin", "user"]


@pytest.mark.asyncio
async def test_skill_suggestions(users, make_user):
    make_user("Gil", ["Guitar", "Piano"], skills_wanted=["Bass guitar"])
    make_user("Ana", ["guitar tuning"])
    make_user("Hidden", ["Guitar hero"], is_public=False)

    assert await users.suggest_skills("g") == []
    assert await users.suggest_skills("gui") == ["Guitar", "guitar tuning", "Bass guitar"]
    assert await users.suggest_skills("gui", limit=1) == ["Guitar"]


@pytest.mark.asyncio
async def test_delete_account_is_own_only(users, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")

    with pytest.raises(ForbiddenError):
        await users.delete_account(bob["id"], alice["id"])
    ghost = str(uuid.uuid4())
    with pytest.raises(NotFoundError):
        await users.delete_account(ghost, ghost)


@pytest.mark.asyncio
async def test_delete_account_removes_swaps_and_their_ratings(users, swaps, feedback, store, make_user):
    alice = make_user("Alice", ["Guitar"])
    bob = make_user("Bob", ["Python"])
    carol = make_user("Carol", ["Cooking", "Python"])

    swap = await swaps.create_swap(alice, bob["id"], "Guitar", "Python")
    await swaps.transition_swap(swap["id"], bob["id"], SwapAction.ACCEPT)
    await swaps.transition_swap(swap["id"], alice["id"], SwapAction.COMPLETE)
    await feedback.submit_feedback(swap["id"], alice, bob["id"], 1, "Python")
    other = await swaps.create_swap(carol, bob["id"], "Cooking", "Python")
    await swaps.transition_swap(other["id"], bob["id"], SwapAction.ACCEPT)
    await swaps.transition_swap(other["id"], bob["id"], SwapAction.COMPLETE)
    await feedback.submit_feedback(other["id"], carol, bob["id"], 5, "Python")
    assert (await store.get("users", bob["id"]))["rating"] == 3.0

    await users.delete_account(alice["id"], alice["id"])

    assert await store.get("users", alice["id"]) is None
    assert await store.get("swap_requests", swap["id"]) is None
    assert await store.get("swap_requests", other["id"]) is not None
    assert await store.count("notifications", {"user_id": alice["id"]}) == 0
    ratee = await store.get("users", bob["id"])
    assert (ratee["rating"], ratee["total_ratings"]) == (5.0, 1)
