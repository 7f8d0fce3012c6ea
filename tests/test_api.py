import uuid

import pytest


@pytest.fixture
def alice(make_user):
    return make_user("Alice", ["Guitar"])


@pytest.fixture
def bob(make_user):
    return make_user("Bob", ["Python"])


@pytest.fixture
def admin(make_user):
    return make_user("Root", role="admin")


def _create_swap(client, auth, requester, recipient, give="Guitar", get="Python"):
    return client.post(
        "/api/v1/swaps/",
        json={"recipient_id": recipient["id"], "requester_skill": give, "recipient_skill": get},
        headers=auth(requester),
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_requires_bearer_token(client):
    assert client.get("/api/v1/swaps/").status_code == 401
    bad = client.get("/api/v1/swaps/", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


def test_profile_is_created_on_first_put(client, auth):
    newcomer = {"id": str(uuid.uuid4()), "email": "new@example.com"}

    # Valid token, but no profile yet
    assert client.get("/api/v1/users/me", headers=auth(newcomer)).status_code == 401

    response = client.put(
        "/api/v1/users/me",
        json={"name": "Newt", "skills_offered": ["Knitting"], "availability": ["weekends"]},
        headers=auth(newcomer),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "new@example.com"
    assert body["role"] == "user"
    assert body["skills_offered"] == ["Knitting"]

    me = client.get("/api/v1/users/me", headers=auth(newcomer)).json()
    assert me["name"] == "Newt"


def test_profile_update_cannot_set_role(client, auth, alice, store):
    response = client.put("/api/v1/users/me", json={"role": "admin", "bio": "hi"}, headers=auth(alice))

    assert response.status_code == 200
    assert response.json()["role"] == "user"
    assert store.tables["users"][0]["role"] == "user"


def test_public_profile_hides_private_fields(client, auth, alice, bob):
    response = client.get(f"/api/v1/users/{bob['id']}", headers=auth(alice))
    assert response.status_code == 200
    assert "email" not in response.json()

    own = client.get(f"/api/v1/users/{alice['id']}", headers=auth(alice)).json()
    assert own["email"] == "alice@example.com"


def test_full_swap_scenario(client, auth, alice, bob, store):
    created = _create_swap(client, auth, alice, bob)
    assert created.status_code == 201
    swap = created.json()
    assert swap["status"] == "pending"
    assert swap["requester"]["name"] == "Alice"
    assert "email" not in swap["recipient"]

    accepted = client.put(f"/api/v1/swaps/{swap['id']}/accept", headers=auth(bob))
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"

    alice_notes = client.get("/api/v1/notifications/", headers=auth(alice)).json()
    assert [note["type"] for note in alice_notes] == ["swap_accepted"]

    completed = client.put(f"/api/v1/swaps/{swap['id']}/complete", headers=auth(alice))
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["completed_at"] is not None

    rating = {"swap_request_id": swap["id"], "to_user_id": bob["id"], "rating": 5, "skill_rated": "Python"}
    first = client.post("/api/v1/feedback/", json=rating, headers=auth(alice))
    assert first.status_code == 201

    profile = client.get(f"/api/v1/users/{bob['id']}").json()
    assert profile["rating"] == 5.0
    assert profile["total_ratings"] == 1

    again = client.post("/api/v1/feedback/", json=rating, headers=auth(alice))
    assert again.status_code == 409
    assert again.json()["error"] == "conflict"

    received = client.get(f"/api/v1/feedback/user/{bob['id']}").json()
    assert [item["rating"] for item in received] == [5]


def test_error_kinds_are_distinguishable(client, auth, alice, bob, make_user):
    carol = make_user("Carol", ["Cooking"])

    missing = _create_swap(client, auth, alice, {"id": str(uuid.uuid4())})
    assert (missing.status_code, missing.json()["error"]) == (404, "not_found")

    yourself = _create_swap(client, auth, alice, alice, get="Guitar")
    assert (yourself.status_code, yourself.json()["error"]) == (400, "self_reference")

    no_skill = _create_swap(client, auth, alice, bob, give="Drums")
    assert (no_skill.status_code, no_skill.json()["error"]) == (400, "validation_error")

    swap = _create_swap(client, auth, alice, bob).json()
    duplicate = _create_swap(client, auth, bob, alice, give="Python", get="Guitar")
    assert (duplicate.status_code, duplicate.json()["error"]) == (409, "conflict")

    not_yours = client.put(f"/api/v1/swaps/{swap['id']}/accept", headers=auth(alice))
    assert (not_yours.status_code, not_yours.json()["error"]) == (403, "forbidden")

    outsider = client.put(f"/api/v1/swaps/{swap['id']}/cancel", headers=auth(carol))
    assert outsider.status_code == 403

    wrong_state = client.put(f"/api/v1/swaps/{swap['id']}/complete", headers=auth(bob))
    assert (wrong_state.status_code, wrong_state.json()["error"]) == (409, "conflict")


def test_cancel_with_reason(client, auth, alice, bob):
    swap = _create_swap(client, auth, alice, bob).json()

    too_long = client.put(f"/api/v1/swaps/{swap['id']}/cancel", json={"reason": "x" * 201}, headers=auth(alice))
    assert too_long.status_code == 422

    response = client.put(f"/api/v1/swaps/{swap['id']}/cancel", json={"reason": "Busy"}, headers=auth(alice))
    assert response.status_code == 200
    assert response.json()["cancelled_by"] == alice["id"]
    assert response.json()["cancellation_reason"] == "Busy"


def test_list_mine_annotations(client, auth, alice, bob):
    swap = _create_swap(client, auth, alice, bob).json()

    mine = client.get("/api/v1/swaps/", headers=auth(bob)).json()
    assert len(mine) == 1
    assert mine[0]["id"] == swap["id"]
    assert mine[0]["is_requester"] is False
    assert mine[0]["other_user"]["name"] == "Alice"

    filtered = client.get("/api/v1/swaps/?status=completed", headers=auth(bob)).json()
    assert filtered == []


def test_malformed_swap_id(client, auth, alice):
    response = client.put("/api/v1/swaps/not-a-uuid/accept", headers=auth(alice))
    assert response.status_code == 422
    assert "Invalid UUID" in response.json()["detail"]


def test_banned_user_is_locked_out(client, auth, make_user):
    banned = make_user("Ban", ["Guitar"], banned=True)

    assert client.get("/api/v1/swaps/", headers=auth(banned)).status_code == 403


def test_notifications_mark_and_delete(client, auth, alice, bob):
    _create_swap(client, auth, alice, bob)
    notes = client.get("/api/v1/notifications/", headers=auth(bob)).json()
    assert len(notes) == 1 and notes[0]["is_read"] is False

    # Not bob's notification to touch
    assert client.patch(f"/api/v1/notifications/{notes[0]['id']}", json={"is_read": True}, headers=auth(alice)).status_code == 403

    marked = client.patch(f"/api/v1/notifications/{notes[0]['id']}", json={"is_read": True}, headers=auth(bob))
    assert marked.json()["is_read"] is True
    assert client.get("/api/v1/notifications/?is_read=false", headers=auth(bob)).json() == []

    assert client.delete(f"/api/v1/notifications/{notes[0]['id']}", headers=auth(bob)).status_code == 204
    assert client.get("/api/v1/notifications/", headers=auth(bob)).json() == []


def test_admin_routes_require_admin_role(client, auth, alice):
    assert client.get("/api/v1/admin/users", headers=auth(alice)).status_code == 403


def test_admin_role_grant_is_audited(client, auth, admin, alice):
    response = client.put(f"/api/v1/admin/users/{alice['id']}/role", json={"role": "admin"}, headers=auth(admin))
    assert response.status_code == 200
    assert response.json()["role"] == "admin"

    grants = client.get("/api/v1/admin/role-grants", headers=auth(admin)).json()
    assert len(grants) == 1
    assert grants[0]["user_id"] == alice["id"]
    assert grants[0]["granted_by"] == admin["id"]

    # The newly promoted admin can now reach admin routes
    assert client.get("/api/v1/admin/users", headers=auth(alice)).status_code == 200


def test_admin_ban_hides_user_from_swaps(client, auth, admin, alice, bob):
    banned = client.put(f"/api/v1/admin/users/{bob['id']}/ban", json={"reason": "spam"}, headers=auth(admin))
    assert banned.status_code == 200
    assert banned.json()["banned"] is True

    assert _create_swap(client, auth, alice, bob).status_code == 404
    assert client.get(f"/api/v1/users/{bob['id']}").status_code == 404

    assert client.put(f"/api/v1/admin/users/{admin['id']}/ban", headers=auth(admin)).status_code == 403


def test_admin_moderates_swaps_and_feedback(client, auth, admin, alice, bob, store):
    swap = _create_swap(client, auth, alice, bob).json()
    client.put(f"/api/v1/swaps/{swap['id']}/accept", headers=auth(bob))
    client.put(f"/api/v1/swaps/{swap['id']}/complete", headers=auth(bob))
    item = client.post(
        "/api/v1/feedback/",
        json={"swap_request_id": swap["id"], "to_user_id": bob["id"], "rating": 1, "skill_rated": "Python"},
        headers=auth(alice),
    ).json()
    client.post(
        "/api/v1/feedback/",
        json={"swap_request_id": swap["id"], "to_user_id": alice["id"], "rating": 4, "skill_rated": "Guitar"},
        headers=auth(bob),
    )

    listed = client.get("/api/v1/admin/feedback?rating=1", headers=auth(admin)).json()
    assert [entry["id"] for entry in listed] == [item["id"]]

    assert client.delete(f"/api/v1/admin/feedback/{item['id']}", headers=auth(admin)).status_code == 204
    assert client.get(f"/api/v1/users/{bob['id']}").json()["total_ratings"] == 0
    assert client.get(f"/api/v1/users/{alice['id']}").json()["rating"] == 4.0

    all_swaps = client.get("/api/v1/admin/swaps?status=completed", headers=auth(admin)).json()
    assert [entry["id"] for entry in all_swaps] == [swap["id"]]

    # Deleting a rated swap takes its remaining feedback out of the aggregate
    assert client.delete(f"/api/v1/admin/swaps/{swap['id']}", headers=auth(admin)).status_code == 204
    assert store.tables["swap_requests"] == []
    assert store.tables["feedback"] == []
    profile = client.get(f"/api/v1/users/{alice['id']}").json()
    assert (profile["rating"], profile["total_ratings"]) == (0.0, 0)


def test_announcements(client, auth, admin, alice):
    denied = client.post("/api/v1/announcements/", json={"title": "Hi", "content": "All"}, headers=auth(alice))
    assert denied.status_code == 403

    posted = client.post("/api/v1/announcements/", json={"title": "Welcome", "content": "Be kind"}, headers=auth(admin))
    assert posted.status_code == 201
    assert posted.json()["author"]["name"] == "Root"

    public = client.get("/api/v1/announcements/").json()
    assert [entry["title"] for entry in public] == ["Welcome"]


def test_list_mine_reports_pagination(client, auth, alice, bob, make_user):
    for name in ("Carol", "Dan", "Eve"):
        friend = make_user(name, ["Python"])
        _create_swap(client, auth, alice, friend)

    first = client.get("/api/v1/swaps/?limit=2", headers=auth(alice))
    assert len(first.json()) == 2
    assert first.headers["X-Total-Count"] == "3"
    assert first.headers["X-Has-Next"] == "true"

    last = client.get("/api/v1/swaps/?limit=2&skip=2", headers=auth(alice))
    assert len(last.json()) == 1
    assert last.headers["X-Has-Next"] == "false"

    none = client.get("/api/v1/swaps/?status=completed", headers=auth(alice))
    assert none.headers["X-Total-Count"] == "0"


def test_skill_suggestions_are_public(client, alice, bob):
    assert client.get("/api/v1/users/suggestions/skills?query=p").json() == {"suggestions": []}

    response = client.get("/api/v1/users/suggestions/skills?query=pyt")
    assert response.status_code == 200
    assert response.json() == {"suggestions": ["Python"]}


def test_delete_own_account(client, auth, alice, bob):
    _create_swap(client, auth, alice, bob)

    assert client.delete(f"/api/v1/users/{bob['id']}", headers=auth(alice)).status_code == 403

    assert client.delete(f"/api/v1/users/{alice['id']}", headers=auth(alice)).status_code == 204
    assert client.get(f"/api/v1/users/{alice['id']}").status_code == 404
    assert client.get("/api/v1/swaps/", headers=auth(bob)).json() == []
    # The token still verifies, but there is no profile behind it any more
    assert client.get("/api/v1/swaps/", headers=auth(alice)).status_code == 401
