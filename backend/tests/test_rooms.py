"""Tests for the rooms REST endpoints."""
from app.storage import new_id


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_create_room_with_system_message(api_client, register_user, create_room):
    alice = register_user("Alice", "Smith")
    bob = register_user("Bob", "Jones")

    room = create_room(alice, bob)

    assert [p["id"] for p in room["participants"]] == [alice["user"]["id"], bob["user"]["id"]]
    assert room["lastMessage"]["content"] == "Alice Smith created the room with Bob Jones."

    resp = api_client.get(f"/api/v1/rooms/chat/{room['id']}/messages", headers=_auth(alice["token"]))
    messages = resp.json()["messages"]
    assert len(messages) == 1
    assert messages[0]["type"] == "system"
    assert messages[0]["id"] == room["lastMessage"]["id"]


def test_create_room_requires_participant_email(api_client, register_user):
    alice = register_user("Alice")
    resp = api_client.post("/api/v1/rooms", json={}, headers=_auth(alice["token"]))
    assert resp.status_code == 400
    assert resp.json()["details"] == "Participant email is required"


def test_create_room_unknown_email(api_client, register_user):
    alice = register_user("Alice")
    resp = api_client.post(
        "/api/v1/rooms", json={"participantEmail": "nobody@example.com"}, headers=_auth(alice["token"])
    )
    assert resp.status_code == 404
    assert resp.json()["details"] == "User with this email does not exist"


def test_create_room_with_self_rejected(api_client, register_user):
    alice = register_user("Alice")
    resp = api_client.post(
        "/api/v1/rooms",
        json={"participantEmail": alice["user"]["email"]},
        headers=_auth(alice["token"]),
    )
    assert resp.status_code == 400


def test_list_rooms_sorted_and_searchable(api_client, register_user, create_room):
    alice = register_user("Alice")
    bob = register_user("Bob")
    carol = register_user("Carol")

    with_bob = create_room(alice, bob)
    with_carol = create_room(alice, carol)

    resp = api_client.get("/api/v1/rooms", headers=_auth(alice["token"]))
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()["rooms"]] == [with_carol["id"], with_bob["id"]]

    # a new message moves the older room back to the top
    api_client.post(
        f"/api/v1/rooms/chat/{with_bob['id']}/messages",
        json={"content": "ping"},
        headers=_auth(bob["token"]),
    )
    resp = api_client.get("/api/v1/rooms", headers=_auth(alice["token"]))
    assert [r["id"] for r in resp.json()["rooms"]] == [with_bob["id"], with_carol["id"]]

    resp = api_client.get("/api/v1/rooms", params={"search": "caro"}, headers=_auth(alice["token"]))
    assert [r["id"] for r in resp.json()["rooms"]] == [with_carol["id"]]

    resp = api_client.get("/api/v1/rooms", headers=_auth(carol["token"]))
    assert [r["id"] for r in resp.json()["rooms"]] == [with_carol["id"]]


def test_get_room_hidden_from_non_participants(api_client, register_user, create_room):
    alice = register_user("Alice")
    bob = register_user("Bob")
    eve = register_user("Eve")
    room = create_room(alice, bob)

    assert api_client.get(f"/api/v1/rooms/{room['id']}", headers=_auth(bob["token"])).status_code == 200

    hidden = api_client.get(f"/api/v1/rooms/{room['id']}", headers=_auth(eve["token"]))
    missing = api_client.get(f"/api/v1/rooms/{new_id()}", headers=_auth(eve["token"]))
    assert hidden.status_code == missing.status_code == 404
    assert hidden.json()["error"] == missing.json()["error"] == "Room not found"


def test_get_room_malformed_id(api_client, register_user):
    alice = register_user("Alice")
    resp = api_client.get("/api/v1/rooms/not-an-id", headers=_auth(alice["token"]))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid ID format"


def test_leave_room(api_client, register_user, create_room):
    alice = register_user("Alice")
    bob = register_user("Bob")
    room = create_room(alice, bob)

    resp = api_client.post(f"/api/v1/rooms/{room['id']}/leave", headers=_auth(bob["token"]))
    assert resp.status_code == 200
    assert resp.json()["message"] == "Left the room successfully"

    assert api_client.get("/api/v1/rooms", headers=_auth(bob["token"])).json()["rooms"] == []
    assert api_client.get(f"/api/v1/rooms/{room['id']}", headers=_auth(bob["token"])).status_code == 404
    # the room stays for the other participant
    assert len(api_client.get("/api/v1/rooms", headers=_auth(alice["token"])).json()["rooms"]) == 1


def test_unknown_route_is_json_404(api_client):
    resp = api_client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Not Found"


def test_health(api_client):
    assert api_client.get("/health").json() == {"status": "ok"}
