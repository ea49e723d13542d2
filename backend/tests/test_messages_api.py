"""Tests for the message history and notification REST endpoints."""
from app.storage import new_id


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _post(api_client, room_id: str, account: dict, content):
    return api_client.post(
        f"/api/v1/rooms/chat/{room_id}/messages",
        json={"content": content},
        headers=_auth(account["token"]),
    )


class TestMessages:
    def test_post_and_page_history(self, api_client, register_user, create_room):
        alice = register_user("Alice")
        bob = register_user("Bob")
        room = create_room(alice, bob)

        for i in range(4):
            resp = _post(api_client, room["id"], alice, f"m{i}")
            assert resp.status_code == 201
            assert resp.json()["message"]["content"] == f"m{i}"

        resp = api_client.get(
            f"/api/v1/rooms/chat/{room['id']}/messages",
            params={"limit": 3},
            headers=_auth(bob["token"]),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [m["content"] for m in body["messages"]] == ["m1", "m2", "m3"]
        assert body["pagination"] == {"hasMore": True, "nextCursor": body["messages"][0]["id"]}

        resp = api_client.get(
            f"/api/v1/rooms/chat/{room['id']}/messages",
            params={"limit": 3, "cursor": body["pagination"]["nextCursor"]},
            headers=_auth(bob["token"]),
        )
        older = resp.json()
        assert [m["content"] for m in older["messages"]][-1] == "m0"
        assert older["pagination"]["hasMore"] is False

    def test_invalid_limit_and_cursor(self, api_client, register_user, create_room):
        alice = register_user("Alice")
        bob = register_user("Bob")
        room = create_room(alice, bob)
        url = f"/api/v1/rooms/chat/{room['id']}/messages"

        assert api_client.get(url, params={"limit": 0}, headers=_auth(alice["token"])).status_code == 400
        assert api_client.get(url, params={"cursor": "zzz"}, headers=_auth(alice["token"])).status_code == 400
        resp = api_client.get(url, params={"limit": 500}, headers=_auth(alice["token"]))
        assert resp.status_code == 200

    def test_blank_content_rejected(self, api_client, register_user, create_room):
        alice = register_user("Alice")
        bob = register_user("Bob")
        room = create_room(alice, bob)

        resp = _post(api_client, room["id"], alice, "   ")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Message content is required"
        assert _post(api_client, room["id"], alice, None).status_code == 400

    def test_outsider_gets_not_found(self, api_client, register_user, create_room):
        alice = register_user("Alice")
        bob = register_user("Bob")
        eve = register_user("Eve")
        room = create_room(alice, bob)

        assert _post(api_client, room["id"], eve, "hi").status_code == 404
        assert _post(api_client, new_id(), eve, "hi").status_code == 404
        resp = api_client.get(f"/api/v1/rooms/chat/{room['id']}/messages", headers=_auth(eve["token"]))
        assert resp.status_code == 404
        resp = api_client.post(f"/api/v1/rooms/chat/{room['id']}/messages/read", headers=_auth(eve["token"]))
        assert resp.status_code == 404

    def test_mark_read(self, api_client, register_user, create_room):
        alice = register_user("Alice")
        bob = register_user("Bob")
        room = create_room(alice, bob)
        _post(api_client, room["id"], alice, "hello")

        url = f"/api/v1/rooms/chat/{room['id']}/messages/read"
        for _ in range(2):
            resp = api_client.post(url, headers=_auth(bob["token"]))
            assert resp.status_code == 200
            assert resp.json() == {"message": "Messages marked as read"}

        history = api_client.get(
            f"/api/v1/rooms/chat/{room['id']}/messages", headers=_auth(alice["token"])
        ).json()["messages"]
        assert history[-1]["read"] is True

    def test_requires_auth(self, api_client):
        resp = api_client.get(f"/api/v1/rooms/chat/{new_id()}/messages")
        assert resp.status_code == 401


class TestNotifications:
    def _setup(self, api_client, register_user, create_room, count: int = 3):
        alice = register_user("Alice", "Smith")
        bob = register_user("Bob")
        room = create_room(alice, bob)
        for i in range(count):
            _post(api_client, room["id"], alice, f"note {i}")
        return alice, bob, room

    def test_one_notification_per_message_for_the_recipient(self, api_client, register_user, create_room):
        alice, bob, room = self._setup(api_client, register_user, create_room)

        body = api_client.get("/api/v1/notifications", headers=_auth(bob["token"])).json()
        assert body["unreadCount"] == 3
        assert [n["body"] for n in body["notifications"]] == ["note 2", "note 1", "note 0"]
        assert all(n["title"] == "Alice Smith" and n["roomId"] == room["id"] for n in body["notifications"])

        # the system message and the sender's own messages notify nobody
        sender = api_client.get("/api/v1/notifications", headers=_auth(alice["token"])).json()
        assert sender == {"notifications": [], "unreadCount": 0}

    def test_limit_and_skip(self, api_client, register_user, create_room):
        _, bob, _ = self._setup(api_client, register_user, create_room)
        body = api_client.get(
            "/api/v1/notifications", params={"limit": 1, "skip": 1}, headers=_auth(bob["token"])
        ).json()
        assert [n["body"] for n in body["notifications"]] == ["note 1"]
        assert body["unreadCount"] == 3

    def test_mark_one_and_all_read(self, api_client, register_user, create_room):
        _, bob, _ = self._setup(api_client, register_user, create_room)
        listing = api_client.get("/api/v1/notifications", headers=_auth(bob["token"])).json()
        target = listing["notifications"][0]["id"]

        resp = api_client.patch(f"/api/v1/notifications/{target}/read", headers=_auth(bob["token"]))
        assert resp.status_code == 200
        assert resp.json()["notification"]["read"] is True
        assert api_client.get("/api/v1/notifications", headers=_auth(bob["token"])).json()["unreadCount"] == 2

        resp = api_client.patch("/api/v1/notifications/read-all", headers=_auth(bob["token"]))
        assert resp.status_code == 200
        assert api_client.get("/api/v1/notifications", headers=_auth(bob["token"])).json()["unreadCount"] == 0

    def test_delete_one_and_all(self, api_client, register_user, create_room):
        _, bob, _ = self._setup(api_client, register_user, create_room)
        listing = api_client.get("/api/v1/notifications", headers=_auth(bob["token"])).json()
        target = listing["notifications"][0]["id"]

        assert api_client.delete(f"/api/v1/notifications/{target}", headers=_auth(bob["token"])).status_code == 200
        assert api_client.delete(f"/api/v1/notifications/{target}", headers=_auth(bob["token"])).status_code == 404
        assert api_client.delete("/api/v1/notifications", headers=_auth(bob["token"])).status_code == 200
        assert api_client.get("/api/v1/notifications", headers=_auth(bob["token"])).json()["notifications"] == []

    def test_foreign_notification_is_not_found(self, api_client, register_user, create_room):
        alice, bob, _ = self._setup(api_client, register_user, create_room, count=1)
        target = api_client.get(
            "/api/v1/notifications", headers=_auth(bob["token"])
        ).json()["notifications"][0]["id"]

        assert api_client.patch(f"/api/v1/notifications/{target}/read", headers=_auth(alice["token"])).status_code == 404
        assert api_client.delete(f"/api/v1/notifications/{target}", headers=_auth(alice["token"])).status_code == 404
        assert api_client.get("/api/v1/notifications", headers=_auth(bob["token"])).json()["unreadCount"] == 1
