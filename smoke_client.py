"""Manual end-to-end check against a running server.

Registers two throwaway users, opens a room between them, connects both
over the WebSocket and sends one message from each side.

    uvicorn app.main:app --app-dir backend
    python smoke_client.py [http://localhost:8000]
"""
import asyncio
import json
import sys
import uuid

import httpx
import websockets


async def register(client: httpx.AsyncClient, name: str) -> dict:
    suffix = uuid.uuid4().hex[:8]
    resp = await client.post("/api/v1/auth/register", json={
        "firstName": name,
        "lastName": "Smoke",
        "username": f"{name.lower()}_{suffix}",
        "email": f"{name.lower()}_{suffix}@example.com",
        "password": "Sm0ke-test!",
    })
    resp.raise_for_status()
    return resp.json()


async def recv_until(ws, event: str) -> dict:
    while True:
        frame = json.loads(await ws.recv())
        print(f"  <- {frame['type']}")
        if frame["type"] == event:
            return frame


async def main(base_url: str) -> None:
    ws_url = base_url.replace("http", "ws", 1) + "/ws"
    async with httpx.AsyncClient(base_url=base_url) as client:
        alice = await register(client, "Alice")
        bob = await register(client, "Bob")
        resp = await client.post(
            "/api/v1/rooms",
            json={"participantEmail": bob["user"]["email"]},
            headers={"Authorization": f"Bearer {alice['token']}"},
        )
        resp.raise_for_status()
        room_id = resp.json()["room"]["id"]
        print(f"Room {room_id}")

    async with websockets.connect(f"{ws_url}?token={alice['token']}") as ws_a, \
            websockets.connect(f"{ws_url}?token={bob['token']}") as ws_b:
        for ws in (ws_a, ws_b):
            await recv_until(ws, "connected")
            await ws.send(json.dumps({"type": "joinRoom", "roomId": room_id}))
            await recv_until(ws, "joinedRoom")

        await ws_a.send(json.dumps({"type": "sendMessage", "roomId": room_id, "content": "Hello Bob"}))
        received = await recv_until(ws_b, "newMessage")
        print(f"Bob received: {received['message']['content']}")
        await recv_until(ws_b, "newNotification")

        await ws_b.send(json.dumps({"type": "sendMessage", "roomId": room_id, "content": "Hi Alice"}))
        received = await recv_until(ws_a, "newMessage")
        print(f"Alice received: {received['message']['content']}")

        await ws_a.send(json.dumps({"type": "getMessages", "roomId": room_id}))
        page = await recv_until(ws_a, "messagesList")
        print(f"History: {[m['content'] for m in page['messages']]}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"))
