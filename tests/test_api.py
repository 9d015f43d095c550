def _conversation(client, owner, *others):
    resp = client.post("/conversations", json={"participant_ids": [o["id"] for o in others]}, headers=owner["headers"])
    assert resp.status_code == 201
    return resp.json()["_id"]


def test_requests_without_token_are_rejected(client):
    assert client.get("/typing").status_code == 401
    assert client.get("/conversations/unread", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_sync_is_an_upsert(client, signup):
    first = signup("Alice")
    again = signup("Alice")
    assert first["id"] == again["id"]
    users = client.get("/users", headers=first["headers"]).json()
    assert [u["name"] for u in users] == ["Alice"]
    assert users[0]["is_online"] is True


def test_one_to_one_conversation_is_reused(client, signup):
    alice, bob = signup("Alice"), signup("Bob")
    assert _conversation(client, alice, bob) == _conversation(client, bob, alice)


def test_typing_flow(client, signup):
    alice, bob = signup("Alice"), signup("Bob")
    convo = _conversation(client, alice, bob)

    assert client.post("/typing", json={"conversation_id": convo, "is_typing": True}, headers=alice["headers"]).status_code == 204
    resp = client.get(f"/typing/{convo}", headers=bob["headers"])
    assert resp.json() == {"conversation_id": convo, "users": [{"id": alice["id"], "name": "Alice"}]}

    everything = client.get("/typing", headers=bob["headers"]).json()
    assert everything == {"conversations": {convo: [{"id": alice["id"], "name": "Alice"}]}}

    client.post("/typing", json={"conversation_id": convo, "is_typing": False}, headers=alice["headers"])
    assert client.get(f"/typing/{convo}", headers=bob["headers"]).json()["users"] == []


def test_outsiders_cannot_touch_a_conversation(client, signup):
    alice, bob, eve = signup("Alice"), signup("Bob"), signup("Eve")
    convo = _conversation(client, alice, bob)

    assert client.get(f"/typing/{convo}", headers=eve["headers"]).status_code == 403
    assert client.post("/typing", json={"conversation_id": convo, "is_typing": True}, headers=eve["headers"]).status_code == 403
    assert client.post(f"/conversations/{convo}/read", headers=eve["headers"]).status_code == 403
    assert client.get("/typing/650000000000000000000000", headers=eve["headers"]).status_code == 404


def test_unread_flow(client, signup):
    alice, bob = signup("Alice"), signup("Bob")
    convo = _conversation(client, alice, bob)

    for text in ("hi", "are you there?"):
        assert client.post(f"/conversations/{convo}/messages", json={"content": text}, headers=alice["headers"]).status_code == 201

    assert client.get(f"/conversations/{convo}/unread", headers=alice["headers"]).json()["unread"] == 0
    assert client.get(f"/conversations/{convo}/unread", headers=bob["headers"]).json()["unread"] == 2
    assert client.get("/conversations/unread", headers=bob["headers"]).json() == {"counts": {convo: 2}}

    resp = client.post(f"/conversations/{convo}/read", headers=bob["headers"])
    assert resp.json() == {"conversation_id": convo, "updated": 2}
    assert client.get(f"/conversations/{convo}/unread", headers=bob["headers"]).json()["unread"] == 0
    assert client.post(f"/conversations/{convo}/read", headers=bob["headers"]).json()["updated"] == 0

    history = client.get(f"/conversations/{convo}/messages", headers=bob["headers"]).json()["items"]
    assert [m["content"] for m in history] == ["hi", "are you there?"]
    assert all(set(m["read_by"]) == {alice["id"], bob["id"]} for m in history)


def test_empty_message_is_rejected(client, signup):
    alice, bob = signup("Alice"), signup("Bob")
    convo = _conversation(client, alice, bob)
    resp = client.post(f"/conversations/{convo}/messages", json={"content": "   "}, headers=alice["headers"])
    assert resp.status_code == 400


def test_presence_follows_online_flag(client, signup):
    alice = signup("Alice")
    assert client.get(f"/presence/{alice['id']}").json()["online"] is True

    resp = client.post("/users/online", json={"clerk_id": alice["clerk_id"], "online": False}, headers=alice["headers"])
    assert resp.status_code == 200
    assert client.get(f"/presence/{alice['id']}").json()["online"] is False


def test_cannot_set_someone_elses_presence(client, signup):
    alice, bob = signup("Alice"), signup("Bob")
    resp = client.post("/users/online", json={"clerk_id": bob["clerk_id"], "online": False}, headers=alice["headers"])
    assert resp.status_code == 403


def test_websocket_typing_and_read(client, signup):
    alice, bob = signup("Alice"), signup("Bob")
    convo = _conversation(client, alice, bob)
    client.post(f"/conversations/{convo}/messages", json={"content": "ping"}, headers=alice["headers"])

    with client.websocket_connect(f"/ws/{bob['id']}?token={bob['token']}") as ws:
        ws.send_json({"type": "typing_start", "conversation_id": convo})
        assert ws.receive_json() == {"type": "ack", "event": "typing_start", "conversation_id": convo}
        ws.send_json({"type": "read", "conversation_id": convo})
        assert ws.receive_json()["updated"] == 1
        ws.send_json({"type": "bogus"})
        assert ws.receive_json()["type"] == "error"

    users = client.get(f"/typing/{convo}", headers=alice["headers"]).json()["users"]
    assert users == [{"id": bob["id"], "name": "Bob"}]
    assert client.get(f"/conversations/{convo}/unread", headers=bob["headers"]).json()["unread"] == 0


def test_typing_reaches_other_participants_socket_without_redis(client, signup):
    alice, bob = signup("Alice"), signup("Bob")
    convo = _conversation(client, alice, bob)

    with client.websocket_connect(f"/ws/{bob['id']}?token={bob['token']}") as bob_ws:
        resp = client.post("/typing", json={"conversation_id": convo, "is_typing": True}, headers=alice["headers"])
        assert resp.status_code == 204
        assert bob_ws.receive_json() == {
            "type": "typing",
            "conversation_id": convo,
            "user_id": alice["id"],
            "is_typing": True,
        }


def test_websocket_rejects_non_object_payloads(client, signup):
    alice, bob = signup("Alice"), signup("Bob")
    convo = _conversation(client, alice, bob)

    with client.websocket_connect(f"/ws/{alice['id']}?token={alice['token']}") as ws:
        ws.send_text("[1, 2]")
        assert ws.receive_json() == {"type": "error", "detail": "Invalid message payload"}
        ws.send_json({"type": "typing_start", "conversation_id": 42})
        assert ws.receive_json()["type"] == "error"
        # the socket is still usable
        ws.send_json({"type": "typing_start", "conversation_id": convo})
        assert ws.receive_json() == {"type": "ack", "event": "typing_start", "conversation_id": convo}


def test_message_edit_delete_react_and_reply(client, signup):
    alice, bob = signup("Alice"), signup("Bob")
    convo = _conversation(client, alice, bob)
    sent = client.post(f"/conversations/{convo}/messages", json={"content": "hi"}, headers=alice["headers"]).json()
    base = f"/conversations/{convo}/messages/{sent['_id']}"

    assert client.patch(base, json={"content": "yo"}, headers=bob["headers"]).status_code == 403
    edited = client.patch(base, json={"content": "hey"}, headers=alice["headers"])
    assert edited.status_code == 200
    assert edited.json()["content"] == "hey"

    reacted = client.post(f"{base}/reactions", json={"emoji": "👍"}, headers=bob["headers"])
    assert reacted.json() == {"message_id": sent["_id"], "reactions": [{"emoji": "👍", "user_ids": [bob["id"]]}]}

    reply = client.post(f"/conversations/{convo}/messages", json={"content": "hey back", "reply_to": sent["_id"]}, headers=bob["headers"])
    assert reply.status_code == 201
    assert reply.json()["reply_to"] == sent["_id"]

    assert client.delete(base, headers=bob["headers"]).status_code == 403
    deleted = client.delete(base, headers=alice["headers"])
    assert deleted.json()["deleted"] is True
    assert client.post(f"{base}/reactions", json={"emoji": "👍"}, headers=bob["headers"]).status_code == 400
    assert client.patch(f"/conversations/{convo}/messages/650000000000000000000000", json={"content": "x"}, headers=alice["headers"]).status_code == 404
