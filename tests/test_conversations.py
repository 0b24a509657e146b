# tests/test_conversations.py

from flowguard.core.cache import ConversationCache

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


def _create(client, title="Inbox triage", headers=ALICE):
    return client.post("/api/v1/conversations", json={"title": title}, headers=headers).json()["conversation"]


def test_conversation_crud(client):
    conversation = _create(client)
    assert conversation["userId"] == "alice"
    assert conversation["title"] == "Inbox triage"

    renamed = client.patch(
        f"/api/v1/conversations/{conversation['id']}", json={"title": "  Renamed  "}, headers=ALICE,
    ).json()["conversation"]
    assert renamed["title"] == "Renamed"

    listed = client.get("/api/v1/conversations", headers=ALICE).json()["conversations"]
    assert [c["title"] for c in listed] == ["Renamed"]

    assert client.delete(f"/api/v1/conversations/{conversation['id']}", headers=ALICE).json() == {"success": True}
    assert client.get("/api/v1/conversations", headers=ALICE).json()["conversations"] == []
    assert client.delete(f"/api/v1/conversations/{conversation['id']}", headers=ALICE).status_code == 404


def test_conversations_are_scoped_to_user(client):
    conversation = _create(client)
    assert client.get(f"/api/v1/conversations/{conversation['id']}", headers=BOB).status_code == 404
    assert client.patch(f"/api/v1/conversations/{conversation['id']}", json={"title": "x"}, headers=BOB).status_code == 404
    assert client.get("/api/v1/conversations", headers=BOB).json()["conversations"] == []


def test_messages_are_ordered_and_validated(client):
    conversation = _create(client)
    url = f"/api/v1/conversations/{conversation['id']}/messages"
    for text in ("first", "second", "third"):
        assert client.post(url, json={"role": "user", "content": text}, headers=ALICE).status_code == 200

    messages = client.get(url, headers=ALICE).json()["messages"]
    assert [m["content"] for m in messages] == ["first", "second", "third"]
    assert [m["content"] for m in client.get(url, params={"limit": 2}, headers=ALICE).json()["messages"]] == ["first", "second"]

    bad_role = client.post(url, json={"role": "robot", "content": "hi"}, headers=ALICE)
    assert bad_role.status_code == 400
    assert bad_role.json()["detail"]["message"] == "Invalid role"
    assert client.post(url, json={"role": "user", "content": "  "}, headers=ALICE).status_code == 400


def test_delete_cascades_to_workflows(client, graph_dict):
    conversation = _create(client)
    workflow = client.post(
        f"/api/v1/conversations/{conversation['id']}/workflows", json={"workflow": graph_dict}, headers=ALICE,
    ).json()["workflow"]
    assert client.get(f"/api/v1/conversations/{conversation['id']}/workflows", headers=ALICE).json()["workflows"][0]["id"] == workflow["id"]

    client.delete(f"/api/v1/conversations/{conversation['id']}", headers=ALICE)
    assert client.get(f"/api/v1/workflows/{workflow['id']}", headers=ALICE).status_code == 404


def test_dangling_workflow_reference_is_harmless(client):
    conversation = _create(client)
    url = f"/api/v1/conversations/{conversation['id']}/messages"
    client.post(url, json={"role": "assistant", "content": "done", "metadata": {"workflowId": "gone"}}, headers=ALICE)
    detail = client.get(f"/api/v1/conversations/{conversation['id']}", headers=ALICE).json()
    assert detail["messages"][0]["metadata"] == {"workflowId": "gone"}
    assert detail["workflows"] == []


def test_cache_serves_stale_until_invalidated():
    now = [0.0]
    loads = []

    def loader(user_id):
        loads.append(user_id)
        return [f"snapshot-{len(loads)}"]

    cache = ConversationCache(max_age=30, clock=lambda: now[0])
    assert cache.get("alice", loader) == ["snapshot-1"]
    now[0] = 10
    assert cache.get("alice", loader) == ["snapshot-1"]
    cache.invalidate("alice")
    assert cache.get("alice", loader) == ["snapshot-2"]
    now[0] = 100
    assert cache.get("alice", loader) == ["snapshot-3"]
