"""
Tests for the HTTP API.
"""
import io
import json

from ragchat.config import DEFAULT_CHAT_ID, MAX_UPLOAD_BYTES
from ragchat.services import rag_service
from ragchat.services.conversation_service import store_message, ensure_chat


def _upload(client, name, data, chat_id=None):
    form = {"chat_id": chat_id} if chat_id else None
    return client.post("/api/upload", files={"file": (name, io.BytesIO(data), "application/octet-stream")}, data=form)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestUpload:
    def test_txt_upload_is_indexed(self, client, fake_embed):
        body = ("A short paragraph about refunds.\n\n" * 3).encode("utf-8")

        response = _upload(client, "policy.txt", body, chat_id="chat-7")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Document indexed successfully"
        assert data["fileName"] == "policy.txt"
        assert data["chunks"] == data["totalChunks"] == len(fake_embed)
        assert "errors" not in data

        docs = client.get("/api/chats/chat-7/documents").json()
        assert [d["fileName"] for d in docs] == ["policy.txt"]

    def test_default_chat_when_unscoped(self, client, fake_embed):
        _upload(client, "a.md", b"# Heading\n\nSome markdown body text.")
        docs = client.get(f"/api/chats/{DEFAULT_CHAT_ID}/documents").json()
        assert [d["fileName"] for d in docs] == ["a.md"]

    def test_unsupported_extension(self, client, fake_embed):
        response = _upload(client, "data.csv", b"a,b,c\n1,2,3\n")
        assert response.status_code == 400
        assert ".csv" in response.json()["error"]
        assert fake_embed == []

    def test_empty_document(self, client, fake_embed):
        response = _upload(client, "blank.txt", b"   \n ")
        assert response.status_code == 400
        assert "error" in response.json()

    def test_too_large(self, client, fake_embed):
        response = _upload(client, "big.txt", b"x" * (MAX_UPLOAD_BYTES + 1))
        assert response.status_code == 413
        assert fake_embed == []

    def test_provider_down(self, client, monkeypatch):
        async def broken(text, session=None):
            raise RuntimeError("provider down")

        monkeypatch.setattr("ragchat.services.ingestion_service.embed_text", broken)

        response = _upload(client, "doc.txt", b"Enough text for one chunk at least.")

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "No chunk could be indexed"
        assert data["details"] == ["Chunk 1: provider down"]


class TestChats:
    def test_crud(self, client):
        created = client.post("/api/chats", json={"title": "Contracts"}).json()
        assert created["title"] == "Contracts"
        untitled = client.post("/api/chats").json()
        assert untitled["title"] == "New chat"

        listed = client.get("/api/chats").json()
        assert [c["id"] for c in listed] == [untitled["id"], created["id"]]

        assert client.delete(f"/api/chats/{created['id']}").json() == {"success": True}
        assert [c["id"] for c in client.get("/api/chats").json()] == [untitled["id"]]

    def test_delete_missing(self, client):
        assert client.delete("/api/chats/does-not-exist").status_code == 404

    def test_get_messages(self, client):
        ensure_chat(DEFAULT_CHAT_ID)
        store_message(DEFAULT_CHAT_ID, "user", "hello")
        store_message(DEFAULT_CHAT_ID, "assistant", "hi there")

        messages = client.get("/api/chat").json()

        assert [(m["role"], m["content"]) for m in messages] == [("user", "hello"), ("assistant", "hi there")]
        assert client.get("/api/chat", params={"chat_id": "other"}).json() == []


class TestChatStream:
    def test_rejects_non_user_last_turn(self, client):
        response = client.post("/api/chat", json={"messages": [{"role": "assistant", "content": "hi"}]})
        assert response.status_code == 400

    def test_rejects_empty_conversation(self, client):
        response = client.post("/api/chat", json={"messages": []})
        assert response.status_code == 422

    def test_streams_events(self, client, monkeypatch):
        from types import SimpleNamespace

        def _create(**kwargs):
            delta = SimpleNamespace(content="Hello!", tool_calls=None)
            return iter([SimpleNamespace(choices=[SimpleNamespace(delta=delta)])])

        fake = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=_create)))
        monkeypatch.setattr(rag_service, "get_client", lambda: fake)

        response = client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "hi"}], "chat_id": "chat-s"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        frames = [line[len("data: "):] for line in response.text.split("\n\n") if line.startswith("data: ")]
        events = [json.loads(f) for f in frames]
        assert [e["type"] for e in events] == ["delta", "final", "done"]
        assert events[1]["text"] == "Hello!"
        assert events[1]["sources"] == []

        stored = client.get("/api/chat", params={"chat_id": "chat-s"}).json()
        assert [m["role"] for m in stored] == ["user", "assistant"]
