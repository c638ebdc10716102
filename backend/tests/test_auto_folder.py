from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any

import httpx
import pytest
from sqlalchemy import event

from backend.mindpocket.ai.ollama_client import OllamaChatClient
from backend.mindpocket.core.config import settings
from backend.mindpocket.ingest.auto_folder import parse_decision, resolve_folder_for_ingest
from backend.mindpocket.ingest.folder_tools import create_folder, list_folders, run_tool
from backend.mindpocket.models import AIProvider, Folder
from backend.mindpocket.models.folders import DEFAULT_FOLDER_EMOJI


class ScriptedChatClient:
    """Replays canned assistant messages and records what it was sent."""

    def __init__(self, replies: list[dict[str, Any]]) -> None:
        self.replies = list(replies)
        self.requests: list[list[dict[str, Any]]] = []

    async def chat(self, messages, *, tools=None):
        self.requests.append(list(messages))
        if not self.replies:
            raise AssertionError("no scripted reply left")
        return self.replies.pop(0)


class BrokenChatClient:
    async def chat(self, messages, *, tools=None):
        raise httpx.ConnectError("connection refused")


def _reply(content: str = "", tool_calls: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {"role": "assistant", "content": content, "tool_calls": tool_calls or []}


def _call(name: str, arguments: Any) -> dict[str, Any]:
    return {"function": {"name": name, "arguments": arguments}}


@pytest.fixture()
def provider(session_factory, user) -> AIProvider:
    with session_factory() as session:
        provider = AIProvider(user_id=user.id, kind="chat", model="qwen2.5:7b", is_default=True)
        session.add(provider)
        session.commit()
        return provider


def _resolve(session, user, client, **kwargs):
    return asyncio.run(
        resolve_folder_for_ingest(
            session,
            user.id,
            "url",
            url="https://example.com/post",
            title="A post",
            client_factory=lambda _provider: client,
            **kwargs,
        )
    )


def test_parse_decision_folder_id() -> None:
    assert parse_decision("FOLDER_ID:abc-123", []) == "abc-123"
    assert parse_decision("  folder_id: XYZ_9 \n", []) == "XYZ_9"


def test_parse_decision_none_ignores_created_folder() -> None:
    created = ("create_folder", {"success": True, "data": {"folder": {"id": "f1"}, "created": True}})
    assert parse_decision("NONE", [created]) is None


def test_parse_decision_falls_back_to_newest_created_folder() -> None:
    results = [
        ("create_folder", {"success": True, "data": {"folder": {"id": "older"}}}),
        ("list_folders", {"success": True, "data": {"folders": []}}),
        ("create_folder", {"success": True, "data": {"folder": {"id": "newer"}}}),
        ("create_folder", {"success": False, "error": "Folder name is required"}),
    ]
    assert parse_decision("I think Travel fits best.", results) == "newer"


def test_parse_decision_rejects_multiline_answers() -> None:
    assert parse_decision("Thinking...\nFOLDER_ID:abc", []) is None


def test_create_folder_dedupes_case_insensitively(session_factory, user) -> None:
    with session_factory() as session:
        first = create_folder(session, user.id, "Travel", "Trips and places", "✈️")
        second = create_folder(session, user.id, "  travel ")
        session.commit()

        folders = session.query(Folder).filter(Folder.user_id == user.id).all()

    assert first["data"]["created"] is True
    assert second["data"]["created"] is False
    assert second["data"]["folder"]["id"] == first["data"]["folder"]["id"]
    assert len(folders) == 1


def test_create_folder_defaults_and_sort_order(session_factory, user) -> None:
    with session_factory() as session:
        first = create_folder(session, user.id, "Reading", "x" * 500)
        second = create_folder(session, user.id, "Cooking", emoji="  ")
        session.commit()

        by_name = {folder.name: folder for folder in session.query(Folder).all()}

    assert first["success"] and second["success"]
    assert by_name["Reading"].sort_order == 0
    assert by_name["Cooking"].sort_order == 1
    assert len(by_name["Reading"].description) == 200
    assert by_name["Cooking"].emoji == DEFAULT_FOLDER_EMOJI


def test_create_folder_drops_oversized_emoji(session_factory, user) -> None:
    with session_factory() as session:
        result = create_folder(session, user.id, "Archive", emoji="a" * 40)
        session.commit()

    assert result["data"]["folder"]["emoji"] == DEFAULT_FOLDER_EMOJI


def test_create_folder_requires_name(session_factory, user) -> None:
    with session_factory() as session:
        result = create_folder(session, user.id, "   ")
    assert result == {"success": False, "error": "Folder name is required"}


def test_run_tool_unknown_name(session_factory, user) -> None:
    with session_factory() as session:
        assert run_tool(session, user.id, "delete_everything", {})["success"] is False


def test_list_folders_is_scoped_to_user(session_factory, user) -> None:
    with session_factory() as session:
        create_folder(session, user.id, "Mine")
        session.add(Folder(user_id=uuid.uuid4(), name="Someone else's"))
        session.commit()
        names = [folder["name"] for folder in list_folders(session, user.id)["data"]["folders"]]

    assert names == ["Mine"]


def test_resolve_without_provider_returns_none(session_factory, user) -> None:
    client = ScriptedChatClient([_reply("FOLDER_ID:abc")])
    with session_factory() as session:
        assert _resolve(session, user, client) is None
    assert client.requests == []


def test_resolve_picks_existing_folder(session_factory, user, provider) -> None:
    with session_factory() as session:
        folder = Folder(user_id=user.id, name="Articles")
        session.add(folder)
        session.commit()

        client = ScriptedChatClient([_reply(f"FOLDER_ID:{folder.id}")])
        decision = _resolve(session, user, client)

    assert decision == str(folder.id)
    first_request = client.requests[0]
    assert first_request[0]["role"] == "system"
    assert first_request[2]["tool_name"] == "list_folders"
    assert "Articles" in first_request[2]["content"]


def test_resolve_falls_back_to_created_folder(session_factory, user, provider) -> None:
    client = ScriptedChatClient(
        [
            _reply(tool_calls=[_call("create_folder", json.dumps({"name": "Recipes", "emoji": "🍜"}))]),
            _reply("The Recipes folder is a good fit."),
        ]
    )
    with session_factory() as session:
        decision = _resolve(session, user, client)
        created = session.query(Folder).filter(Folder.user_id == user.id).one()

    assert decision == str(created.id)
    assert created.name == "Recipes"
    assert created.emoji == "🍜"
    assert client.requests[1][-1]["tool_name"] == "create_folder"


def test_resolve_stops_after_max_steps(session_factory, user, provider) -> None:
    looping = [_reply(tool_calls=[_call("list_folders", {})]) for _ in range(5)]
    client = ScriptedChatClient(looping)
    with session_factory() as session:
        decision = _resolve(session, user, client, max_steps=2)

    assert decision is None
    assert len(client.requests) == 2


def test_resolve_swallows_client_errors(session_factory, user, provider) -> None:
    with session_factory() as session:
        assert _resolve(session, user, BrokenChatClient()) is None


def test_resolve_rolls_back_after_failed_flush(session_factory, user, provider) -> None:
    def reject_insert(mapper, connection, target):
        raise ValueError("value too long for type character varying(16)")

    client = ScriptedChatClient([_reply(tool_calls=[_call("create_folder", {"name": "Broken"})])])
    with session_factory() as session:
        event.listen(Folder, "before_insert", reject_insert)
        try:
            decision = _resolve(session, user, client)
        finally:
            event.remove(Folder, "before_insert", reject_insert)

        session.add(Folder(user_id=user.id, name="After"))
        session.commit()
        names = [folder.name for folder in session.query(Folder).filter(Folder.user_id == user.id)]

    assert decision is None
    assert names == ["After"]


def test_ollama_client_posts_chat_payload() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"message": {"role": "assistant", "content": "NONE", "tool_calls": None}},
        )

    client = OllamaChatClient(
        base_url="http://ollama.test:11434", model="llama3", transport=httpx.MockTransport(handler)
    )
    reply = asyncio.run(client.chat([{"role": "user", "content": "hi"}], tools=[{"type": "function"}]))

    assert seen["url"] == "http://ollama.test:11434/api/chat"
    assert seen["body"]["model"] == "llama3"
    assert seen["body"]["stream"] is False
    assert seen["body"]["tools"] == [{"type": "function"}]
    assert reply == {"role": "assistant", "content": "NONE", "tool_calls": []}


def test_ollama_client_uses_fallback_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "OLLAMA_FALLBACK_HOST", "http://fallback.test:11434")
    hosts: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host == "primary.test":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"message": {"content": "FOLDER_ID:f1"}})

    client = OllamaChatClient(
        base_url="http://primary.test:11434", model="llama3", transport=httpx.MockTransport(handler)
    )
    reply = asyncio.run(client.chat([{"role": "user", "content": "hi"}]))

    assert hosts == ["primary.test", "fallback.test"]
    assert reply["content"] == "FOLDER_ID:f1"
