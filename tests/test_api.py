"""Tests for the Flask views in byokstream.views.api."""

import json
from unittest.mock import MagicMock, patch

from byokstream.errors import EmptyStreamError
from byokstream.services.llm.base import StopReason
from byokstream.services.llm.nodes import ChatStreamChunk, MainTextFinishedNode, TextChunkNode


def _frames(resp):
    body = resp.get_data(as_text=True)
    return [json.loads(f[len("data: "):]) for f in body.split("\n\n") if f.startswith("data: ")]


def _stream(*chunks, error=None):
    def gen(*args, **kwargs):
        yield from chunks
        if error is not None:
            raise error
    return gen


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok"}

    def test_unknown_route_is_json(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Not found"}


class TestChatStream:
    def test_streams_chunks_as_sse(self, client):
        fake = MagicMock()
        fake.stream_chat.side_effect = _stream(
            ChatStreamChunk(text="Hi", nodes=[TextChunkNode(1, "Hi")]),
            ChatStreamChunk(nodes=[MainTextFinishedNode(2, "Hi")], stop_reason=StopReason.END_TURN),
        )
        with patch("byokstream.views.api.client_from_config", return_value=fake):
            resp = client.post("/v1/chat-stream", json={
                "messages": [{"role": "user", "content": "hello"}],
                "system": "be brief",
                "tools": [{"name": "fs_read", "mcp_server_name": "files"}],
            })
            frames = _frames(resp)

        assert resp.status_code == 200
        assert resp.mimetype == "text/event-stream"
        assert resp.headers["Cache-Control"] == "no-cache"
        assert frames[0] == {"text": "Hi", "nodes": [{"id": 1, "type": 0, "content": "Hi"}]}
        assert frames[1]["stop_reason"] == 1

        _, kwargs = fake.stream_chat.call_args
        assert kwargs["system"] == "be brief"
        assert kwargs["support_tool_use_start"] is False
        assert kwargs["tool_meta"]["fs_read"].mcp_server_name == "files"
        assert kwargs["cancel_event"].is_set()

    def test_stream_failure_becomes_error_frame(self, client):
        fake = MagicMock()
        fake.stream_chat.side_effect = _stream(
            ChatStreamChunk(text="par", nodes=[TextChunkNode(1, "par")]),
            error=EmptyStreamError("nothing", provider="OpenAI(chat-stream)", data_events=3, parsed_chunks=1),
        )
        with patch("byokstream.views.api.client_from_config", return_value=fake):
            frames = _frames(client.post("/v1/chat-stream", json={"messages": [{"role": "user", "content": "x"}]}))

        assert frames[0]["text"] == "par"
        assert frames[-1]["error"] == "Upstream error"
        assert "data_events=3" in frames[-1]["detail"]

    def test_support_tool_use_start_flag_passed(self, client):
        fake = MagicMock()
        fake.stream_chat.side_effect = _stream()
        with patch("byokstream.views.api.client_from_config", return_value=fake):
            client.post("/v1/chat-stream", json={
                "messages": [{"role": "user", "content": "x"}],
                "support_tool_use_start": True,
            }).get_data()
        assert fake.stream_chat.call_args[1]["support_tool_use_start"] is True

    def test_messages_required(self, client):
        resp = client.post("/v1/chat-stream", json={"messages": []})
        assert resp.status_code == 400

    def test_unsupported_provider(self, app, client):
        app.config["LLM_PROVIDER"] = "bedrock"
        resp = client.post("/v1/chat-stream", json={"messages": [{"role": "user", "content": "x"}]})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Unsupported provider"


class TestToolsCheck:
    TOOLS = [
        {"name": "search", "input_schema": {"type": "object", "properties": {"url": {"type": "string"}}}},
        {"name": "search", "input_schema": {}},
        {"name": "ping", "mcp_server_name": "net"},
    ]

    def test_strict_provider_reports_raw_issues(self, client):
        resp = client.post("/v1/tools/check", json={"provider_type": "openai_responses", "tools": self.TOOLS})
        data = resp.get_json()
        assert resp.status_code == 200
        assert data["provider_type"] == "openai_responses"
        # converted tools are coerced, so the provider check passes
        assert data["ok"] is True
        assert [t["name"] for t in data["tools"]] == ["search", "ping"]
        assert data["tools"][0]["issues"] == [
            "<root>: additionalProperties must be false",
            "<root>: required must be array",
        ]
        assert data["tools"][0]["sample"] == {"url": "https://example.com"}
        assert data["summary"]["tool_count"] == 2
        assert data["summary"]["with_mcp_meta"] == 1

    def test_defaults_to_configured_provider(self, client):
        resp = client.post("/v1/tools/check", json={"tools": self.TOOLS})
        data = resp.get_json()
        assert data["provider_type"] == "openai_compatible"
        assert data["tools"][0]["issues"] == []

    def test_bad_input(self, client):
        assert client.post("/v1/tools/check", json={"tools": "nope"}).status_code == 400
        resp = client.post("/v1/tools/check", json={"provider_type": "bedrock", "tools": []})
        assert resp.status_code == 400
