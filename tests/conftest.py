import json
from unittest.mock import MagicMock

import pytest

from byokstream import create_app
from byokstream.services.llm.base import RawStreamEvent


def sse_body(*payloads, done=True) -> bytes:
    """Encode payloads as an SSE body. Dicts are JSON-encoded, strings sent as-is."""
    out = []
    for p in payloads:
        data = p if isinstance(p, str) else json.dumps(p)
        out.append(f"data: {data}\n\n")
    if done:
        out.append("data: [DONE]\n\n")
    return "".join(out).encode("utf-8")


def raw_events(*payloads):
    return [RawStreamEvent(p if isinstance(p, str) else json.dumps(p)) for p in payloads]


def fake_response(body=b"", status=200, content_type="text/event-stream; charset=utf-8", pieces=None):
    resp = MagicMock()
    resp.ok = status < 400
    resp.status_code = status
    resp.headers = {"content-type": content_type} if content_type else {}
    chunks = pieces if pieces is not None else [body]
    resp.iter_content.side_effect = lambda chunk_size=None: iter(chunks)
    return resp


def fake_session(resp):
    session = MagicMock()
    session.post.return_value.__enter__.return_value = resp
    session.post.return_value.__exit__.return_value = False
    return session


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "LLM_PROVIDER": "openai_compatible",
        "LLM_BASE_URL": "https://api.example.com/v1",
        "LLM_MODEL": "gpt-test",
    })
    return app


@pytest.fixture
def client(app):
    return app.test_client()
