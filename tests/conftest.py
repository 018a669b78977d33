import json

import pytest
from fastapi.testclient import TestClient

from deepseek_api.core.config import Settings, get_settings
from deepseek_api.main import app
from deepseek_api.services.upstream import UpstreamObject, get_upstream

AUTH = {"Authorization": "Bearer test-secret"}


class FakeUpstream:
    """Stands in for WorkersAIClient and records every call."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def run(self, model, payload):
        self.calls.append((model, payload))
        if self.error is not None:
            raise self.error
        return self.result


async def byte_stream(*chunks):
    for chunk in chunks:
        yield chunk


def sse_events(body: str):
    return [event for event in body.split("\n\n") if event]


def chunk_payloads(body: str):
    return [
        json.loads(event[len("data: "):])
        for event in sse_events(body)
        if event.startswith("data: ") and event != "data: [DONE]"
    ]


@pytest.fixture
def settings():
    return Settings(
        API_KEY="test-secret",
        CLOUDFLARE_ACCOUNT_ID="acct",
        CLOUDFLARE_API_TOKEN="cf-token",
        STREAM_STRATEGY="passthrough",
        STREAM_BUFFERING=True,
        SYNTH_CHUNK_DELAY=0,
    )


@pytest.fixture
def upstream():
    return FakeUpstream(UpstreamObject({"response": "Paris"}))


@pytest.fixture
def client(settings, upstream):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_upstream] = lambda: upstream
    yield TestClient(app)
    app.dependency_overrides.clear()
