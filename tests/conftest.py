"""Shared fixtures for the OAuth proxy tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from oauth.identity import IdentityResolver
from oauth.models import ResolvedIdentity, UpstreamTokens
from oauth.proxy import OAuthProxy

SERVER_URL = "https://proxy.example.test"
UPSTREAM_BASE_URL = "https://idp.example.test"


def make_settings(**overrides: str) -> Settings:
    data = {
        "SERVER_URL": SERVER_URL,
        "UPSTREAM_BASE_URL": UPSTREAM_BASE_URL,
        "UPSTREAM_CLIENT_ID": "upstream-client",
        "UPSTREAM_CLIENT_SECRET": "upstream-secret",
        "ENABLE_MCP": "false",
    }
    data.update(overrides)
    return Settings(data)


class StubExchanger:
    def __init__(self, tokens: UpstreamTokens | None = None, error: Exception | None = None):
        self.tokens = tokens or UpstreamTokens(access_token="upstream-access", id_token="upstream-id")
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def exchange(self, code: str, origin: str) -> UpstreamTokens:
        self.calls.append((code, origin))
        if self.error:
            raise self.error
        return self.tokens


class StubResolver(IdentityResolver):
    name = "stub"

    def __init__(self, identity: ResolvedIdentity | None = None, error: Exception | None = None):
        self.identity = identity or ResolvedIdentity(
            subject="user123", email="user@example.com", name="Test User", resolved_at=1700000000
        )
        self.error = error
        self.calls: list[UpstreamTokens] = []

    async def resolve(self, tokens: UpstreamTokens) -> ResolvedIdentity:
        self.calls.append(tokens)
        if self.error:
            raise self.error
        return self.identity


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def exchanger() -> StubExchanger:
    return StubExchanger()


@pytest.fixture
def resolver() -> StubResolver:
    return StubResolver()


@pytest.fixture
def proxy(settings: Settings, exchanger: StubExchanger, resolver: StubResolver) -> OAuthProxy:
    return OAuthProxy(settings, exchanger=exchanger, resolver=resolver)


@pytest.fixture
def client(settings: Settings, proxy: OAuthProxy) -> TestClient:
    return TestClient(create_app(settings, proxy), raise_server_exceptions=False)


@pytest.fixture
def registered_client_id(client: TestClient) -> str:
    response = client.post("/register", json={"redirect_uris": ["https://example.test/cb"]})
    return response.json()["client_id"]
