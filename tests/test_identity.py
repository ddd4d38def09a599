"""Tests for direct and federated identity resolution."""

from __future__ import annotations

import boto3
import pytest
import respx
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from conftest import make_settings
from oauth.errors import (
    ConfigError,
    ConsumerUserinfoFailed,
    FederationExchangeFailed,
    FederationIdentityMissing,
    UpstreamUserinfoFailed,
)
from oauth.identity import (
    DirectIdentityResolver,
    FederatedIdentityResolver,
    build_identity_resolver,
)
from oauth.models import UpstreamTokens

USERINFO_URL = "https://idp.example.test/oauth2/userInfo"
POOL_ID = "us-west-2:11111111-2222-3333-4444-555555555555"
IDENTITY_ID = "us-west-2:aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"
TOKENS = UpstreamTokens(access_token="upstream-access", id_token="upstream-id-token")


class IdentityClientStub:
    def __init__(self, response: dict | None = None, error: Exception | None = None):
        self.response = response if response is not None else {"IdentityId": IDENTITY_ID}
        self.error = error
        self.calls: list[dict] = []

    def get_id(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.response


def _federated(identity_client) -> FederatedIdentityResolver:
    return FederatedIdentityResolver(
        USERINFO_URL,
        identity_pool_id=POOL_ID,
        login_provider="accounts.google.com",
        identity_client=identity_client,
    )


@pytest.mark.asyncio
@respx.mock
async def test_direct_resolver_maps_claims():
    route = respx.get(USERINFO_URL).respond(
        200, json={"sub": "u1", "email": "a@b.com", "name": "Alice"}
    )

    identity = await DirectIdentityResolver(USERINFO_URL).resolve(TOKENS)

    assert identity.subject == "u1"
    assert identity.email == "a@b.com"
    assert identity.name == "Alice"
    assert identity.identity_id is None
    assert route.calls.last.request.headers["authorization"] == "Bearer upstream-access"


@pytest.mark.parametrize(
    ("claims", "expected_name"),
    [
        ({"sub": "u1", "email": "a@b.com", "given_name": "Al"}, "Al"),
        ({"sub": "u1", "email": "a@b.com"}, "a@b.com"),
        ({"sub": "u1"}, None),
    ],
)
@pytest.mark.asyncio
@respx.mock
async def test_direct_resolver_name_fallback(claims, expected_name):
    respx.get(USERINFO_URL).respond(200, json=claims)
    identity = await DirectIdentityResolver(USERINFO_URL).resolve(TOKENS)
    assert identity.name == expected_name


@pytest.mark.asyncio
@respx.mock
async def test_direct_resolver_fails_on_non_2xx():
    respx.get(USERINFO_URL).respond(401)

    with pytest.raises(UpstreamUserinfoFailed) as excinfo:
        await DirectIdentityResolver(USERINFO_URL).resolve(TOKENS)
    assert excinfo.value.status == 401


@pytest.mark.asyncio
@respx.mock
async def test_direct_resolver_requires_subject():
    respx.get(USERINFO_URL).respond(200, json={"email": "a@b.com"})

    with pytest.raises(UpstreamUserinfoFailed):
        await DirectIdentityResolver(USERINFO_URL).resolve(TOKENS)


@pytest.mark.asyncio
@respx.mock
async def test_federated_resolver_returns_both_ids():
    respx.get(USERINFO_URL).respond(200, json={"sub": "google-1", "email": "g@example.com"})
    identity_client = IdentityClientStub()

    identity = await _federated(identity_client).resolve(TOKENS)

    assert identity.subject == "google-1"
    assert identity.identity_id == IDENTITY_ID
    assert identity.user_id == IDENTITY_ID
    assert identity_client.calls == [
        {"IdentityPoolId": POOL_ID, "Logins": {"accounts.google.com": "upstream-id-token"}}
    ]


@pytest.mark.asyncio
@respx.mock
async def test_federated_resolver_stops_when_userinfo_fails():
    respx.get(USERINFO_URL).respond(500)
    identity_client = IdentityClientStub()

    with pytest.raises(ConsumerUserinfoFailed) as excinfo:
        await _federated(identity_client).resolve(TOKENS)

    assert excinfo.value.status == 500
    assert identity_client.calls == []


@pytest.mark.asyncio
@respx.mock
async def test_federated_resolver_wraps_client_errors():
    respx.get(USERINFO_URL).respond(200, json={"sub": "google-1"})
    error = ClientError(
        {"Error": {"Code": "NotAuthorizedException", "Message": "Invalid login token"}}, "GetId"
    )

    with pytest.raises(FederationExchangeFailed) as excinfo:
        await _federated(IdentityClientStub(error=error)).resolve(TOKENS)
    assert not isinstance(excinfo.value, FederationIdentityMissing)


@pytest.mark.asyncio
@respx.mock
async def test_federated_resolver_requires_identity_id():
    respx.get(USERINFO_URL).respond(200, json={"sub": "google-1"})

    with pytest.raises(FederationIdentityMissing):
        await _federated(IdentityClientStub(response={})).resolve(TOKENS)


@pytest.mark.asyncio
@respx.mock
async def test_federated_resolver_requires_id_token():
    respx.get(USERINFO_URL).respond(200, json={"sub": "google-1"})
    identity_client = IdentityClientStub()

    with pytest.raises(FederationExchangeFailed):
        await _federated(identity_client).resolve(UpstreamTokens(access_token="only-access"))
    assert identity_client.calls == []


@pytest.mark.asyncio
@respx.mock
async def test_federated_resolver_with_boto3_client():
    respx.get(USERINFO_URL).respond(200, json={"sub": "google-1", "email": "g@example.com"})
    identity_client = boto3.client("cognito-identity", region_name="us-west-2")

    with Stubber(identity_client) as stubber:
        stubber.add_response(
            "get_id",
            {"IdentityId": IDENTITY_ID},
            {"IdentityPoolId": POOL_ID, "Logins": {"accounts.google.com": "upstream-id-token"}},
        )
        identity = await _federated(identity_client).resolve(TOKENS)
        stubber.assert_no_pending_responses()

    assert identity.identity_id == IDENTITY_ID


def test_build_direct_resolver():
    resolver = build_identity_resolver(make_settings())
    assert isinstance(resolver, DirectIdentityResolver)
    assert resolver.userinfo_url == USERINFO_URL


def test_build_federated_resolver():
    settings = make_settings(
        IDENTITY_STRATEGY="federated",
        IDENTITY_POOL_ID=POOL_ID,
        FEDERATION_LOGIN_PROVIDER="accounts.google.com",
        AWS_REGION="us-east-1",
    )
    resolver = build_identity_resolver(settings, identity_client=IdentityClientStub())
    assert isinstance(resolver, FederatedIdentityResolver)
    assert resolver.identity_pool_id == POOL_ID
    assert resolver.region == "us-east-1"


def test_build_federated_resolver_requires_pool():
    with pytest.raises(ConfigError):
        build_identity_resolver(make_settings(IDENTITY_STRATEGY="federated"))


def test_build_resolver_rejects_unknown_strategy():
    with pytest.raises(ConfigError):
        build_identity_resolver(make_settings(IDENTITY_STRATEGY="saml"))
