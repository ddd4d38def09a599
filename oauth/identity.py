"""Identity resolution from upstream tokens.

Two strategies share one contract, ``await resolver.resolve(tokens)``:

- ``DirectIdentityResolver`` reads the userinfo endpoint of the IdP that
  issued the code and maps its claims straight into a ResolvedIdentity.
- ``FederatedIdentityResolver`` does the same against a consumer IdP, then
  presents the upstream id token to the identity-pool service (Cognito
  Identity ``GetId``) to obtain a federated identity id. Both stages must
  succeed; no partially resolved identity is ever returned.

``build_identity_resolver`` picks one from configuration.
"""

import logging
from typing import Optional

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from oauth.errors import (
    ConfigError,
    ConsumerUserinfoFailed,
    FederationExchangeFailed,
    FederationIdentityMissing,
    UpstreamUserinfoFailed,
)
from oauth.models import ResolvedIdentity, UpstreamTokens

logger = logging.getLogger(__name__)


async def fetch_userinfo(
    url: str, access_token: str, timeout: float, error_cls=UpstreamUserinfoFailed
) -> dict:
    """GET the userinfo document with the access token as a bearer credential."""
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(url, headers={"Authorization": f"Bearer {access_token}"})
    except httpx.HTTPError as e:
        logger.warning(f"[IDENTITY] Userinfo endpoint unreachable: {e}")
        raise error_cls(None) from e

    if not response.is_success:
        logger.warning(f"[IDENTITY] Userinfo request failed with status {response.status_code}")
        raise error_cls(response.status_code)

    try:
        claims = response.json()
    except ValueError as e:
        raise error_cls(response.status_code) from e
    if not isinstance(claims, dict) or not claims.get("sub"):
        raise error_cls(response.status_code)
    return claims


def identity_from_claims(claims: dict, identity_id: Optional[str] = None) -> ResolvedIdentity:
    email = claims.get("email")
    return ResolvedIdentity(
        subject=str(claims["sub"]),
        email=email,
        name=claims.get("name") or claims.get("given_name") or email,
        identity_id=identity_id,
    )


class IdentityResolver:
    """Base class for identity resolution strategies."""

    name = "abstract"

    async def resolve(self, tokens: UpstreamTokens) -> ResolvedIdentity:
        raise NotImplementedError


class DirectIdentityResolver(IdentityResolver):
    name = "direct"

    def __init__(self, userinfo_url: str, timeout: float = 10.0):
        self.userinfo_url = userinfo_url
        self.timeout = timeout

    async def resolve(self, tokens: UpstreamTokens) -> ResolvedIdentity:
        claims = await fetch_userinfo(self.userinfo_url, tokens.access_token, self.timeout)
        identity = identity_from_claims(claims)
        logger.info(f"[IDENTITY] Resolved user {identity.subject}")
        return identity


class FederatedIdentityResolver(IdentityResolver):
    """Consumer-IdP userinfo followed by an identity-pool ``GetId`` exchange.

    Args:
        userinfo_url: consumer IdP userinfo endpoint
        identity_pool_id: identity pool to mint the federated id in
        login_provider: ``Logins`` key the id token is presented under
        region: AWS region of the identity pool
        identity_client: optional pre-built ``cognito-identity`` client
    """

    name = "federated"

    def __init__(
        self,
        userinfo_url: str,
        identity_pool_id: str,
        login_provider: str,
        region: str = "us-west-2",
        timeout: float = 10.0,
        identity_client=None,
    ):
        self.userinfo_url = userinfo_url
        self.identity_pool_id = identity_pool_id
        self.login_provider = login_provider
        self.region = region
        self.timeout = timeout
        self._identity_client = identity_client

    @property
    def identity_client(self):
        if self._identity_client is None:
            self._identity_client = boto3.client("cognito-identity", region_name=self.region)
        return self._identity_client

    async def resolve(self, tokens: UpstreamTokens) -> ResolvedIdentity:
        claims = await fetch_userinfo(
            self.userinfo_url, tokens.access_token, self.timeout, error_cls=ConsumerUserinfoFailed
        )
        identity_id = await self.get_identity_id(tokens.id_token)
        identity = identity_from_claims(claims, identity_id=identity_id)
        logger.info(f"[IDENTITY] Resolved user {identity.subject} to federated id {identity_id}")
        return identity

    async def get_identity_id(self, id_token: Optional[str]) -> str:
        if not id_token:
            raise FederationExchangeFailed("Upstream returned no id_token to federate")
        try:
            response = await run_in_threadpool(
                self.identity_client.get_id,
                IdentityPoolId=self.identity_pool_id,
                Logins={self.login_provider: id_token},
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"[IDENTITY] Federation exchange failed: {e}")
            raise FederationExchangeFailed(str(e)) from e

        identity_id = (response or {}).get("IdentityId")
        if not identity_id:
            raise FederationIdentityMissing()
        return identity_id


def build_identity_resolver(settings, identity_client=None) -> IdentityResolver:
    """Select the resolution strategy named by ``IDENTITY_STRATEGY``."""
    strategy = settings.identity_strategy
    if strategy == "direct":
        return DirectIdentityResolver(settings.upstream_userinfo_url, timeout=settings.http_timeout)
    if strategy == "federated":
        if not settings.identity_pool_id:
            raise ConfigError("IDENTITY_POOL_ID is required for the federated identity strategy")
        return FederatedIdentityResolver(
            settings.upstream_userinfo_url,
            identity_pool_id=settings.identity_pool_id,
            login_provider=settings.federation_login_provider,
            region=settings.aws_region,
            timeout=settings.http_timeout,
            identity_client=identity_client,
        )
    raise ConfigError(f"Unknown IDENTITY_STRATEGY: {strategy}")
