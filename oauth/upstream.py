"""Upstream IdP authorization relay and code exchange."""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from oauth.clients import ClientRegistry
from oauth.errors import MissingParameter, UnknownClient, UpstreamExchangeFailed
from oauth.models import RelayState, UpstreamTokens
from oauth.state import StateCodec

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"


def callback_url(origin: str) -> str:
    """The proxy's own callback; used verbatim by both authorize and exchange."""
    return f"{origin.rstrip('/')}{CALLBACK_PATH}"


class UpstreamAuthorizationRelay:
    """Turns a validated downstream /authorize request into an upstream one."""

    def __init__(
        self,
        registry: ClientRegistry,
        codec: StateCodec,
        authorize_url: str,
        client_id: str,
        default_scope: str = "openid email profile",
    ):
        self.registry = registry
        self.codec = codec
        self.authorize_url = authorize_url
        self.client_id = client_id
        self.default_scope = default_scope

    def build_authorize_redirect(
        self,
        origin: str,
        client_id: Optional[str],
        redirect_uri: Optional[str],
        state: Optional[str] = None,
        scope: Optional[str] = None,
        code_challenge: Optional[str] = None,
        code_challenge_method: Optional[str] = None,
    ) -> str:
        """Validate the downstream request and return the upstream authorize URL.

        Raises:
            MissingParameter: client_id or redirect_uri absent
            UnknownClient: client_id not registered
        """
        if not client_id or not redirect_uri:
            raise MissingParameter("Missing required parameters")
        if not self.registry.contains(client_id):
            raise UnknownClient("Invalid client")

        relay = RelayState(
            client_id=client_id,
            redirect_uri=redirect_uri,
            state=state,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
        )
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "scope": scope or self.default_scope,
            "redirect_uri": callback_url(origin),
            "state": self.codec.encode(relay),
        }
        separator = "&" if "?" in self.authorize_url else "?"
        logger.info(f"[AUTHORIZE] Relaying client {client_id} to upstream IdP")
        return f"{self.authorize_url}{separator}{urlencode(params)}"


class UpstreamTokenExchanger:
    """Server-to-server authorization_code grant against the upstream IdP."""

    def __init__(self, token_url: str, client_id: str, client_secret: str, timeout: float = 10.0):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    async def exchange(self, code: str, origin: str) -> UpstreamTokens:
        data = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "redirect_uri": callback_url(origin),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.warning(f"[UPSTREAM] Token endpoint unreachable: {e}")
            raise UpstreamExchangeFailed(None, str(e)) from e

        if not response.is_success:
            logger.warning(f"[UPSTREAM] Token exchange failed with status {response.status_code}")
            raise UpstreamExchangeFailed(response.status_code, response.text)

        try:
            payload = response.json()
            tokens = UpstreamTokens.from_response(payload)
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamExchangeFailed(response.status_code, "Malformed token response") from e

        logger.info("[UPSTREAM] Exchanged upstream authorization code")
        return tokens
