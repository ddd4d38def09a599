"""Authorization-code relay between a downstream MCP client and the upstream IdP.

Flow per authorization attempt::

    register -> authorize -> (upstream login) -> callback
      -> upstream code exchange -> identity resolution -> downstream code
      -> (downstream redirect) -> token -> bearer validation

Every step either advances or raises an OAuthError; nothing is retried.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from oauth.clients import ClientRegistry
from oauth.errors import MissingParameter, OAuthError, ServerError, UnknownClient
from oauth.identity import IdentityResolver, build_identity_resolver
from oauth.models import AccessToken, RegisteredClient, ResolvedIdentity
from oauth.state import StateCodec
from oauth.tokens import AuthCodeIssuer, BearerValidator, TokenStore
from oauth.upstream import UpstreamAuthorizationRelay, UpstreamTokenExchanger

logger = logging.getLogger(__name__)


def append_query(url: str, params: dict) -> str:
    """Add ``params`` to ``url``, replacing keys that are already present."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


@dataclass
class TokenRequest:
    grant_type: Optional[str] = None
    code: Optional[str] = None
    client_id: Optional[str] = None
    redirect_uri: Optional[str] = None
    code_verifier: Optional[str] = None


class OAuthProxy:
    """Wires the relay components together.

    All collaborators are injectable; anything not given is built from
    ``settings``.
    """

    def __init__(
        self,
        settings,
        registry: Optional[ClientRegistry] = None,
        token_store: Optional[TokenStore] = None,
        exchanger: Optional[UpstreamTokenExchanger] = None,
        resolver: Optional[IdentityResolver] = None,
        codec: Optional[StateCodec] = None,
        code_issuer: Optional[AuthCodeIssuer] = None,
    ):
        self.settings = settings
        self.registry = registry if registry is not None else ClientRegistry()
        if token_store is None:
            token_store = TokenStore(enforce_expiry=settings.enforce_token_expiry)
        self.token_store = token_store
        self.codec = codec or StateCodec(settings.signing_secret)
        self.code_issuer = code_issuer or AuthCodeIssuer(
            settings.signing_secret, max_age=settings.auth_code_max_age
        )
        self.relay = UpstreamAuthorizationRelay(
            self.registry,
            self.codec,
            authorize_url=settings.upstream_authorize_url,
            client_id=settings.upstream_client_id,
            default_scope=settings.default_scope,
        )
        self.exchanger = exchanger or UpstreamTokenExchanger(
            settings.upstream_token_url,
            settings.upstream_client_id,
            settings.upstream_client_secret,
            timeout=settings.http_timeout,
        )
        self.resolver = resolver or build_identity_resolver(settings)
        self.validator = BearerValidator(self.token_store)

    def origin(self, request_origin: str) -> str:
        """Public origin of the proxy: SERVER_URL if configured, else the request's."""
        return self.settings.server_url or request_origin.rstrip("/")

    # ---- register ----

    def register(self, data) -> RegisteredClient:
        return self.registry.register(data)

    # ---- authorize ----

    def authorize(self, request_origin: str, params: dict) -> str:
        return self.relay.build_authorize_redirect(
            self.origin(request_origin),
            client_id=params.get("client_id"),
            redirect_uri=params.get("redirect_uri"),
            state=params.get("state"),
            scope=params.get("scope"),
            code_challenge=params.get("code_challenge"),
            code_challenge_method=params.get("code_challenge_method"),
        )

    # ---- callback ----

    async def callback(self, request_origin: str, code: Optional[str], state: Optional[str]) -> str:
        """Finish the upstream leg and return the downstream redirect URL.

        Raises:
            MissingParameter: code or state absent
            MalformedState: state does not decode
            UpstreamExchangeFailed, UpstreamUserinfoFailed, FederationExchangeFailed:
                upstream leg failed
            ServerError: anything unexpected
        """
        if not code or not state:
            raise MissingParameter("Missing authorization code or state")

        relay = self.codec.decode(state)
        try:
            tokens = await self.exchanger.exchange(code, self.origin(request_origin))
            identity = await self.resolver.resolve(tokens)
            downstream_code = self.code_issuer.issue(identity)
        except OAuthError:
            raise
        except Exception as e:
            logger.exception("[CALLBACK] OAuth callback error")
            raise ServerError("OAuth callback failed") from e

        params = {"code": downstream_code}
        if relay.state:
            params["state"] = relay.state
        logger.info(f"[CALLBACK] Issued authorization code for client {relay.client_id}")
        return append_query(relay.redirect_uri, params)

    # ---- token ----

    def token(self, request: TokenRequest) -> AccessToken:
        """Redeem a downstream authorization code for a bearer token.

        The code is not bound to the client or redirect URI that requested
        it, and may be redeemed more than once.
        """
        if request.grant_type != "authorization_code" or not request.code or not request.client_id:
            raise MissingParameter("grant_type must be authorization_code with code and client_id")

        client = self.registry.get(request.client_id)
        if client is None:
            raise UnknownClient("Client is not registered")

        identity = self.code_issuer.redeem(request.code)
        return self.token_store.issue(identity, scope=client.scope)

    # ---- resource access ----

    def validate(self, bearer_token: Optional[str]) -> ResolvedIdentity:
        return self.validator.validate(bearer_token)

