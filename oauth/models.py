"""Data records passed between the proxy components."""

import time
from dataclasses import asdict, dataclass, field
from typing import Optional


DEFAULT_CLIENT_NAME = "MCP Client"
DEFAULT_SCOPE = "openid profile email"
ACCESS_TOKEN_LIFETIME = 3600


@dataclass(frozen=True)
class RegisteredClient:
    """A dynamically registered public client. Immutable once stored."""

    client_id: str
    redirect_uris: tuple = ()
    client_name: str = DEFAULT_CLIENT_NAME
    scope: str = DEFAULT_SCOPE
    grant_types: tuple = ("authorization_code",)
    response_types: tuple = ("code",)
    token_endpoint_auth_method: str = "none"
    client_id_issued_at: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["redirect_uris"] = list(self.redirect_uris)
        data["grant_types"] = list(self.grant_types)
        data["response_types"] = list(self.response_types)
        return data


@dataclass(frozen=True)
class RelayState:
    """Context carried through the upstream round trip in ``state``."""

    client_id: str
    redirect_uri: str
    state: Optional[str] = None
    code_challenge: Optional[str] = None
    code_challenge_method: Optional[str] = None


@dataclass(frozen=True)
class UpstreamTokens:
    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @classmethod
    def from_response(cls, data: dict) -> "UpstreamTokens":
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            expires_in=data.get("expires_in"),
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
        )


@dataclass(frozen=True)
class ResolvedIdentity:
    """Who the upstream said the user is.

    ``identity_id`` is only set by federated resolution, where it holds the
    identity-pool identifier correlated with ``subject``.
    """

    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    identity_id: Optional[str] = None
    resolved_at: int = field(default_factory=lambda: int(time.time()))

    @property
    def user_id(self) -> str:
        return self.identity_id or self.subject


@dataclass
class AccessToken:
    access_token: str
    identity: ResolvedIdentity
    scope: str = DEFAULT_SCOPE
    issued_at: int = field(default_factory=lambda: int(time.time()))
    expires_in: int = ACCESS_TOKEN_LIFETIME

    @property
    def expires_at(self) -> int:
        return self.issued_at + self.expires_in

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at

    def to_response(self) -> dict:
        return {
            "access_token": self.access_token,
            "token_type": "Bearer",
            "expires_in": self.expires_in,
            "scope": self.scope,
        }
