"""Downstream authorization codes and bearer tokens.

Authorization codes are stateless: the code *is* the encoded identity
snapshot, and possession of a valid encoding is enough to redeem it. Access
tokens are opaque random strings looked up in a TokenStore.
"""

import logging
import secrets
import time
from typing import Optional

from oauth.errors import InvalidGrant, InvalidToken
from oauth.jwt_utils import PayloadDecodeError, decode_payload, encode_payload
from oauth.models import ACCESS_TOKEN_LIFETIME, DEFAULT_SCOPE, AccessToken, ResolvedIdentity
from oauth.stores import MemoryStore

logger = logging.getLogger(__name__)

ACCESS_TOKEN_PREFIX = "mcp_token_"


class AuthCodeIssuer:
    """Encode/decode downstream authorization codes.

    ``max_age`` of 0 disables the issuance-age check on redemption.
    """

    def __init__(self, secret: Optional[str] = None, max_age: int = 0):
        self._secret = secret
        self.max_age = max_age

    def issue(self, identity: ResolvedIdentity, issued_at: Optional[int] = None) -> str:
        payload = {
            "sub": identity.subject,
            "email": identity.email,
            "name": identity.name,
            "identityId": identity.identity_id,
            "resolvedAt": identity.resolved_at,
            "timestamp": int(time.time()) if issued_at is None else issued_at,
        }
        return encode_payload(payload, self._secret)

    def redeem(self, code: Optional[str]) -> ResolvedIdentity:
        """Decode a code back into the identity it was issued for.

        Raises:
            InvalidGrant: the code does not decode to the expected shape
        """
        try:
            payload = decode_payload(code or "", self._secret)
        except PayloadDecodeError as e:
            raise InvalidGrant("Invalid authorization code") from e

        subject = payload.get("sub")
        timestamp = payload.get("timestamp")
        if not isinstance(subject, str) or not subject or not isinstance(timestamp, int):
            raise InvalidGrant("Invalid authorization code")
        for key in ("email", "name", "identityId"):
            if payload.get(key) is not None and not isinstance(payload[key], str):
                raise InvalidGrant("Invalid authorization code")

        if self.max_age and time.time() - timestamp > self.max_age:
            raise InvalidGrant("Authorization code expired")

        resolved_at = payload.get("resolvedAt")
        return ResolvedIdentity(
            subject=subject,
            email=payload.get("email"),
            name=payload.get("name"),
            identity_id=payload.get("identityId"),
            resolved_at=resolved_at if isinstance(resolved_at, int) else timestamp,
        )


def generate_access_token() -> str:
    return f"{ACCESS_TOKEN_PREFIX}{secrets.token_urlsafe(24)}{secrets.token_hex(8)}"


class TokenStore:
    """Issued access tokens, keyed by token string.

    Tokens carry a declared lifetime; it is only enforced when
    ``enforce_expiry`` is set. Nothing is swept unless ``sweep_expired`` is called.
    """

    def __init__(
        self,
        store: Optional[MemoryStore] = None,
        expires_in: int = ACCESS_TOKEN_LIFETIME,
        enforce_expiry: bool = False,
    ):
        self._store = store if store is not None else MemoryStore()
        self.expires_in = expires_in
        self.enforce_expiry = enforce_expiry

    def issue(self, identity: ResolvedIdentity, scope: str = DEFAULT_SCOPE) -> AccessToken:
        token = generate_access_token()
        while self._store.contains(token):
            token = generate_access_token()
        record = AccessToken(
            access_token=token,
            identity=identity,
            scope=scope,
            expires_in=self.expires_in,
        )
        self._store.put(token, record)
        logger.info(f"[TOKEN] Access token created for user: {identity.email or identity.subject}")
        return record

    def lookup(self, token: str) -> Optional[AccessToken]:
        if not token:
            return None
        record = self._store.get(token)
        if record is None:
            return None
        if self.enforce_expiry and record.is_expired():
            self._store.delete(token)
            return None
        return record

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Drop tokens past their declared lifetime; returns how many."""
        now = time.time() if now is None else now
        removed = 0
        for key in self._store.keys():
            record = self._store.get(key)
            if record is not None and record.is_expired(now):
                self._store.delete(key)
                removed += 1
        if removed:
            logger.info(f"[TOKEN] Swept {removed} expired access tokens")
        return removed

    def __len__(self) -> int:
        return len(self._store)


class BearerValidator:
    """Authentication gate for protected resources."""

    def __init__(self, token_store: TokenStore):
        self.token_store = token_store

    def validate(self, bearer_token: Optional[str]) -> ResolvedIdentity:
        record = self.token_store.lookup(bearer_token or "")
        if record is None:
            raise InvalidToken("Invalid or expired authentication token")
        return record.identity
