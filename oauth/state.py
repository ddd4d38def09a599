"""Relay state codec.

Serializes the downstream request context into the upstream ``state``
parameter and restores it on the callback.
"""

from typing import Optional

from oauth.errors import MalformedState
from oauth.jwt_utils import PayloadDecodeError, decode_payload, encode_payload
from oauth.models import RelayState

_FIELDS = {
    "originalClientId": "client_id",
    "originalRedirectUri": "redirect_uri",
    "originalState": "state",
    "codeChallenge": "code_challenge",
    "codeChallengeMethod": "code_challenge_method",
}


class StateCodec:
    """Transparent unless a signing secret is configured; never treat an
    unsigned state as tamper-proof."""

    def __init__(self, secret: Optional[str] = None):
        self._secret = secret

    def encode(self, relay: RelayState) -> str:
        payload = {key: getattr(relay, attr) for key, attr in _FIELDS.items()}
        return encode_payload(payload, self._secret)

    def decode(self, value: Optional[str]) -> RelayState:
        try:
            payload = decode_payload(value or "", self._secret)
        except PayloadDecodeError as e:
            raise MalformedState("Invalid state parameter") from e

        for key in _FIELDS:
            item = payload.get(key)
            if item is not None and not isinstance(item, str):
                raise MalformedState(f"Invalid state field: {key}")
        if payload.get("originalClientId") is None or payload.get("originalRedirectUri") is None:
            raise MalformedState("State is missing the original client context")

        return RelayState(**{attr: payload.get(key) for key, attr in _FIELDS.items()})
