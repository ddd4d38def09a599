"""Dynamic client registration (RFC 7591) storage."""

import logging
import secrets
import string
import time
from typing import Optional

from oauth.errors import MalformedRequest
from oauth.models import DEFAULT_CLIENT_NAME, DEFAULT_SCOPE, RegisteredClient
from oauth.stores import MemoryStore

logger = logging.getLogger(__name__)

CLIENT_ID_PREFIX = "mcp_client_"
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LENGTH = 9


def generate_client_id() -> str:
    """Build ``mcp_client_<millis>_<9 base36 chars>``."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"{CLIENT_ID_PREFIX}{int(time.time() * 1000)}_{suffix}"


def _string_list(data: dict, key: str, default: tuple) -> tuple:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise MalformedRequest(f"{key} must be a list of strings")
    return tuple(value)


def _string(data: dict, key: str, default: str) -> str:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise MalformedRequest(f"{key} must be a string")
    return value


class ClientRegistry:
    """Registered downstream clients, keyed by client id.

    Registrations are never deduplicated or expired.
    """

    def __init__(self, store: Optional[MemoryStore] = None):
        self._store = store if store is not None else MemoryStore()

    def register(self, data) -> RegisteredClient:
        """Register a client from a (possibly partial) registration document."""
        if not isinstance(data, dict):
            raise MalformedRequest("Registration body must be a JSON object")

        client_id = generate_client_id()
        while self._store.contains(client_id):
            client_id = generate_client_id()

        client = RegisteredClient(
            client_id=client_id,
            redirect_uris=_string_list(data, "redirect_uris", ()),
            client_name=_string(data, "client_name", DEFAULT_CLIENT_NAME),
            scope=_string(data, "scope", DEFAULT_SCOPE),
            grant_types=_string_list(data, "grant_types", ("authorization_code",)),
            response_types=_string_list(data, "response_types", ("code",)),
        )
        self._store.put(client_id, client)
        logger.info(f"[REGISTER] Registered client {client_id} ({client.client_name})")
        return client

    def get(self, client_id: Optional[str]) -> Optional[RegisteredClient]:
        if not client_id:
            return None
        return self._store.get(client_id)

    def contains(self, client_id: Optional[str]) -> bool:
        return bool(client_id) and self._store.contains(client_id)

    def __len__(self) -> int:
        return len(self._store)
