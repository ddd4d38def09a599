"""OAuth middleware for MCP endpoints.

Validates Bearer tokens against the proxy's token store before any tool
call is allowed through. The resolved identity is attached to
``request.state.identity`` for the duration of the request.

Challenges point clients at the protected-resource metadata so they can
discover this proxy's authorization server (RFC 9728).
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from oauth.errors import InvalidToken
from oauth.tokens import BearerValidator

logger = logging.getLogger(__name__)


def bearer_token(request: Request):
    """Return the token from ``Authorization: Bearer <token>``, or None."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip()


class MCPOAuthMiddleware(BaseHTTPMiddleware):
    """Middleware to validate OAuth Bearer tokens for the Streamable HTTP MCP endpoint."""

    def __init__(self, app, validator: BearerValidator, server_url: str = ""):
        super().__init__(app)
        self.validator = validator
        self.server_url = server_url.rstrip("/")

    def origin(self, request: Request) -> str:
        # Mounted apps see their own root path, so build from scheme and host
        return self.server_url or f"{request.url.scheme}://{request.url.netloc}"

    def challenge(self, origin: str, error: str = "") -> str:
        metadata = f'resource_metadata="{origin}/.well-known/oauth-protected-resource"'
        if error:
            return f'Bearer error="{error}", {metadata}'
        return f"Bearer {metadata}"

    async def dispatch(self, request: Request, call_next):
        origin = self.origin(request)
        token = bearer_token(request)
        if not token:
            logger.info("[AUTH] Request rejected: no Bearer token")
            return JSONResponse(
                {
                    "error": "unauthorized",
                    "error_description": "Bearer token required for MCP access. Please authenticate first.",
                    "auth_url": f"{origin}/authorize",
                },
                status_code=401,
                headers={"WWW-Authenticate": self.challenge(origin)},
            )

        try:
            identity = self.validator.validate(token)
        except InvalidToken as e:
            logger.info("[AUTH] Request rejected: invalid or expired token")
            return JSONResponse(
                e.to_dict(),
                status_code=e.status_code,
                headers={"WWW-Authenticate": self.challenge(origin, e.error)},
            )

        request.state.identity = identity
        logger.info(f"[AUTH] Request authorized: {identity.email or identity.subject}")
        return await call_next(request)
