"""OAuth 2.0 endpoints of the authorization-server proxy.

This module contains all OAuth-related endpoints:
- Discovery metadata (/.well-known/*)
- Client registration (/register)
- Authorization relay (/authorize, /callback)
- Token endpoint (/token)

Browser-facing endpoints answer in plain text or redirects; machine-facing
ones answer JSON with an OAuth ``error`` field.
"""

import json
import logging

from fastapi import APIRouter, Depends, FastAPI, Form, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from oauth.errors import MalformedRequest, MalformedState, MissingParameter, OAuthError
from oauth.proxy import OAuthProxy, TokenRequest

logger = logging.getLogger(__name__)

# Router for OAuth endpoints
router = APIRouter(tags=["oauth"])

SCOPES_SUPPORTED = ["openid", "profile", "email"]


def init_oauth_routes(app: FastAPI, proxy: OAuthProxy) -> None:
    """Attach ``proxy`` to the app and include the OAuth router."""
    app.state.oauth_proxy = proxy
    app.include_router(router)


def get_proxy(request: Request) -> OAuthProxy:
    return request.app.state.oauth_proxy


def request_origin(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def oauth_error_response(error: OAuthError) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.status_code)


# ============== OAuth 2.0 Discovery Endpoints ==============

@router.get("/.well-known/oauth-authorization-server")
async def oauth_authorization_server(request: Request, proxy: OAuthProxy = Depends(get_proxy)):
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    origin = proxy.origin(request_origin(request))
    return {
        "issuer": origin,
        "authorization_endpoint": f"{origin}/authorize",
        "token_endpoint": f"{origin}/token",
        "registration_endpoint": f"{origin}/register",
        "scopes_supported": SCOPES_SUPPORTED,
        "response_types_supported": ["code"],
        "response_modes_supported": ["query"],
        "grant_types_supported": ["authorization_code"],
        "token_endpoint_auth_methods_supported": ["none"],
        "code_challenge_methods_supported": ["S256"],
    }


@router.get("/.well-known/oauth-protected-resource")
async def oauth_protected_resource(request: Request, proxy: OAuthProxy = Depends(get_proxy)):
    """OAuth 2.0 Protected Resource Metadata (RFC 9728)."""
    origin = proxy.origin(request_origin(request))
    return {
        "resource": f"{origin}/mcp",
        "authorization_servers": [origin],
        "scopes_supported": SCOPES_SUPPORTED,
        "bearer_methods_supported": ["header"],
    }


# ============== Client Registration ==============

@router.post("/register")
async def register_client(request: Request, proxy: OAuthProxy = Depends(get_proxy)):
    """OAuth 2.0 Dynamic Client Registration (RFC 7591)."""
    try:
        raw = await request.body()
        data = json.loads(raw) if raw.strip() else {}
        client = proxy.register(data)
    except ValueError:
        logger.info("[REGISTER] Rejected unparseable registration body")
        return oauth_error_response(MalformedRequest("Invalid registration request"))
    except MalformedRequest as e:
        logger.info(f"[REGISTER] Rejected registration: {e.description}")
        return oauth_error_response(e)

    return JSONResponse(client.to_dict(), status_code=201)


# ============== Authorization Relay ==============

@router.get("/authorize")
async def authorize(request: Request, proxy: OAuthProxy = Depends(get_proxy)):
    """Validate the downstream request and send the browser to the upstream IdP."""
    try:
        location = proxy.authorize(request_origin(request), dict(request.query_params))
    except OAuthError as e:
        logger.info(f"[AUTHORIZE] Rejected: {e.description}")
        return PlainTextResponse(e.description, status_code=e.status_code)

    return RedirectResponse(url=location, status_code=302)


@router.get("/callback")
async def callback(
    request: Request,
    code: str = "",
    state: str = "",
    error: str = "",
    proxy: OAuthProxy = Depends(get_proxy),
):
    """Upstream IdP redirect target; re-issues our own code to the downstream client."""
    if error:
        logger.info(f"[CALLBACK] Upstream returned error: {error}")
        return PlainTextResponse(f"OAuth error: {error}", status_code=400)

    try:
        location = await proxy.callback(request_origin(request), code, state)
    except (MissingParameter, MalformedState) as e:
        logger.info(f"[CALLBACK] Rejected: {e.description}")
        return PlainTextResponse(e.description, status_code=400)
    except OAuthError as e:
        logger.warning(f"[CALLBACK] Failed: {e}")
        return PlainTextResponse("OAuth callback failed", status_code=500)

    return RedirectResponse(url=location, status_code=302)


# ============== Token Endpoint ==============

@router.post("/token")
async def token(
    request: Request,
    grant_type: str = Form(None),
    code: str = Form(None),
    redirect_uri: str = Form(None),
    client_id: str = Form(None),
    code_verifier: str = Form(None),
    proxy: OAuthProxy = Depends(get_proxy),
):
    """OAuth 2.0 Token Endpoint."""
    token_request = TokenRequest(
        grant_type=grant_type,
        code=code,
        client_id=client_id,
        redirect_uri=redirect_uri,
        code_verifier=code_verifier,
    )
    logger.debug(f"[TOKEN] grant_type: {grant_type}, client_id: {client_id}")

    try:
        access_token = proxy.token(token_request)
    except OAuthError as e:
        logger.info(f"[TOKEN] Rejected with {e.error}: {e.description}")
        return oauth_error_response(e)
    except Exception:
        logger.exception("[TOKEN] Unexpected error")
        return JSONResponse({"error": "server_error"}, status_code=500)

    return JSONResponse(access_token.to_response())
