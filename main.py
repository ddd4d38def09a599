"""MCP OAuth proxy - application entry point.

It handles:
- OAuth 2.0 authorization-server proxy endpoints via oauth/
  (/register, /authorize, /callback, /token, discovery metadata)
- MCP protocol endpoint via Streamable HTTP (/mcp), gated by bearer tokens
  issued from /token
- MCP tools (add, calculate, add_todo) via tools.py

Downstream MCP clients authenticate here; actual user login happens at the
upstream IdP the proxy relays to.
"""
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.middleware import Middleware

from config import Settings, load_settings
from logging_config import setup_logging
from oauth.endpoints import init_oauth_routes
from oauth.middleware import MCPOAuthMiddleware
from oauth.proxy import OAuthProxy
from tools import init_tools, mcp

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(settings: Settings, proxy: Optional[OAuthProxy] = None) -> FastAPI:
    """Build the FastAPI app around ``proxy`` (built from settings if omitted)."""
    proxy = proxy or OAuthProxy(settings)
    init_tools(settings)

    # ============== Streamable HTTP MCP App ==============
    # Created before the FastAPI app so its lifespan can be passed through
    mcp_http_app = None
    if settings.enable_mcp:
        mcp_http_app = mcp.http_app(
            path="/",
            transport="streamable-http",
            middleware=[
                Middleware(
                    MCPOAuthMiddleware,
                    validator=proxy.validator,
                    server_url=settings.server_url,
                )
            ],
        )

    app = FastAPI(
        title="MCP OAuth Proxy",
        description="OAuth 2.0 authorization-server proxy in front of an upstream IdP",
        version=VERSION,
        lifespan=mcp_http_app.lifespan if mcp_http_app else None,
    )

    # CORS for browser-based MCP clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if mcp_http_app:
        app.mount("/mcp", mcp_http_app)

    init_oauth_routes(app, proxy)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "mcp-oauth-proxy",
            "identity_strategy": proxy.resolver.name,
            "mcp_enabled": settings.enable_mcp,
        }

    @app.get("/")
    async def root():
        return PlainTextResponse("MCP OAuth Proxy")

    logger.info(
        f"[STARTUP] App ready - identity strategy: {proxy.resolver.name}, "
        f"MCP enabled: {settings.enable_mcp}"
    )
    return app


settings = load_settings()
setup_logging(settings.log_level, settings.log_format)
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
