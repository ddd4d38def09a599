"""MCP Tools for mcp-oauth-proxy.

This module defines the MCP tools exposed to authenticated clients:
add, calculate, and add_todo. Tools run behind MCPOAuthMiddleware, so the
caller's resolved identity is available on the current HTTP request.
"""

import logging
from datetime import datetime, timedelta
from typing import Literal, Optional

import httpx
from fastmcp import FastMCP
from fastmcp.server.dependencies import get_http_request

from oauth.models import ResolvedIdentity

logger = logging.getLogger(__name__)

# Create the FastMCP server instance
mcp = FastMCP("Todo MCP Server with Auth")

TODO_DURATION = timedelta(minutes=15)

# Set by init_tools()
_todo_api_url: str = ""


def init_tools(settings) -> None:
    """Initialize tool configuration from settings."""
    global _todo_api_url
    _todo_api_url = settings.todo_api_url


def current_identity() -> Optional[ResolvedIdentity]:
    """Identity attached by the bearer middleware, if any."""
    try:
        request = get_http_request()
    except RuntimeError:
        return None
    return getattr(request.state, "identity", None)


def compute(operation: str, a: float, b: float) -> str:
    if operation == "add":
        result = a + b
    elif operation == "subtract":
        result = a - b
    elif operation == "multiply":
        result = a * b
    elif operation == "divide":
        if b == 0:
            return "Error: Cannot divide by zero"
        result = a / b
    else:
        return f"Error: Unknown operation {operation}"
    if float(result).is_integer():
        return str(int(result))
    return str(result)


def build_todo(identity: ResolvedIdentity, title: str, note: Optional[str], now: datetime) -> dict:
    """Todo payload for the tasks API, stamped with a 15 minute slot starting now."""
    end = now + TODO_DURATION
    return {
        "title": title,
        "note": note or "",
        "date": now.strftime("%Y/%m/%d"),
        "startTime": now.strftime("%I:%M %p"),
        "endTime": end.strftime("%I:%M %p"),
        "userId": identity.user_id,
        "userEmail": identity.email,
    }


async def create_todo(
    identity: Optional[ResolvedIdentity],
    title: str,
    note: Optional[str],
    api_url: str,
    now: Optional[datetime] = None,
) -> str:
    if identity is None:
        return "Error: Authentication required. Please log in first."
    if not api_url:
        return "Error: Todo service is not configured"

    payload = build_todo(identity, title, note, now or datetime.now())
    logger.info(f"[TOOL] Creating todo for user: {identity.user_id} ({identity.email})")
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(api_url, json=payload)
    except httpx.HTTPError as e:
        return f"Error: Failed to create todo - {e}"

    if not response.is_success:
        return f"Error: Failed to create todo. Status: {response.status_code}"
    return f"Todo created successfully for {identity.name}! Response: {response.text}"


@mcp.tool()
def add(a: float, b: float) -> str:
    """Add two numbers."""
    logger.info("[TOOL] add invoked")
    return compute("add", a, b)


@mcp.tool()
def calculate(operation: Literal["add", "subtract", "multiply", "divide"], a: float, b: float) -> str:
    """Calculator with add, subtract, multiply and divide.

    Args:
        operation: Which arithmetic operation to apply
        a: Left operand
        b: Right operand
    """
    logger.info(f"[TOOL] calculate invoked: {operation}")
    return compute(operation, a, b)


@mcp.tool()
async def add_todo(title: str, note: Optional[str] = None) -> str:
    """Create a todo item for the authenticated user.

    Args:
        title: The title of the todo item
        note: Optional note for the todo item
    """
    return await create_todo(current_identity(), title, note, _todo_api_url)
