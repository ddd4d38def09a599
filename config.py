"""Config management for mcp-oauth-proxy.

Settings come from the process environment. A ``.env`` file in the working
directory is loaded first if present, otherwise the bundled ``.env.public``
beside this module.
"""
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

_TRUE_VALUES = ("1", "true", "yes", "on")


def load_environment() -> None:
    """Load .env (local override) or .env.public (bundled defaults)."""
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)
        return
    public_env = Path(__file__).parent / ".env.public"
    if public_env.exists():
        load_dotenv(public_env)


class Settings:
    """Configuration container."""

    def __init__(self, data: Optional[Mapping[str, str]] = None):
        self.data = dict(data or {})

    def _get(self, key: str, default: str = "") -> str:
        value = self.data.get(key)
        return default if value is None or value == "" else str(value)

    def _flag(self, key: str, default: bool = False) -> bool:
        value = self.data.get(key)
        if value is None or value == "":
            return default
        return str(value).strip().lower() in _TRUE_VALUES

    def _int(self, key: str, default: int) -> int:
        value = self.data.get(key)
        return default if value is None or value == "" else int(value)

    # ---- proxy identity ----

    @property
    def server_url(self) -> str:
        return self._get("SERVER_URL").rstrip("/")

    # ---- upstream IdP ----

    @property
    def upstream_base_url(self) -> str:
        return self._get("UPSTREAM_BASE_URL").rstrip("/")

    @property
    def upstream_authorize_url(self) -> str:
        return self._get("UPSTREAM_AUTHORIZE_URL", f"{self.upstream_base_url}/oauth2/authorize")

    @property
    def upstream_token_url(self) -> str:
        return self._get("UPSTREAM_TOKEN_URL", f"{self.upstream_base_url}/oauth2/token")

    @property
    def upstream_userinfo_url(self) -> str:
        return self._get("UPSTREAM_USERINFO_URL", f"{self.upstream_base_url}/oauth2/userInfo")

    @property
    def upstream_client_id(self) -> str:
        return self._get("UPSTREAM_CLIENT_ID")

    @property
    def upstream_client_secret(self) -> str:
        return self._get("UPSTREAM_CLIENT_SECRET")

    @property
    def default_scope(self) -> str:
        return self._get("DEFAULT_SCOPE", "openid email profile")

    @property
    def http_timeout(self) -> float:
        return float(self._get("HTTP_TIMEOUT", "10"))

    # ---- identity resolution ----

    @property
    def identity_strategy(self) -> str:
        return self._get("IDENTITY_STRATEGY", "direct").lower()

    @property
    def identity_pool_id(self) -> str:
        return self._get("IDENTITY_POOL_ID")

    @property
    def aws_region(self) -> str:
        return self._get("AWS_REGION", "us-west-2")

    @property
    def federation_login_provider(self) -> str:
        return self._get("FEDERATION_LOGIN_PROVIDER", "accounts.google.com")

    # ---- hardening switches ----

    @property
    def signing_secret(self) -> Optional[str]:
        return self._get("OAUTH_SIGNING_SECRET") or None

    @property
    def enforce_token_expiry(self) -> bool:
        return self._flag("ENFORCE_TOKEN_EXPIRY")

    @property
    def auth_code_max_age(self) -> int:
        return self._int("AUTH_CODE_MAX_AGE", 0)

    # ---- tools / server ----

    @property
    def todo_api_url(self) -> str:
        return self._get("TODO_API_URL")

    @property
    def enable_mcp(self) -> bool:
        return self._flag("ENABLE_MCP", True)

    @property
    def host(self) -> str:
        return self._get("MCP_HOST", "0.0.0.0")

    @property
    def port(self) -> int:
        return self._int("MCP_PORT", 8766)

    @property
    def log_format(self) -> str:
        return self._get("LOG_FORMAT", "plain").lower()

    @property
    def log_level(self) -> str:
        return self._get("LOG_LEVEL", "INFO").upper()

    def is_valid(self) -> bool:
        """Check if the upstream client is configured."""
        return bool(self.upstream_client_id and self.upstream_token_url.startswith("http"))

    def describe(self) -> dict:
        """Effective configuration with secrets masked."""
        return {
            "server_url": self.server_url or "(derived from request)",
            "upstream_authorize_url": self.upstream_authorize_url,
            "upstream_token_url": self.upstream_token_url,
            "upstream_userinfo_url": self.upstream_userinfo_url,
            "upstream_client_id": self.upstream_client_id,
            "upstream_client_secret": "***" if self.upstream_client_secret else "",
            "identity_strategy": self.identity_strategy,
            "identity_pool_id": self.identity_pool_id,
            "aws_region": self.aws_region,
            "federation_login_provider": self.federation_login_provider,
            "signed_codes": bool(self.signing_secret),
            "enforce_token_expiry": self.enforce_token_expiry,
            "auth_code_max_age": self.auth_code_max_age,
            "todo_api_url": self.todo_api_url,
            "enable_mcp": self.enable_mcp,
            "host": self.host,
            "port": self.port,
        }


def load_settings() -> Settings:
    """Load settings from the environment (after applying .env files)."""
    load_environment()
    return Settings(os.environ)
