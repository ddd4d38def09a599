"""OAuth proxy error taxonomy.

Every failure in the relay pipeline raises one of these. Each class knows the
OAuth ``error`` code and HTTP status it maps to, so endpoints can translate
without a lookup table.
"""

from typing import Optional


class OAuthError(Exception):
    """Base class for all proxy errors."""

    error = "server_error"
    status_code = 500

    def __init__(self, description: str = ""):
        super().__init__(description or self.__class__.__name__)
        self.description = description

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


class ConfigError(Exception):
    """Deployment configuration is unusable."""


class MalformedRequest(OAuthError):
    error = "invalid_request"
    status_code = 400


class MissingParameter(OAuthError):
    error = "invalid_request"
    status_code = 400


class UnknownClient(OAuthError):
    error = "invalid_client"
    status_code = 401


class MalformedState(OAuthError):
    error = "invalid_grant"
    status_code = 400


class UpstreamExchangeFailed(OAuthError):
    """Upstream token endpoint answered with a non-2xx status."""

    def __init__(self, status: Optional[int], body: str = ""):
        super().__init__(f"Token exchange failed: {status} {body}".strip())
        self.status = status
        self.body = body


class UpstreamUserinfoFailed(OAuthError):
    def __init__(self, status: Optional[int]):
        super().__init__(f"User info request failed: {status}")
        self.status = status


class ConsumerUserinfoFailed(UpstreamUserinfoFailed):
    """Stage one of federated resolution failed."""


class FederationExchangeFailed(OAuthError):
    """Stage two of federated resolution failed."""


class FederationIdentityMissing(FederationExchangeFailed):
    def __init__(self):
        super().__init__("Federation response carried no identity id")


class InvalidGrant(OAuthError):
    error = "invalid_grant"
    status_code = 400


class InvalidToken(OAuthError):
    error = "invalid_token"
    status_code = 401


class ServerError(OAuthError):
    pass
