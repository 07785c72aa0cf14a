"""
Error kinds raised while proxying a request.

Each error knows the HTTP status it maps to and how to render itself as the
JSON envelope returned to the frontend:

    {"success": false, "error": "...", "details": "...", ...extra}
"""

from http.client import (
    BAD_GATEWAY,
    GATEWAY_TIMEOUT,
    INTERNAL_SERVER_ERROR,
    METHOD_NOT_ALLOWED,
    REQUEST_ENTITY_TOO_LARGE,
)


class ProxyError(Exception):
    """Base class for errors surfaced directly to the caller."""

    status = INTERNAL_SERVER_ERROR
    message = "Proxy error."

    def __init__(self, message=None, details=None, extra=None):
        self.message = message or self.message
        self.details = details
        self.extra = extra or {}
        super().__init__(self.message)

    def to_dict(self):
        body = {"success": False, "error": self.message}
        body.update(self.extra)
        if self.details is not None:
            body["details"] = self.details
        return body


class ConfigError(ProxyError):
    message = "Missing GAS_URL env var."


class MethodNotAllowed(ProxyError):
    status = METHOD_NOT_ALLOWED
    message = 'Method not allowed. Use POST with JSON body { action: "...", ... }.'


class PayloadTooLarge(ProxyError):
    status = REQUEST_ENTITY_TOO_LARGE
    message = "Request body too large."


class UpstreamTimeout(ProxyError):
    status = GATEWAY_TIMEOUT
    message = "Proxy timeout while calling Apps Script."


class UpstreamTransportError(ProxyError):
    message = "Proxy error. See function logs."


class UpstreamResponseTooLarge(ProxyError):
    status = BAD_GATEWAY
    message = "Upstream response too large."


class UpstreamNonJSON(ProxyError):
    status = BAD_GATEWAY
    message = "Upstream returned non-JSON response."
