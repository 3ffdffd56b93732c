"""Bearer API-key authentication for `/api/*` routes.

Behavior:
    - No `API_KEY` configured: authentication is disabled (warned once).
    - Missing `Authorization` header: 401 `UNAUTHORIZED`.
    - Non-Bearer scheme: 401 `UNAUTHORIZED`.
    - Bearer token not matching `API_KEY`: 403 `FORBIDDEN`.
"""

import hmac
import logging

from fastapi import Depends, Header

from context_server.llm import provider_config


logger = logging.getLogger(__name__)

_warned_disabled = False


class APIError(Exception):
    """Error rendered as `{"error": {"message", "code"}}` by the HTTP layer."""

    def __init__(self, status_code, message, code):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code


def get_api_key():
    return provider_config.API_KEY


def authenticate(
    authorization: str | None = Header(default=None),
    api_key: str | None = Depends(get_api_key),
):
    global _warned_disabled

    if not api_key:
        if not _warned_disabled:
            logger.warning("No API key configured. Authentication is disabled.")
            _warned_disabled = True
        return

    if not authorization:
        raise APIError(401, "Authorization header is required", "UNAUTHORIZED")

    if not authorization.startswith("Bearer "):
        raise APIError(401, "Authorization header must be Bearer token", "UNAUTHORIZED")

    token = authorization[len("Bearer "):]
    if not hmac.compare_digest(token.encode("utf-8"), api_key.encode("utf-8")):
        raise APIError(403, "Invalid API key", "FORBIDDEN")
