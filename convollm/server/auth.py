"""Bearer-token authentication for the completion endpoint."""

from __future__ import annotations

import logging
import secrets

from fastapi import Header, Request

from convollm.llm.errors import OrchestrationError

logger = logging.getLogger(__name__)


class AuthenticationError(OrchestrationError):
    status_code = 403


def verify_token(request: Request, authorization: str | None = Header(default=None)) -> None:
    """
    FastAPI dependency: require ``Authorization: Bearer <SERVER__AUTH_TOKEN>``.

    Every request is rejected while no token is configured.
    """
    expected = request.app.state.settings.server.auth_token
    scheme, _, token = (authorization or "").partition(" ")
    # Headers arrive latin-1 decoded; compare_digest only accepts ASCII str
    valid = bool(expected) and secrets.compare_digest(token.strip().encode(), expected.encode())
    if scheme.lower() != "bearer" or not valid:
        logger.warning(f"Rejected request to {request.url.path}: invalid or missing token")
        raise AuthenticationError("Invalid or missing token")
