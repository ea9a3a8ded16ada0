"""Owner identity -- maps bearer tokens to ledger owners.

Real authentication lives outside this system; the token table in
config.yaml stands in for it.
"""

from __future__ import annotations

import logging

from core.errors import UnauthorizedError

logger = logging.getLogger(__name__)


class TokenAuthenticator:
    """Resolves an Authorization header or raw token to an owner id."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = dict(tokens)

    def owner_for_header(self, header: str | None) -> str:
        if not header:
            raise UnauthorizedError("Missing Authorization header")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise UnauthorizedError("Authorization must be 'Bearer <token>'")
        return self.owner_for_token(token.strip())

    def owner_for_token(self, token: str) -> str:
        owner = self._tokens.get(token)
        if not owner:
            logger.warning("Rejected unknown token")
            raise UnauthorizedError("Unauthorized")
        return owner


def require_owner(owner: str | None) -> str:
    """Reject a blank or missing owner identity."""
    if owner is None or not str(owner).strip():
        raise UnauthorizedError("Unauthorized")
    return str(owner).strip()
