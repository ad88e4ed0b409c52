"""Signed upload URLs for direct uploads.

A ticket is an HS256 JWT naming one reserved object key. It plays the part
of an object store's presigned PUT URL: whoever holds it may write that
one key until ``exp``. Tickets carry ``typ="upload"`` and no role, so they
are never accepted as admin tokens and vice versa.
"""
import logging

import jwt

from slugshare.errors import InvalidUploadUrl
from slugshare.services.admin_auth import ALGORITHM
from slugshare.services.clock import Clock, now_ms

logger = logging.getLogger(__name__)

TICKET_TYPE = "upload"


class UploadTicketService:
    def __init__(self, secret: str, ttl_seconds: int = 3600, clock: Clock = now_ms):
        if not secret:
            raise ValueError("Ticket secret must not be empty")
        self._secret = secret
        self.ttl_ms = ttl_seconds * 1000
        self.clock = clock

    def issue(self, key: str, filename: str, content_type: str) -> tuple[str, int]:
        """Return ``(ticket, expires_at_ms)`` for writing ``key``."""
        expires_at = self.clock() + self.ttl_ms
        payload = {
            "typ": TICKET_TYPE,
            "key": key,
            "name": filename,
            "ct": content_type,
            "exp": expires_at / 1000,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM), expires_at

    def verify(self, ticket: str) -> dict:
        try:
            payload = jwt.decode(
                ticket,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected upload ticket: {type(e).__name__}")
            raise InvalidUploadUrl() from e

        if payload.get("typ") != TICKET_TYPE or not payload.get("key") or not payload.get("name"):
            raise InvalidUploadUrl()
        try:
            expires_at = round(float(payload["exp"]) * 1000)
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidUploadUrl() from e
        if expires_at < self.clock():
            raise InvalidUploadUrl()
        return payload
