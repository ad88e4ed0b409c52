"""Admin login and short-lived signed tokens.

Tokens are HS256 JWTs over ``{sub, username, role, iat, exp}``. There is no
server-side session or revocation list; a token dies when ``exp`` passes.
Expiry is checked against the injected clock instead of PyJWT's own, so a
simulated clock governs both issuing and verifying.
"""
import logging

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from werkzeug.security import check_password_hash

from slugshare.errors import ForbiddenError, InvalidToken, UnauthorizedError
from slugshare.models.admin_user import AdminUser
from slugshare.services.clock import Clock, now_ms

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ADMIN_ROLE = "admin"
REQUIRED_CLAIMS = ("sub", "username", "role", "exp")


class TokenService:
    """Issues and verifies admin tokens signed with a shared secret."""

    def __init__(self, secret: str, ttl_minutes: int = 30, clock: Clock = now_ms):
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self.ttl_ms = ttl_minutes * 60 * 1000
        self.clock = clock

    def expiry_for(self, issued_at: int) -> int:
        return issued_at + self.ttl_ms

    def issue_token(self, principal: AdminUser) -> str:
        issued_at = self.clock()
        payload = {
            "sub": str(principal.id),
            "username": principal.username,
            "role": principal.role,
            "iat": issued_at / 1000,
            "exp": self.expiry_for(issued_at) / 1000,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> dict:
        """Decode ``token`` and return its claims, or raise InvalidToken."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected admin token: {type(e).__name__}")
            raise InvalidToken() from e

        if any(claim not in payload for claim in REQUIRED_CLAIMS):
            raise InvalidToken()
        try:
            expires_at = round(float(payload["exp"]) * 1000)
        except (TypeError, ValueError) as e:
            raise InvalidToken() from e
        if expires_at < self.clock():
            raise InvalidToken("Token has expired.")
        return payload

    @staticmethod
    def require_role(payload: dict, role: str = ADMIN_ROLE) -> dict:
        """Pass a verified payload through if it carries ``role``."""
        if payload.get("role") != role:
            raise ForbiddenError("Admin privileges required.")
        return payload


async def authenticate(db: AsyncSession, username: str, password: str) -> AdminUser:
    """Check credentials. The error never says which field was wrong."""
    result = await db.execute(select(AdminUser).where(AdminUser.username == username))
    principal = result.scalar_one_or_none()
    if principal is None or not check_password_hash(principal.password_hash, password):
        logger.info("Admin login failed")
        raise UnauthorizedError("Invalid credentials.")
    return principal
