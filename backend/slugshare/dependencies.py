"""FastAPI dependencies wiring services to the request.

Tests replace ``get_db``, ``get_file_storage`` and ``get_clock`` through
``app.dependency_overrides``.
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from slugshare.config import settings
from slugshare.database import get_db
from slugshare.errors import UnauthorizedError
from slugshare.services.ad_gate import AdGate
from slugshare.services.admin_auth import TokenService
from slugshare.services.clock import Clock, now_ms
from slugshare.services.file_registry import FileRegistry
from slugshare.services.file_storage import FileStorageService, file_storage
from slugshare.services.upload_tickets import UploadTicketService


def get_clock() -> Clock:
    return now_ms


def get_file_storage() -> FileStorageService:
    return file_storage


def get_registry(
    db: AsyncSession = Depends(get_db),
    storage: FileStorageService = Depends(get_file_storage),
    clock: Clock = Depends(get_clock),
) -> FileRegistry:
    return FileRegistry(db, storage, clock=clock)


def get_token_service(clock: Clock = Depends(get_clock)) -> TokenService:
    return TokenService(settings.TOKEN_SECRET, settings.TOKEN_TTL_MINUTES, clock=clock)


def get_upload_tickets(clock: Clock = Depends(get_clock)) -> UploadTicketService:
    return UploadTicketService(settings.TOKEN_SECRET, settings.UPLOAD_URL_TTL_SECONDS, clock=clock)


def get_ad_gate() -> AdGate:
    return AdGate(settings.AD_SCREEN_PATH, settings.AD_COUNTDOWN_SECONDS)


async def require_admin(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_token_service),
) -> dict:
    """Verified admin token claims from ``Authorization: Bearer <token>``."""
    if not authorization:
        raise UnauthorizedError("Missing authorization token.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Invalid authorization header format.")
    payload = tokens.verify_token(token.strip())
    return tokens.require_role(payload)
