"""Admin API routes: login, list, update, delete."""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from slugshare.database import get_db
from slugshare.dependencies import get_registry, get_token_service, require_admin
from slugshare.errors import ForbiddenError, ValidationError
from slugshare.models.file_record import FileRecord
from slugshare.schemas.admin import LoginRequest, LoginResponse
from slugshare.schemas.common import DeleteResponse
from slugshare.schemas.file import FileRecordResponse, FileUpdate
from slugshare.services.admin_auth import ADMIN_ROLE, TokenService, authenticate
from slugshare.services.file_registry import FileRegistry

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Exchange admin credentials for a short-lived token."""
    if not body.username or not body.password:
        raise ValidationError("Username and password are required.")

    principal = await authenticate(db, body.username, body.password)
    if principal.role != ADMIN_ROLE:
        raise ForbiddenError("Admin privileges required.")

    token = tokens.issue_token(principal)
    claims = tokens.verify_token(token)
    return LoginResponse(token=token, expires_at=round(claims["exp"] * 1000))


@router.get("/files", response_model=list[FileRecordResponse])
async def list_files(
    registry: FileRegistry = Depends(get_registry),
    _admin: dict = Depends(require_admin),
):
    """List every stored file, newest first."""
    return [_to_response(r) for r in await registry.list()]


@router.put("/files/{file_id}", response_model=FileRecordResponse)
async def update_file(
    file_id: str,
    body: Optional[FileUpdate] = None,
    registry: FileRegistry = Depends(get_registry),
    _admin: dict = Depends(require_admin),
):
    """Update a file. Only isPrivate can be changed."""
    record = await registry.update(file_id, body.model_dump(exclude_unset=True) if body else {})
    return _to_response(record)


@router.delete("/files/{file_id}", response_model=DeleteResponse)
async def delete_file(
    file_id: str,
    registry: FileRegistry = Depends(get_registry),
    _admin: dict = Depends(require_admin),
):
    """Delete a file and its record."""
    record = await registry.delete(file_id)
    return DeleteResponse(id=record.id)


def _to_response(record: FileRecord) -> FileRecordResponse:
    return FileRecordResponse.model_validate(record)
