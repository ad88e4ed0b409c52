"""Upload and direct retrieval API routes."""
from pathlib import PurePosixPath, PureWindowsPath
from typing import Optional, Union
from urllib.parse import quote

from fastapi import APIRouter, Depends, File as FastAPIFile, Form, Query, Request, UploadFile
from fastapi.responses import Response

from slugshare.dependencies import get_clock, get_registry, get_upload_tickets
from slugshare.errors import ValidationError
from slugshare.models.file_record import FileRecord
from slugshare.schemas.file import (
    DirectUploadResponse,
    FinalizeUploadRequest,
    UploadResponse,
    UploadUrlRequest,
    UploadUrlResponse,
)
from slugshare.services.access_gate import ensure_access
from slugshare.services.clock import Clock
from slugshare.services.file_registry import DEFAULT_MIME_TYPE, FileMeta, FileRegistry
from slugshare.services.upload_tickets import UploadTicketService

router = APIRouter(prefix="/api", tags=["files"])


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: Optional[UploadFile] = FastAPIFile(None),
    passcode: Optional[str] = Form(None),
    expiry_days: Optional[str] = Form(None, alias="expiryDays"),
    is_private: Optional[str] = Form(None, alias="isPrivate"),
    registry: FileRegistry = Depends(get_registry),
):
    """Store a file and return its short link."""
    if file is None or not file.filename:
        raise ValidationError("No file uploaded or file is not a Blob/File.")

    contents = await file.read()
    meta = FileMeta(
        original_filename=clean_filename(file.filename),
        mime_type=file.content_type,
        is_private=(is_private or "").strip().lower() == "true",
    )
    record = await registry.create(meta, contents, passcode=passcode, expiry_days=parse_expiry_days(expiry_days))
    return upload_response(record)


@router.post("/upload-url", response_model=UploadUrlResponse)
async def create_upload_url(
    body: Optional[UploadUrlRequest] = None,
    registry: FileRegistry = Depends(get_registry),
    tickets: UploadTicketService = Depends(get_upload_tickets),
):
    """Reserve an object key and hand out a URL the client can PUT the bytes to."""
    if body is None or not body.file_name or not body.file_type or body.file_size is None or body.file_size < 0:
        raise ValidationError("Missing fileName, fileType, or fileSize")

    filename = clean_filename(body.file_name)
    key = registry.reserve(filename)
    ticket, expires_at = tickets.issue(key, filename, body.file_type)
    return UploadUrlResponse(upload_url=f"/api/direct-upload/{ticket}", object_key=key, expires_at=expires_at)


@router.put("/direct-upload/{ticket}", response_model=DirectUploadResponse)
async def direct_upload(
    ticket: str,
    request: Request,
    registry: FileRegistry = Depends(get_registry),
    tickets: UploadTicketService = Depends(get_upload_tickets),
):
    """Accept the raw request body as the blob for a reserved key."""
    claims = tickets.verify(ticket)
    content = await request.body()
    content_type = request.headers.get("content-type") or claims.get("ct")
    size = await registry.store_upload(claims["key"], claims["name"], content, content_type)
    return DirectUploadResponse(object_key=claims["key"], size=size)


@router.post("/finalize-upload", response_model=UploadResponse)
async def finalize_upload(
    body: Optional[FinalizeUploadRequest] = None,
    registry: FileRegistry = Depends(get_registry),
):
    """Register a directly uploaded blob and return its short link."""
    if (
        body is None
        or not body.object_key
        or not body.original_filename
        or not body.mime_type
        or body.file_size is None
    ):
        raise ValidationError("Missing required file metadata.")

    meta = FileMeta(
        original_filename=clean_filename(body.original_filename),
        mime_type=body.mime_type,
        is_private=body.is_private,
    )
    record = await registry.finalize(
        body.object_key, meta, passcode=body.passcode, expiry_days=parse_expiry_days(body.expiry_days)
    )
    return upload_response(record)


@router.get("/d/{slug}")
async def download_file(
    slug: str,
    passcode: Optional[str] = Query(None),
    registry: FileRegistry = Depends(get_registry),
    clock: Clock = Depends(get_clock),
):
    """Download a file by slug. Errors are JSON with 404/410/401/403."""
    record = await registry.lookup(slug)
    ensure_access(record, clock(), passcode)
    data = await registry.read_content(record)
    return file_response(record, data)


def clean_filename(name: str) -> str:
    """Drop any directory part a client sent along with the name."""
    return PureWindowsPath(PurePosixPath(name).name).name.strip() or "unnamed"


def parse_expiry_days(raw: Optional[Union[int, str]]) -> Optional[int]:
    """Whole number of days from a form or JSON field; anything else means no expiry."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    try:
        return int(raw.strip())
    except ValueError:
        return None


def content_disposition(filename: str) -> str:
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "'").replace("\\", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def file_response(record: FileRecord, data: bytes) -> Response:
    return Response(
        content=data,
        media_type=record.mime_type or DEFAULT_MIME_TYPE,
        headers={
            "Content-Disposition": content_disposition(record.original_filename),
            "Content-Length": str(record.size),
        },
    )


def upload_response(record: FileRecord) -> UploadResponse:
    return UploadResponse(
        slug=record.slug,
        short_url=f"/s/{record.slug}",
        filename=record.original_filename,
        is_private=record.is_private,
        expires_at=record.expires_at,
    )
