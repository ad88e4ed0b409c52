"""File request/response schemas."""
from typing import Optional, Union

from slugshare.schemas.base import CamelModel, CamelORMModel


class UploadResponse(CamelORMModel):
    success: bool = True
    slug: str
    short_url: str
    filename: str
    is_private: bool
    expires_at: Optional[int] = None


class FileRecordResponse(CamelORMModel):
    """Admin view of a record. Never exposes the passcode hash."""
    id: str
    slug: str
    original_filename: str
    mime_type: Optional[str] = None
    size: int
    uploaded_at: int
    expires_at: Optional[int] = None
    is_private: bool


class FileUpdate(CamelModel):
    is_private: Optional[bool] = None


class UploadUrlRequest(CamelModel):
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None


class UploadUrlResponse(CamelModel):
    success: bool = True
    upload_url: str
    object_key: str
    expires_at: int


class DirectUploadResponse(CamelModel):
    success: bool = True
    object_key: str
    size: int


class FinalizeUploadRequest(CamelModel):
    """Metadata for a blob already written through an upload URL."""
    object_key: Optional[str] = None
    original_filename: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    is_private: bool = False
    passcode: Optional[str] = None
    expiry_days: Optional[Union[int, str]] = None
