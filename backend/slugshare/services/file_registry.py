"""File record lifecycle: create, lookup, list, update, delete.

Direct uploads split ``create`` in two: the client writes the blob under a
reserved key, then ``finalize`` inserts the row.

Writes touch two stores that share no transaction. Upload writes the blob
and then inserts the row; delete removes the blob and then the row. A
failure between the two steps leaves an orphaned blob (create) or a blob
that could not be removed (delete). Both cases are logged for out-of-band
reconciliation and are not rolled back here.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from slugshare.config import settings
from slugshare.errors import NotFoundError, SlugExhausted, StorageUnavailable, ValidationError
from slugshare.models.file_record import FileRecord
from slugshare.services.clock import Clock, now_ms
from slugshare.services.file_storage import FileStorageService
from slugshare.services.object_keys import derive_object_key
from slugshare.services.passcode import hash_passcode
from slugshare.services.slug_allocator import SlugAllocator

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
# expires_at is a signed 64-bit column
MAX_TIMESTAMP_MS = 2**63 - 1
DEFAULT_MIME_TYPE = "application/octet-stream"
UPDATABLE_FIELDS = {"is_private"}


@dataclass
class FileMeta:
    """Upload metadata as declared by the client."""
    original_filename: str
    mime_type: str | None = None
    is_private: bool = False


def compute_expiry(now: int, expiry_days: int | None) -> int | None:
    """Absolute expiry in epoch ms, or None when the file never expires.

    Raises ValidationError when the result does not fit the column.
    """
    if isinstance(expiry_days, bool) or not isinstance(expiry_days, int) or expiry_days <= 0:
        return None
    expires_at = now + expiry_days * DAY_MS
    if expires_at > MAX_TIMESTAMP_MS:
        raise ValidationError("expiryDays is too large.")
    return expires_at


class FileRegistry:
    """Owns FileRecord rows and the blob each one points at."""

    def __init__(
        self,
        db: AsyncSession,
        storage: FileStorageService,
        clock: Clock = now_ms,
        allocator: SlugAllocator | None = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        key_prefix: str | None = None,
    ):
        self.db = db
        self.storage = storage
        self.clock = clock
        self.allocator = allocator or SlugAllocator(
            self.slug_exists,
            alphabet=settings.SLUG_ALPHABET,
            length=settings.SLUG_LENGTH,
            max_attempts=settings.SLUG_MAX_ATTEMPTS,
        )
        self.id_factory = id_factory
        self.key_prefix = key_prefix or settings.OBJECT_KEY_PREFIX

    def object_key(self, record: FileRecord) -> str:
        return derive_object_key(record.id, record.original_filename, self.key_prefix)

    async def slug_exists(self, slug: str) -> bool:
        result = await self.db.execute(select(FileRecord.id).where(FileRecord.slug == slug))
        return result.first() is not None

    async def create(
        self,
        meta: FileMeta,
        content: bytes,
        passcode: str | None = None,
        expiry_days: int | None = None,
    ) -> FileRecord:
        """Store ``content`` and register a new record for it.

        A passcode is required for private uploads and ignored for public
        ones, so ``passcode_hash`` is set exactly when ``is_private`` is.
        """
        fields = self._new_fields(meta, passcode, expiry_days)
        slug = await self._allocate()

        file_id = self.id_factory()
        key = derive_object_key(file_id, meta.original_filename, self.key_prefix)
        try:
            await self.storage.put(key, content, meta.mime_type)
        except OSError as e:
            logger.error(f"Object write failed for {key}: {e}")
            raise StorageUnavailable() from e

        record = await self._insert(dict(fields, id=file_id, size=len(content)), slug, key)
        logger.info(f"Registered file {record.id} as {record.slug} (private={record.is_private})")
        return record

    def reserve(self, filename: str) -> str:
        """Object key for a blob the client will upload itself."""
        if not filename:
            raise ValidationError("A filename is required.")
        return derive_object_key(self.id_factory(), filename, self.key_prefix)

    def file_id_for(self, key: str, filename: str) -> str:
        """Recover the record id from a reserved key, checking it names ``filename``."""
        prefix, suffix = f"{self.key_prefix}/", f"-{filename}"
        file_id = ""
        if key.startswith(prefix) and key.endswith(suffix):
            file_id = key[len(prefix):len(key) - len(suffix)]
        if not file_id or "/" in file_id or len(file_id) > FileRecord.__table__.c.id.type.length:
            raise ValidationError("Object key does not match the uploaded file.")
        return file_id

    async def store_upload(self, key: str, filename: str, content: bytes, content_type: str | None = None) -> int:
        """Write the bytes of a direct upload under its reserved key.

        Refused once the key has been finalized, so a published file cannot
        be swapped out through a stale upload URL. Returns the stored size.
        """
        file_id = self.file_id_for(key, filename)
        await self._ensure_unregistered(file_id)
        try:
            await self.storage.put(key, content, content_type)
        except OSError as e:
            logger.error(f"Object write failed for {key}: {e}")
            raise StorageUnavailable() from e
        logger.info(f"Stored direct upload at {key} ({len(content)} bytes)")
        return len(content)

    async def finalize(
        self,
        key: str,
        meta: FileMeta,
        passcode: str | None = None,
        expiry_days: int | None = None,
    ) -> FileRecord:
        """Register a blob the client already uploaded under a reserved key.

        Same passcode and expiry rules as ``create``. The recorded size is
        what the store holds, not what the client claims.
        """
        fields = self._new_fields(meta, passcode, expiry_days)
        file_id = self.file_id_for(key, meta.original_filename)

        await self._ensure_unregistered(file_id)

        size = await self.storage.size(key)
        if size is None:
            raise ValidationError("No uploaded object found for this key.")

        slug = await self._allocate()
        record = await self._insert(dict(fields, id=file_id, size=size), slug, key)
        logger.info(f"Finalized direct upload {record.id} as {record.slug} (private={record.is_private})")
        return record

    def _new_fields(self, meta: FileMeta, passcode: str | None, expiry_days: int | None) -> dict[str, Any]:
        # Everything here is checked before any blob or row is written.
        if meta.is_private and not passcode:
            raise ValidationError("Passcode is required for private files.")
        if not meta.original_filename:
            raise ValidationError("A filename is required.")
        now = self.clock()
        return dict(
            original_filename=meta.original_filename,
            mime_type=meta.mime_type,
            uploaded_at=now,
            expires_at=compute_expiry(now, expiry_days),
            passcode_hash=hash_passcode(passcode) if meta.is_private else None,
            is_private=meta.is_private,
        )

    async def _ensure_unregistered(self, file_id: str) -> None:
        try:
            taken = await self.db.get(FileRecord, file_id)
        except SQLAlchemyError as e:
            raise StorageUnavailable() from e
        if taken is not None:
            raise ValidationError("Upload already finalized.")

    async def _allocate(self) -> str:
        try:
            return await self.allocator.allocate()
        except SQLAlchemyError as e:
            raise StorageUnavailable() from e

    async def _insert(self, fields: dict[str, Any], slug: str, key: str) -> FileRecord:
        # Another upload may have claimed the slug between the existence check
        # and this insert; the UNIQUE constraint turns that into a retry.
        for attempt in range(1, self.allocator.max_attempts + 1):
            record = FileRecord(slug=slug, **fields)
            self.db.add(record)
            try:
                await self.db.commit()
                await self.db.refresh(record)
                return record
            except IntegrityError as e:
                await self.db.rollback()
                try:
                    conflict = await self.slug_exists(slug)
                except SQLAlchemyError:
                    conflict = False
                if not conflict:
                    logger.error(f"Metadata insert failed, orphaned object {key}: {e}")
                    raise StorageUnavailable() from e
                logger.warning(f"Slug {slug} taken at insert time (attempt {attempt}), reallocating")
                try:
                    slug = await self.allocator.allocate()
                except (SlugExhausted, StorageUnavailable):
                    logger.error(f"Slug reallocation failed, orphaned object {key}")
                    raise
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Metadata insert failed, orphaned object {key}: {e}")
                raise StorageUnavailable() from e

        logger.error(f"Slug conflicts exhausted retries, orphaned object {key}")
        raise SlugExhausted(f"No free slug after {self.allocator.max_attempts} attempts")

    async def lookup(self, slug: str) -> FileRecord:
        """Find a record by its public slug."""
        try:
            result = await self.db.execute(select(FileRecord).where(FileRecord.slug == slug))
        except SQLAlchemyError as e:
            raise StorageUnavailable() from e
        record = result.scalar_one_or_none()
        if not record:
            raise NotFoundError()
        return record

    async def get(self, file_id: str) -> FileRecord:
        """Find a record by its internal id."""
        try:
            record = await self.db.get(FileRecord, file_id)
        except SQLAlchemyError as e:
            raise StorageUnavailable() from e
        if not record:
            raise NotFoundError()
        return record

    async def read_content(self, record: FileRecord) -> bytes:
        """Fetch the blob behind ``record``."""
        key = self.object_key(record)
        try:
            data = await self.storage.get(key)
        except OSError as e:
            raise StorageUnavailable() from e
        if data is None:
            logger.warning(f"Record {record.id} has no object at {key}")
            raise NotFoundError("File content not found in storage.")
        return data

    async def list(self) -> list[FileRecord]:
        """All records, newest upload first."""
        try:
            result = await self.db.execute(
                select(FileRecord).order_by(desc(FileRecord.uploaded_at), FileRecord.slug)
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable() from e
        return list(result.scalars().all())

    async def update(self, file_id: str, patch: dict[str, Any]) -> FileRecord:
        """Apply an admin edit. Only ``is_private`` can change.

        Passcode and expiry are fixed at upload. Turning privacy on for a
        record that was uploaded without a passcode is rejected.
        """
        changes = {k: v for k, v in patch.items() if v is not None}
        if not changes:
            raise ValidationError("No update data provided.")
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        record = await self.get(file_id)
        is_private = bool(changes["is_private"])
        if is_private and not record.passcode_hash:
            raise ValidationError("Cannot make a file private that was uploaded without a passcode.")

        record.is_private = is_private
        try:
            await self.db.commit()
            await self.db.refresh(record)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageUnavailable() from e
        logger.info(f"Updated file {record.id}: is_private={record.is_private}")
        return record

    async def delete(self, file_id: str) -> FileRecord:
        """Remove the blob, then the row. Returns the deleted record."""
        record = await self.get(file_id)
        key = self.object_key(record)
        try:
            await self.storage.delete(key)
        except (OSError, ValueError) as e:
            logger.warning(f"Object delete failed, orphaned object {key}: {e}")

        try:
            await self.db.execute(delete(FileRecord).where(FileRecord.id == file_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageUnavailable() from e
        logger.info(f"Deleted file {record.id} ({record.slug})")
        return record

    async def purge_expired(self, now: int | None = None) -> int:
        """Delete every record whose expiry has passed. Returns the count."""
        now = self.clock() if now is None else now
        result = await self.db.execute(
            select(FileRecord.id).where(
                FileRecord.expires_at.is_not(None),
                FileRecord.expires_at < now,
            )
        )
        expired_ids = list(result.scalars().all())
        for file_id in expired_ids:
            try:
                await self.delete(file_id)
            except NotFoundError:
                pass
        if expired_ids:
            logger.info(f"Purged {len(expired_ids)} expired file(s)")
        return len(expired_ids)
