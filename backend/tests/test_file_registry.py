"""Tests for the file record lifecycle."""
import pytest

from conftest import START_MS
from slugshare.errors import NotFoundError, SlugExhausted, StorageUnavailable, ValidationError
from slugshare.services.file_registry import DAY_MS, MAX_TIMESTAMP_MS, FileMeta, FileRegistry, compute_expiry
from slugshare.services.passcode import verify_passcode
from slugshare.services.slug_allocator import SlugAllocator


def scripted_choice(chars: str):
    it = iter(chars)
    return lambda alphabet: next(it)


async def never_taken(slug):
    return False


class BrokenDeleteStorage:
    """Wraps a real store but fails every delete."""

    def __init__(self, inner):
        self.inner = inner

    async def put(self, key, data, content_type=None):
        await self.inner.put(key, data, content_type)

    async def get(self, key):
        return await self.inner.get(key)

    async def delete(self, key):
        raise OSError("disk unavailable")


class BrokenPutStorage(BrokenDeleteStorage):
    async def put(self, key, data, content_type=None):
        raise OSError("disk full")


def stored_objects(storage):
    return sorted(p.name for p in storage.base_path.rglob("*") if p.is_file())


@pytest.fixture
def registry(db, storage, clock):
    return FileRegistry(db, storage, clock=clock)


async def test_create_public_file(registry, storage, clock):
    record = await registry.create(FileMeta("hello.txt", "text/plain"), b"0123456789")

    assert len(record.slug) == 8
    assert record.size == 10
    assert record.uploaded_at == clock.now
    assert record.expires_at is None
    assert record.is_private is False
    assert record.passcode_hash is None
    assert await storage.get(f"files/{record.id}-hello.txt") == b"0123456789"


async def test_passcode_on_public_upload_is_not_stored(registry):
    record = await registry.create(FileMeta("a.txt"), b"x", passcode="abc")
    assert record.passcode_hash is None


async def test_create_private_file_hashes_passcode(registry):
    record = await registry.create(FileMeta("secret.txt", is_private=True), b"x", passcode="abc")
    assert record.is_private is True
    assert record.passcode_hash != "abc"
    assert verify_passcode("abc", record.passcode_hash)


@pytest.mark.parametrize("passcode", [None, ""])
async def test_private_without_passcode_rejected_before_any_write(registry, storage, passcode):
    with pytest.raises(ValidationError):
        await registry.create(FileMeta("secret.txt", is_private=True), b"x", passcode=passcode)
    assert stored_objects(storage) == []
    assert await registry.list() == []


async def test_expiry_days(registry, clock):
    record = await registry.create(FileMeta("a.txt"), b"x", expiry_days=3)
    assert record.expires_at == clock.now + 3 * DAY_MS


async def test_expiry_beyond_timestamp_column_rejected_before_any_write(registry, storage):
    with pytest.raises(ValidationError):
        await registry.create(FileMeta("a.txt"), b"x", expiry_days=999_999_999_999_999)
    assert stored_objects(storage) == []
    assert await registry.list() == []


def test_compute_expiry_upper_bound():
    assert compute_expiry(0, MAX_TIMESTAMP_MS // DAY_MS) == (MAX_TIMESTAMP_MS // DAY_MS) * DAY_MS
    with pytest.raises(ValidationError):
        compute_expiry(0, MAX_TIMESTAMP_MS // DAY_MS + 1)


@pytest.mark.parametrize("days", [None, 0, -2, True])
def test_non_positive_expiry_means_never(days):
    assert compute_expiry(START_MS, days) is None


async def test_lookup_and_get(registry):
    record = await registry.create(FileMeta("a.txt"), b"x")
    assert (await registry.lookup(record.slug)).id == record.id
    assert (await registry.get(record.id)).slug == record.slug


async def test_lookup_unknown_slug(registry):
    with pytest.raises(NotFoundError):
        await registry.lookup("nope1234")


async def test_list_newest_first(registry, clock):
    first = await registry.create(FileMeta("first.txt"), b"1")
    clock.advance(1000)
    second = await registry.create(FileMeta("second.txt"), b"2")
    assert [r.id for r in await registry.list()] == [second.id, first.id]


async def test_insert_conflict_reallocates_slug(db, storage, clock):
    taken = FileRegistry(
        db, storage, clock=clock,
        allocator=SlugAllocator(never_taken, length=8, choice=scripted_choice("A" * 8)),
    )
    first = await taken.create(FileMeta("one.txt"), b"1")
    assert first.slug == "AAAAAAAA"

    # The existence check reports the slug as free (as it would for a request
    # racing the first insert), so only the UNIQUE constraint catches it.
    racing = FileRegistry(
        db, storage, clock=clock,
        allocator=SlugAllocator(never_taken, length=8, choice=scripted_choice("A" * 8 + "B" * 8)),
    )
    second = await racing.create(FileMeta("two.txt"), b"2")

    assert second.slug == "BBBBBBBB"
    assert len(stored_objects(storage)) == 2
    assert {r.slug for r in await racing.list()} == {"AAAAAAAA", "BBBBBBBB"}


async def test_allocation_exhaustion_writes_nothing(db, storage, clock):
    registry = FileRegistry(db, storage, clock=clock)
    registry.allocator = SlugAllocator(registry.slug_exists, alphabet="q", length=8, max_attempts=2)
    await registry.create(FileMeta("a.txt"), b"1")

    with pytest.raises(SlugExhausted):
        await registry.create(FileMeta("b.txt"), b"2")
    assert len(stored_objects(storage)) == 1


async def test_object_write_failure(db, storage, clock):
    registry = FileRegistry(db, BrokenPutStorage(storage), clock=clock)
    with pytest.raises(StorageUnavailable):
        await registry.create(FileMeta("a.txt"), b"1")
    assert await registry.list() == []


async def test_read_content(registry, storage):
    record = await registry.create(FileMeta("a.txt"), b"payload")
    assert await registry.read_content(record) == b"payload"

    await storage.delete(registry.object_key(record))
    with pytest.raises(NotFoundError):
        await registry.read_content(record)


async def test_update_toggles_privacy(registry):
    record = await registry.create(FileMeta("a.txt", is_private=True), b"x", passcode="abc")

    updated = await registry.update(record.id, {"is_private": False})
    assert updated.is_private is False
    assert updated.passcode_hash is not None

    updated = await registry.update(record.id, {"is_private": True})
    assert updated.is_private is True
    assert verify_passcode("abc", updated.passcode_hash)


async def test_update_cannot_make_passcodeless_file_private(registry):
    record = await registry.create(FileMeta("a.txt"), b"x")
    with pytest.raises(ValidationError):
        await registry.update(record.id, {"is_private": True})
    assert (await registry.get(record.id)).is_private is False


@pytest.mark.parametrize("patch", [{}, {"is_private": None}, {"passcode_hash": "x"}, {"expires_at": 1}])
async def test_update_rejects_empty_or_unsupported_patch(registry, patch):
    record = await registry.create(FileMeta("a.txt"), b"x")
    with pytest.raises(ValidationError):
        await registry.update(record.id, patch)


async def test_update_unknown_id(registry):
    with pytest.raises(NotFoundError):
        await registry.update("missing", {"is_private": False})


async def test_delete_removes_object_and_row(registry, storage):
    record = await registry.create(FileMeta("a.txt"), b"x")
    deleted = await registry.delete(record.id)

    assert deleted.id == record.id
    assert stored_objects(storage) == []
    with pytest.raises(NotFoundError):
        await registry.lookup(record.slug)
    with pytest.raises(NotFoundError):
        await registry.delete(record.id)


async def test_delete_removes_row_even_if_object_delete_fails(db, storage, clock):
    registry = FileRegistry(db, BrokenDeleteStorage(storage), clock=clock)
    record = await registry.create(FileMeta("a.txt"), b"x")

    await registry.delete(record.id)

    with pytest.raises(NotFoundError):
        await registry.get(record.id)
    assert len(stored_objects(storage)) == 1


async def test_purge_expired(registry, storage, clock):
    keep = await registry.create(FileMeta("keep.txt"), b"k")
    later = await registry.create(FileMeta("later.txt"), b"l", expiry_days=2)
    soon = await registry.create(FileMeta("soon.txt"), b"s", expiry_days=1)

    assert await registry.purge_expired() == 0
    clock.advance(DAY_MS + 1)
    assert await registry.purge_expired() == 1

    remaining = {r.id for r in await registry.list()}
    assert remaining == {keep.id, later.id}
    assert soon.id not in remaining
    assert len(stored_objects(storage)) == 2


async def test_direct_upload_reserve_store_finalize(registry, storage, clock):
    key = registry.reserve("report.pdf")
    assert key.startswith("files/") and key.endswith("-report.pdf")
    assert await registry.list() == []

    assert await registry.store_upload(key, "report.pdf", b"%PDF-1.7", "application/pdf") == 8
    record = await registry.finalize(key, FileMeta("report.pdf", "application/pdf"), expiry_days=2)

    assert registry.object_key(record) == key
    assert record.size == 8
    assert record.expires_at == clock.now + 2 * DAY_MS
    assert await registry.read_content(record) == b"%PDF-1.7"


async def test_finalize_private_requires_passcode(registry):
    key = registry.reserve("secret.txt")
    await registry.store_upload(key, "secret.txt", b"s")

    with pytest.raises(ValidationError):
        await registry.finalize(key, FileMeta("secret.txt", "text/plain", is_private=True))
    record = await registry.finalize(key, FileMeta("secret.txt", "text/plain", is_private=True), passcode="abc")
    assert verify_passcode("abc", record.passcode_hash)


async def test_finalize_without_uploaded_object(registry):
    key = registry.reserve("a.txt")
    with pytest.raises(ValidationError):
        await registry.finalize(key, FileMeta("a.txt", "text/plain"))
    assert await registry.list() == []


@pytest.mark.parametrize(
    "key",
    [
        "files/abc-other.txt",
        "elsewhere/abc-a.txt",
        "files/../x-a.txt",
        "files/-a.txt",
        "files/" + "x" * 40 + "-a.txt",
    ],
)
async def test_file_id_for_rejects_foreign_keys(registry, key):
    with pytest.raises(ValidationError):
        registry.file_id_for(key, "a.txt")


async def test_finalized_upload_cannot_be_overwritten_or_finalized_twice(registry):
    key = registry.reserve("a.txt")
    await registry.store_upload(key, "a.txt", b"first")
    await registry.finalize(key, FileMeta("a.txt", "text/plain"))

    with pytest.raises(ValidationError):
        await registry.store_upload(key, "a.txt", b"swapped")
    with pytest.raises(ValidationError):
        await registry.finalize(key, FileMeta("a.txt", "text/plain"))
    assert len(await registry.list()) == 1
