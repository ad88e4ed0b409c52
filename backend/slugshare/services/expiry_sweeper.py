"""Background sweeper for expired files.

Retrieval never deletes anything; this loop removes expired rows and their
blobs on an interval. Runs as an asyncio task within the FastAPI process.
"""
import asyncio
import logging

from slugshare.database import async_session
from slugshare.services.file_registry import FileRegistry
from slugshare.services.file_storage import file_storage

logger = logging.getLogger(__name__)


async def sweep_once() -> int:
    """Purge expired files in a fresh session. Returns the number removed."""
    async with async_session() as db:
        registry = FileRegistry(db, file_storage)
        return await registry.purge_expired()


async def sweeper_loop(interval_seconds: int):
    """Purge expired files every ``interval_seconds``."""
    logger.info(f"Expiry sweeper started (every {interval_seconds}s)")
    while True:
        try:
            await sweep_once()
        except Exception as e:
            logger.error(f"Expiry sweep failed: {e}")

        await asyncio.sleep(interval_seconds)
