"""Seed the bootstrap admin account on startup.

Idempotent: does nothing when the username already exists or when
ADMIN_BOOTSTRAP_USERNAME / ADMIN_BOOTSTRAP_PASSWORD are unset.
"""
import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from werkzeug.security import generate_password_hash

from slugshare.models.admin_user import AdminUser
from slugshare.services.admin_auth import ADMIN_ROLE

logger = logging.getLogger(__name__)


async def seed_admin(session: AsyncSession, username: str, password: str) -> bool:
    """Create the bootstrap admin if configured and missing. Returns True if created."""
    if not username or not password:
        logger.info("No bootstrap admin configured")
        return False

    result = await session.execute(select(AdminUser.id).where(AdminUser.username == username))
    if result.first() is not None:
        logger.info(f"Bootstrap admin '{username}' already exists")
        return False

    session.add(AdminUser(username=username, password_hash=generate_password_hash(password), role=ADMIN_ROLE))
    await session.commit()
    logger.info(f"Seeded bootstrap admin '{username}'")
    return True
