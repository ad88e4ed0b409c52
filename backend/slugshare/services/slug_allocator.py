"""Short public identifiers for file records.

Draws a fixed-length slug and asks the metadata store whether it is taken.
The check and the later insert are not atomic; the ``files.slug`` UNIQUE
constraint is the real guarantee and FileRegistry retries on conflict.
"""
import logging
import secrets
import string
from typing import Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError

from slugshare.errors import SlugExhausted, StorageUnavailable

logger = logging.getLogger(__name__)

DEFAULT_ALPHABET = string.ascii_letters + string.digits
DEFAULT_LENGTH = 8
DEFAULT_MAX_ATTEMPTS = 20


class SlugAllocator:
    """Generate-and-check slug allocation with a bounded number of attempts."""

    def __init__(
        self,
        exists: Callable[[str], Awaitable[bool]],
        alphabet: str = DEFAULT_ALPHABET,
        length: int = DEFAULT_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        choice: Callable[[str], str] = secrets.choice,
    ):
        if not alphabet:
            raise ValueError("Slug alphabet must not be empty")
        if length < 1:
            raise ValueError("Slug length must be positive")
        if max_attempts < 1:
            raise ValueError("max_attempts must be positive")
        self.exists = exists
        self.alphabet = alphabet
        self.length = length
        self.max_attempts = max_attempts
        self._choice = choice

    def draw(self) -> str:
        """One random candidate, not checked against the store."""
        return "".join(self._choice(self.alphabet) for _ in range(self.length))

    async def allocate(self) -> str:
        """Return a slug no existing record uses.

        Raises SlugExhausted when every attempt collided and
        StorageUnavailable when the existence check kept failing.
        """
        store_errors = 0
        for attempt in range(1, self.max_attempts + 1):
            slug = self.draw()
            try:
                taken = await self.exists(slug)
            except SQLAlchemyError as e:
                store_errors += 1
                logger.warning(f"Slug existence check failed (attempt {attempt}/{self.max_attempts}): {e}")
                continue
            if not taken:
                return slug
            logger.debug(f"Slug collision on attempt {attempt}")

        if store_errors == self.max_attempts:
            raise StorageUnavailable()
        raise SlugExhausted(f"No free slug after {self.max_attempts} attempts")
