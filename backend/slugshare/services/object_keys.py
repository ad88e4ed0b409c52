"""Object store key derivation.

The key is computed from the file record alone, so it is never stored.
"""

DEFAULT_PREFIX = "files"


def derive_object_key(file_id: str, original_filename: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Return ``"<prefix>/<file_id>-<original_filename>"``."""
    return f"{prefix}/{file_id}-{original_filename}"
