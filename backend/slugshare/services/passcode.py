"""One-way digests for passcodes and admin passwords."""
import hashlib
import hmac


def hash_passcode(secret: str) -> str:
    """SHA-256 hex digest of ``secret``."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def verify_passcode(candidate: str, stored_digest: str | None) -> bool:
    """True when ``candidate`` hashes to ``stored_digest``."""
    if not stored_digest:
        return False
    return hmac.compare_digest(hash_passcode(candidate), stored_digest)
