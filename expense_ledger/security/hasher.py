"""
Credential Hashing

One-way, deterministic hex digests for passwords and security answers.
The algorithm comes from SecuritySettings and must produce at least 160 bits.
If it is unavailable, hash() returns None and callers must fail the
operation; plaintext is never stored in its place.
"""

import hashlib
from typing import Optional

import structlog

from expense_ledger.config import SecuritySettings, get_settings


logger = structlog.get_logger(__name__)

MIN_DIGEST_BITS = 160


class CredentialHasher:
    """Hashes credentials with a configured hashlib algorithm."""

    def __init__(self, settings: Optional[SecuritySettings] = None):
        self._settings = settings or get_settings().security
        self._algorithm = self._settings.hash_algorithm

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def is_available(self) -> bool:
        """Check that the algorithm exists and is strong enough."""
        try:
            digest = hashlib.new(self._algorithm)
        except (ValueError, TypeError):
            return False
        return digest.digest_size * 8 >= MIN_DIGEST_BITS

    def hash(self, value: str) -> Optional[str]:
        """
        Hash a credential.

        Returns the lowercase hex digest, or None if the configured
        algorithm cannot be used.
        """
        if value is None:
            return None

        if not self.is_available():
            logger.error(
                "hash_algorithm_unavailable",
                algorithm=self._algorithm,
            )
            return None

        digest = hashlib.new(self._algorithm)
        digest.update(value.encode("utf-8"))
        return digest.hexdigest()
