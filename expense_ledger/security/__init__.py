"""Credential hashing package."""

from expense_ledger.security.hasher import CredentialHasher

__all__ = ["CredentialHasher"]
