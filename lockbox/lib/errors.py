"""Exception types raised by the storage core.

Absence (missing key, expired entry, nothing to migrate) is never an error.
"""
from __future__ import annotations

class LockboxError(Exception):
	pass

class StorageError(LockboxError):
	"""The backing store could not be read or opened."""

class StorageWriteError(StorageError):
	"""The backing store rejected a write (capacity exceeded, I/O failure)."""

class DecryptionError(LockboxError):
	"""Ciphertext failed authentication or could not be decrypted."""

class SerializationError(LockboxError):
	pass

class RestoreError(LockboxError):
	"""A backup blob was malformed or could not be applied."""
