"""Project configuration settings.

Constants shared by the storage core, the CLI and the scripts. Paths and the
log level honour environment overrides; the CLI re-reads the path variables at
call time so tests can point it at a temporary directory.
"""

from pathlib import Path
import os

# Security / crypto
DEFAULT_ITERATIONS = 100_000
SALT_LENGTH = 32
KEY_LENGTH = 32    # AES-256
NONCE_LENGTH = 12  # GCM nonce

# Secure store entries
ENTRY_VERSION = 1
NAMESPACE_SEPARATOR = ":"

# Recommendations (seconds)
CRITICAL_EXPIRES_IN = 3600

# Stores
DEFAULT_STORE_PATH = Path(os.environ.get("LOCKBOX_STORE_PATH", "lockbox_data/plain.json"))
DEFAULT_SECURE_PATH = Path(os.environ.get("LOCKBOX_SECURE_PATH", "lockbox_data/secure.json"))
SALT_SUFFIX = ".salt"

# Backups
BACKUP_SUFFIX = ".backup"
DEFAULT_BACKUP_DIR = Path(os.environ.get("LOCKBOX_BACKUP_DIR", "backups"))

# Logging
LOG_LEVEL = os.environ.get("LOCKBOX_LOG_LEVEL", "WARNING")
LOG_FILE = os.environ.get("LOCKBOX_LOG_FILE") or None

__all__ = [
	'DEFAULT_ITERATIONS','SALT_LENGTH','KEY_LENGTH','NONCE_LENGTH',
	'ENTRY_VERSION','NAMESPACE_SEPARATOR','CRITICAL_EXPIRES_IN',
	'DEFAULT_STORE_PATH','DEFAULT_SECURE_PATH','SALT_SUFFIX',
	'BACKUP_SUFFIX','DEFAULT_BACKUP_DIR','LOG_LEVEL','LOG_FILE'
]
