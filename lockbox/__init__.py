"""lockbox: encrypted, namespaced, expiring key-value storage with migration
from plaintext stores."""
from __future__ import annotations

from .lib.backends import KeyValueStore, MemoryStore, JsonFileStore
from .lib.backup import BackupService
from .lib.crypto import CryptoEngine, AesGcmProvider, UnavailableProvider
from .lib.errors import (
	LockboxError, StorageError, StorageWriteError, DecryptionError, SerializationError, RestoreError
)
from .lib.migration import MigrationEngine, MigrationOptions, MigrationResult, MigrationSummary
from .lib.recommendations import Recommendation, RecommendationEngine, get_migration_recommendations
from .lib.secure_store import SecureStore, ScopedStore, StoredEntry

__version__ = "0.1.0"

__all__ = [
	'KeyValueStore','MemoryStore','JsonFileStore','BackupService',
	'CryptoEngine','AesGcmProvider','UnavailableProvider',
	'LockboxError','StorageError','StorageWriteError','DecryptionError','SerializationError','RestoreError',
	'MigrationEngine','MigrationOptions','MigrationResult','MigrationSummary',
	'Recommendation','RecommendationEngine','get_migration_recommendations',
	'SecureStore','ScopedStore','StoredEntry','__version__'
]
