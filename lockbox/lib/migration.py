"""Move plaintext entries into the secure store, and back.

Per key the state machine is ``plaintext -> encrypted`` on success and
``plaintext -> plaintext`` on failure: the plaintext value is only removed
after the secure write has landed, and a failed removal undoes that write.
Batch migrations treat every key independently; one failure never aborts the
rest.
"""
from __future__ import annotations
import asyncio, logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING
from .backends import KeyValueStore
from .secure_store import SecureStore
from .serialization import deserialize, serialize

if TYPE_CHECKING:
	from .recommendations import Recommendation

log = logging.getLogger(__name__)

KEY_MISSING = 'Key does not exist'

@dataclass
class MigrationOptions:
	encrypt: bool = True
	clear_plaintext: bool = True
	preserve_on_error: bool = True
	expires_in: Optional[float] = None
	namespace: Optional[str] = None
	verify: bool = True


@dataclass
class MigrationResult:
	key: str
	success: bool
	preserved: bool
	error: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)


@dataclass
class MigrationSummary:
	total: int = 0
	succeeded: int = 0
	failed: int = 0
	success: bool = True
	results: List[MigrationResult] = field(default_factory=list)

	@classmethod
	def from_results(cls, results: List[MigrationResult]) -> 'MigrationSummary':
		succeeded = sum(1 for r in results if r.success)
		failed = len(results) - succeeded
		return cls(len(results), succeeded, failed, failed == 0, list(results))

	def failures(self) -> List[MigrationResult]:
		return [r for r in self.results if not r.success]

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)


class MigrationEngine:
	def __init__(self, plaintext: KeyValueStore, secure: SecureStore):
		self.plaintext = plaintext
		self.secure = secure

	async def migrate_key(self, key: str, options: Optional[MigrationOptions] = None) -> MigrationResult:
		"""Migrate one key; never raises.

		A missing key is a successful no-op reported with ``KEY_MISSING``. On
		any error the plaintext is left exactly as it was and the result is
		``success=False, preserved=True`` regardless of ``clear_plaintext``.
		"""
		opts = options or MigrationOptions()
		ns = opts.namespace
		try:
			plaintext = self.plaintext.get(key)
		except Exception as e:
			log.error("Migration failed for %r: cannot read plaintext: %s", key, e)
			return MigrationResult(key, False, True, str(e))
		if plaintext is None:
			return MigrationResult(key, True, False, KEY_MISSING)

		value = deserialize(plaintext)
		try:
			previous = self.secure.raw(key, namespace=ns)
			await self.secure.set(key, value, encrypt=opts.encrypt, expires_in=opts.expires_in, namespace=ns)
		except Exception as e:
			log.error("Migration failed for %r: %s", key, e)
			return MigrationResult(key, False, True, str(e))

		if opts.verify:
			await self._verify(key, value, ns)

		if opts.clear_plaintext:
			try:
				self.plaintext.remove(key)
			except Exception as e:
				log.error("Could not clear plaintext for %r, undoing secure write: %s", key, e)
				try:
					self.secure.restore_raw(key, previous, namespace=ns)
				except Exception as undo:
					log.error("Could not undo secure write for %r: %s", key, undo)
				return MigrationResult(key, False, True, f"Failed to clear plaintext: {e}")
		log.info("Migrated %r (encrypted=%s)", key, opts.encrypt and self.secure.encryption_available)
		return MigrationResult(key, True, not opts.clear_plaintext)

	async def _verify(self, key: str, value: Any, ns: Optional[str]) -> None:
		# The write is already durable; a mismatch is reported, not undone.
		try:
			stored = await self.secure.get(key, namespace=ns)
		except Exception as e:
			log.warning("Migration verification error for %r: %s", key, e)
			return
		if stored != value:
			log.warning("Migration verification failed for %r", key)

	async def migrate_to_secure_storage(self, keys: Iterable[str], options: Optional[MigrationOptions] = None, *,
			concurrency: int = 1) -> MigrationSummary:
		return await self._run([(k, options) for k in keys], concurrency)

	async def _run(self, jobs: List[tuple], concurrency: int) -> MigrationSummary:
		if concurrency <= 1:
			results = [await self.migrate_key(k, o) for k, o in jobs]
		else:
			sem = asyncio.Semaphore(concurrency)

			async def one(k: str, o: Optional[MigrationOptions]) -> MigrationResult:
				async with sem:
					return await self.migrate_key(k, o)

			results = list(await asyncio.gather(*(one(k, o) for k, o in jobs)))
		summary = MigrationSummary.from_results(results)
		log.info("Migrated %d/%d keys (%d failed)", summary.succeeded, summary.total, summary.failed)
		return summary

	async def migrate_all_keys(self, prefix: str = '', options: Optional[MigrationOptions] = None, *,
			concurrency: int = 1) -> MigrationSummary:
		matching = [k for k in self.plaintext.keys() if k.startswith(prefix)]
		return await self.migrate_to_secure_storage(matching, options, concurrency=concurrency)

	async def migrate_plan(self, plan: Iterable['Recommendation'], *, concurrency: int = 1) -> MigrationSummary:
		"""Run each recommendation with its own options."""
		return await self._run([(r.key, r.options) for r in plan], concurrency)

	async def is_migrated(self, key: str, namespace: Optional[str] = None) -> bool:
		return self.secure.load_entry(key, namespace=namespace) is not None

	async def rollback_migration(self, key: str, namespace: Optional[str] = None) -> bool:
		"""Move a secure entry back to plaintext.

		Returns False when there is nothing to roll back. Raises
		DecryptionError if the entry cannot be decrypted, and lets plaintext
		write failures propagate with the secure entry still in place.
		"""
		try:
			value = await self.secure.reveal(key, namespace=namespace)
		except KeyError:
			log.warning("Rollback skipped: %r not found in secure storage", key)
			return False
		self.plaintext.set(key, serialize(value))
		self.secure.remove(key, namespace=namespace)
		log.warning("SECURITY WARNING: rolled back %r to plaintext storage", key)
		return True
