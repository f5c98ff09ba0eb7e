"""Encrypted, namespaced, expiring key-value store.

Each entry lives in the backing store under ``quote(namespace) + ":" + key``.
Quoting the namespace with no safe characters keeps the separator out of it,
so two distinct namespaces can never produce the same physical key. The
stored value is a small JSON envelope::

	{"v": 1, "encrypted": true, "ciphertext": "...", "nonce": "...", "expires_at": 1700000000.0, "tag": null}

The physical key, ``v``, ``encrypted`` and ``expires_at`` are authenticated
alongside the value (AES-GCM associated data), so an envelope cannot be
moved to another key or have its expiry rewritten. Unencrypted entries carry
a GCM ``tag`` over the same fields plus the payload whenever a provider is
available.

Expiry is checked lazily on read and by :meth:`SecureStore.cleanup_expired`;
there is no background sweeper.
"""
from __future__ import annotations
import json, logging, time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import quote, unquote
from config.settings import ENTRY_VERSION, NAMESPACE_SEPARATOR
from .backends import KeyValueStore
from .crypto import CryptoEngine
from .errors import DecryptionError
from .serialization import dumps_payload, loads_payload

log = logging.getLogger(__name__)

def storage_key(key: str, namespace: str = '') -> str:
	return quote(namespace, safe='') + NAMESPACE_SEPARATOR + key

def split_storage_key(physical: str) -> Optional[Tuple[str, str]]:
	ns, sep, key = physical.partition(NAMESPACE_SEPARATOR)
	if not sep:
		return None
	return unquote(ns), key


@dataclass
class StoredEntry:
	key: str
	ciphertext: str
	nonce: Optional[str]
	expires_at: Optional[float] = None
	namespace: str = ''
	encrypted: bool = True
	version: int = ENTRY_VERSION
	tag: Optional[str] = None

	def is_expired(self, now: float) -> bool:
		return self.expires_at is not None and now > self.expires_at

	def to_json(self) -> str:
		return json.dumps({
			"v": self.version, "encrypted": self.encrypted, "ciphertext": self.ciphertext,
			"nonce": self.nonce, "expires_at": self.expires_at, "tag": self.tag
		}, separators=(',', ':'))

	@classmethod
	def from_json(cls, key: str, namespace: str, text: str) -> 'StoredEntry':
		"""Parse an envelope; raise ValueError if it is not one."""
		data = json.loads(text)
		if not isinstance(data, dict) or not isinstance(data.get('ciphertext'), str):
			raise ValueError("Not a secure store envelope")
		expires_at = data.get('expires_at')
		if expires_at is not None and not isinstance(expires_at, (int, float)):
			raise ValueError("Bad expires_at")
		encrypted = bool(data.get('encrypted'))
		nonce = data.get('nonce')
		if encrypted and not isinstance(nonce, str):
			raise ValueError("Encrypted entry without nonce")
		tag = data.get('tag')
		if tag is not None and not isinstance(tag, str):
			raise ValueError("Bad tag")
		return cls(key, data['ciphertext'], nonce, expires_at, namespace, encrypted,
			data.get('v', ENTRY_VERSION), tag)

	def associated_data(self) -> bytes:
		"""Envelope fields bound to the ciphertext: physical key, version, flag, expiry."""
		return json.dumps({
			"k": storage_key(self.key, self.namespace), "v": self.version,
			"encrypted": self.encrypted, "expires_at": self.expires_at
		}, sort_keys=True, separators=(',', ':')).encode('utf-8')


class SecureStore:
	"""Façade over a backing store that encrypts values and tracks expiry.

	``namespace`` is the default namespace for every operation; the root store
	uses ``''``. Views returned by :meth:`namespace` share the backing store,
	the crypto engine and the clock.
	"""

	def __init__(self, backing: KeyValueStore, crypto: Optional[CryptoEngine] = None, *,
			namespace: str = '', clock: Callable[[], float] = time.time):
		self.backing = backing
		self.crypto = crypto or CryptoEngine()
		self.default_namespace = namespace
		self.clock = clock

	@property
	def encryption_available(self) -> bool:
		return self.crypto.available

	def _ns(self, namespace: Optional[str]) -> str:
		return self.default_namespace if namespace is None else namespace

	# --- writes ---
	async def set(self, key: str, value: Any, *, encrypt: bool = True,
			expires_in: Optional[float] = None, namespace: Optional[str] = None) -> StoredEntry:
		"""Serialize, encrypt and store ``value``.

		Raises SerializationError for values JSON cannot represent and
		StorageWriteError when the backing store rejects the write.
		"""
		if expires_in is not None and expires_in <= 0:
			raise ValueError("expires_in must be positive")
		ns = self._ns(namespace)
		payload = dumps_payload(value)
		expires_at = self.clock() + expires_in if expires_in is not None else None
		encrypted = encrypt and self.crypto.available
		if encrypt and not encrypted:
			log.warning("Storing %r unencrypted: no cryptography provider", key)
		entry = StoredEntry(key, payload, None, expires_at, ns, encrypted)
		if encrypted:
			entry.ciphertext, entry.nonce = await self.crypto.encrypt_async(payload, entry.associated_data())
		elif self.crypto.available:
			entry.tag, entry.nonce = await self.crypto.sign_async(entry.associated_data() + payload.encode('utf-8'))
		self.backing.set(storage_key(key, ns), entry.to_json())
		log.debug("Stored %s (encrypted=%s, expires_in=%s)", storage_key(key, ns), encrypted, expires_in)
		return entry

	def remove(self, key: str, *, namespace: Optional[str] = None) -> None:
		self.backing.remove(storage_key(key, self._ns(namespace)))

	def clear(self, *, namespace: Optional[str] = None) -> None:
		"""Clear one namespace, or everything when called on the root store
		without a namespace."""
		if namespace is None and not isinstance(self, ScopedStore):
			self.backing.clear()
			log.debug("Cleared all secure entries")
			return
		ns = self._ns(namespace)
		for key in self._physical_keys(ns):
			self.backing.remove(storage_key(key, ns))
		log.debug("Cleared namespace %r", ns)

	# --- reads ---
	def raw(self, key: str, *, namespace: Optional[str] = None) -> Optional[str]:
		return self.backing.get(storage_key(key, self._ns(namespace)))

	def restore_raw(self, key: str, raw: Optional[str], *, namespace: Optional[str] = None) -> None:
		"""Put back a value captured with :meth:`raw` (``None`` removes)."""
		physical = storage_key(key, self._ns(namespace))
		if raw is None:
			self.backing.remove(physical)
		else:
			self.backing.set(physical, raw)

	def _parse(self, physical: str, key: str, ns: str) -> Optional[StoredEntry]:
		text = self.backing.get(physical)
		if text is None:
			return None
		try:
			return StoredEntry.from_json(key, ns, text)
		except ValueError:
			log.warning("Ignoring malformed secure entry %s", physical)
			return None

	def load_entry(self, key: str, *, namespace: Optional[str] = None) -> Optional[StoredEntry]:
		"""Return the live (non-expired) entry without decrypting it."""
		ns = self._ns(namespace)
		physical = storage_key(key, ns)
		entry = self._parse(physical, key, ns)
		if entry is None:
			log.debug("No entry for %s", physical)
			return None
		if entry.is_expired(self.clock()):
			log.debug("Entry %s expired, removing", physical)
			self.backing.remove(physical)
			return None
		return entry

	async def open_entry(self, entry: StoredEntry) -> Any:
		"""Decrypt and decode an entry; raise DecryptionError on any failure.

		With a working provider every entry must authenticate, including
		unencrypted ones, so a flipped ``encrypted`` flag or an edited expiry
		is reported as tampering.
		"""
		if entry.encrypted:
			payload = await self.crypto.decrypt_async(entry.ciphertext, entry.nonce, entry.associated_data())
		else:
			payload = entry.ciphertext
			if self.crypto.available:
				if not isinstance(entry.tag, str) or not isinstance(entry.nonce, str):
					raise DecryptionError("Unauthenticated plaintext entry")
				try:
					signed = entry.associated_data() + payload.encode('utf-8')
				except UnicodeEncodeError as e:
					raise DecryptionError(f"Corrupt payload: {e}")
				await self.crypto.verify_async(entry.tag, entry.nonce, signed)
		try:
			return loads_payload(payload)
		except ValueError as e:
			raise DecryptionError(f"Corrupt payload: {e}")

	async def reveal(self, key: str, *, namespace: Optional[str] = None) -> Any:
		"""Like :meth:`get` but loud: KeyError when there is no live entry,
		DecryptionError when it does not authenticate."""
		entry = self.load_entry(key, namespace=namespace)
		if entry is None:
			raise KeyError(key)
		return await self.open_entry(entry)

	async def get(self, key: str, *, namespace: Optional[str] = None, default: Any = None) -> Any:
		entry = self.load_entry(key, namespace=namespace)
		if entry is None:
			return default
		try:
			return await self.open_entry(entry)
		except DecryptionError as e:
			log.warning("Treating %s as absent: %s", storage_key(key, entry.namespace), e)
			return default

	async def has(self, key: str, *, namespace: Optional[str] = None) -> bool:
		entry = self.load_entry(key, namespace=namespace)
		if entry is None:
			return False
		try:
			await self.open_entry(entry)
		except DecryptionError:
			return False
		return True

	def _physical_keys(self, ns: str) -> List[str]:
		found = []
		for physical in self.backing.keys():
			split = split_storage_key(physical)
			if split is not None and split[0] == ns:
				found.append(split[1])
		return found

	def keys(self, *, namespace: Optional[str] = None) -> List[str]:
		"""Keys with a live entry in the namespace."""
		ns = self._ns(namespace)
		now = self.clock()
		live = []
		for key in self._physical_keys(ns):
			entry = self._parse(storage_key(key, ns), key, ns)
			if entry is not None and not entry.is_expired(now):
				live.append(key)
		return live

	def namespaces(self) -> List[str]:
		seen: List[str] = []
		for physical in self.backing.keys():
			split = split_storage_key(physical)
			if split is not None and split[0] not in seen:
				seen.append(split[0])
		return seen

	def namespace(self, name: str) -> 'ScopedStore':
		return ScopedStore(self.backing, self.crypto, namespace=name, clock=self.clock)

	async def cleanup_expired(self) -> int:
		"""Remove every expired entry in every namespace; return the count."""
		now = self.clock()
		cleaned = 0
		for physical in self.backing.keys():
			split = split_storage_key(physical)
			if split is None:
				continue
			entry = self._parse(physical, split[1], split[0])
			if entry is not None and entry.is_expired(now):
				self.backing.remove(physical)
				cleaned += 1
		if cleaned:
			log.info("Cleaned up %d expired entries", cleaned)
		return cleaned


class ScopedStore(SecureStore):
	"""A SecureStore view bound to one namespace."""

	@property
	def name(self) -> str:
		return self.default_namespace
