"""Cryptographic engine (AES-256-GCM + PBKDF2 key provisioning).

The engine holds one symmetric key for the lifetime of the process and never
writes it anywhere. When the provider reports itself unavailable the engine
degrades to a marked pass-through: ``encrypt`` hands back the plaintext with
no nonce and callers record the entry as unencrypted.
"""
from __future__ import annotations
import asyncio, base64, binascii, logging, secrets
from typing import Optional, Tuple
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from config.settings import DEFAULT_ITERATIONS, SALT_LENGTH, KEY_LENGTH, NONCE_LENGTH
from .errors import DecryptionError

log = logging.getLogger(__name__)

class CryptoProvider:
	"""Platform cryptography: key generation, random bytes, AEAD."""

	def is_available(self) -> bool:
		raise NotImplementedError

	def generate_key(self) -> bytes:
		raise NotImplementedError

	def random_bytes(self, n: int) -> bytes:
		return secrets.token_bytes(n)

	def encrypt(self, key: bytes, nonce: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> bytes:
		raise NotImplementedError

	def decrypt(self, key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None) -> bytes:
		"""Raise on authentication failure."""
		raise NotImplementedError


class AesGcmProvider(CryptoProvider):
	def __init__(self):
		self._available: Optional[bool] = None

	def is_available(self) -> bool:
		if self._available is None:
			try:
				cipher = AESGCM(AESGCM.generate_key(bit_length=KEY_LENGTH * 8))
				nonce = secrets.token_bytes(NONCE_LENGTH)
				self._available = cipher.decrypt(nonce, cipher.encrypt(nonce, b'ok', None), None) == b'ok'
			except Exception as e:
				log.warning("AES-GCM unavailable: %s", e)
				self._available = False
		return self._available

	def generate_key(self) -> bytes:
		return AESGCM.generate_key(bit_length=KEY_LENGTH * 8)

	def encrypt(self, key: bytes, nonce: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> bytes:
		return AESGCM(key).encrypt(nonce, plaintext, aad)

	def decrypt(self, key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None) -> bytes:
		return AESGCM(key).decrypt(nonce, ciphertext, aad)


class UnavailableProvider(CryptoProvider):
	"""Provider for platforms without authenticated encryption."""

	def is_available(self) -> bool:
		return False

	def generate_key(self) -> bytes:
		return b''


def generate_salt() -> bytes:
	return secrets.token_bytes(SALT_LENGTH)


def derive_key(password: str, salt: bytes, iterations: int = DEFAULT_ITERATIONS) -> bytes:
	"""Derive a KEY_LENGTH key from a passphrase with PBKDF2-HMAC-SHA256."""
	if not password:
		raise ValueError("Password empty")
	kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=KEY_LENGTH, salt=salt, iterations=iterations)
	return kdf.derive(password.encode())


class CryptoEngine:
	def __init__(self, provider: Optional[CryptoProvider] = None, key: Optional[bytes] = None):
		self.provider = provider or AesGcmProvider()
		self.available = self.provider.is_available()
		if not self.available:
			log.warning("Cryptography provider unavailable; values will be stored UNENCRYPTED")
			self._key = b''
		elif key is None:
			self._key = self.provider.generate_key()
		else:
			if len(key) != KEY_LENGTH: raise ValueError("Bad key length")
			self._key = key

	@classmethod
	def from_password(cls, password: str, salt: bytes, provider: Optional[CryptoProvider] = None) -> 'CryptoEngine':
		return cls(provider, derive_key(password, salt))

	def encrypt(self, plaintext: str, aad: Optional[bytes] = None) -> Tuple[str, Optional[str]]:
		"""Return ``(ciphertext_b64, nonce_b64)``; a fresh nonce on every call.

		``aad`` is authenticated but not encrypted. Without a provider the
		plaintext comes back unchanged with a ``None`` nonce.
		"""
		if not self.available:
			return plaintext, None
		nonce = self.provider.random_bytes(NONCE_LENGTH)
		ct = self.provider.encrypt(self._key, nonce, plaintext.encode('utf-8'), aad)
		return base64.b64encode(ct).decode('ascii'), base64.b64encode(nonce).decode('ascii')

	def _open(self, ciphertext: str, nonce: str, aad: Optional[bytes]) -> bytes:
		if not self.available:
			raise DecryptionError("Cryptography provider unavailable")
		try:
			raw_nonce = base64.b64decode(nonce, validate=True)
			raw_ct = base64.b64decode(ciphertext, validate=True)
		except (binascii.Error, TypeError, ValueError) as e:
			raise DecryptionError(f"Malformed ciphertext: {e}")
		if len(raw_nonce) != NONCE_LENGTH:
			raise DecryptionError("Bad nonce length")
		try:
			return self.provider.decrypt(self._key, raw_nonce, raw_ct, aad)
		except InvalidTag:
			raise DecryptionError("Authentication failed")
		except ValueError as e:
			raise DecryptionError(f"Decrypt failed: {e}")

	def decrypt(self, ciphertext: str, nonce: str, aad: Optional[bytes] = None) -> str:
		try:
			return self._open(ciphertext, nonce, aad).decode('utf-8')
		except UnicodeDecodeError as e:
			raise DecryptionError(f"Decrypt failed: {e}")

	def sign(self, data: bytes) -> Tuple[str, str]:
		"""GCM tag over ``data`` with nothing encrypted: ``(tag_b64, nonce_b64)``."""
		if not self.available:
			raise DecryptionError("Cryptography provider unavailable")
		nonce = self.provider.random_bytes(NONCE_LENGTH)
		tag = self.provider.encrypt(self._key, nonce, b'', data)
		return base64.b64encode(tag).decode('ascii'), base64.b64encode(nonce).decode('ascii')

	def verify(self, tag: str, nonce: str, data: bytes) -> None:
		if self._open(tag, nonce, data) != b'':
			raise DecryptionError("Authentication failed")

	async def encrypt_async(self, plaintext: str, aad: Optional[bytes] = None) -> Tuple[str, Optional[str]]:
		return await asyncio.to_thread(self.encrypt, plaintext, aad)

	async def decrypt_async(self, ciphertext: str, nonce: str, aad: Optional[bytes] = None) -> str:
		return await asyncio.to_thread(self.decrypt, ciphertext, nonce, aad)

	async def sign_async(self, data: bytes) -> Tuple[str, str]:
		return await asyncio.to_thread(self.sign, data)

	async def verify_async(self, tag: str, nonce: str, data: bytes) -> None:
		await asyncio.to_thread(self.verify, tag, nonce, data)
