"""Backing key-value stores.

The storage core only needs string keys and string values with
get/set/remove plus index-based enumeration, the shape of a browser-style
local storage area. Two substrates are provided: an in-memory map (tests,
ephemeral use) and a JSON file map written atomically.
"""
from __future__ import annotations
import json, os, logging, threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple
from .errors import StorageError, StorageWriteError

log = logging.getLogger(__name__)

class KeyValueStore(ABC):
	"""Synchronous string -> string store."""

	@abstractmethod
	def get(self, key: str) -> Optional[str]: ...

	@abstractmethod
	def set(self, key: str, value: str) -> None:
		"""Store ``value`` under ``key``; raise StorageWriteError if rejected."""

	@abstractmethod
	def remove(self, key: str) -> None: ...

	@property
	@abstractmethod
	def length(self) -> int: ...

	@abstractmethod
	def key(self, index: int) -> Optional[str]: ...

	def keys(self) -> List[str]:
		found = []
		for i in range(self.length):
			k = self.key(i)
			if k is not None:
				found.append(k)
		return found

	def items(self) -> Iterator[Tuple[str, str]]:
		for k in self.keys():
			v = self.get(k)
			if v is not None:
				yield k, v

	def clear(self) -> None:
		for k in self.keys():
			self.remove(k)

	def __contains__(self, key: str) -> bool:
		return self.get(key) is not None

	def __len__(self) -> int:
		return self.length


def _footprint(data: Dict[str, str]) -> int:
	return sum(len(k) + len(v) for k, v in data.items())


class MemoryStore(KeyValueStore):
	"""Dict-backed store with an optional capacity limit (in characters)."""

	def __init__(self, initial: Optional[Dict[str, str]] = None, quota: Optional[int] = None):
		self._data: Dict[str, str] = dict(initial or {})
		self.quota = quota

	def get(self, key: str) -> Optional[str]:
		return self._data.get(key)

	def set(self, key: str, value: str) -> None:
		if not isinstance(value, str):
			raise StorageWriteError(f"Value for {key!r} must be a string")
		if self.quota is not None:
			replaced = len(key) + len(self._data[key]) if key in self._data else 0
			if _footprint(self._data) - replaced + len(key) + len(value) > self.quota:
				raise StorageWriteError(f"Quota exceeded writing {key!r}")
		self._data[key] = value

	def remove(self, key: str) -> None:
		self._data.pop(key, None)

	@property
	def length(self) -> int:
		return len(self._data)

	def key(self, index: int) -> Optional[str]:
		if 0 <= index < len(self._data):
			return list(self._data)[index]
		return None

	def keys(self) -> List[str]:
		return list(self._data)

	def clear(self) -> None:
		self._data.clear()

	def snapshot(self) -> Dict[str, str]:
		return dict(self._data)


class JsonFileStore(KeyValueStore):
	"""File-backed map persisted as one JSON object.

	Every mutation rewrites the file through a ``.tmp`` sibling and
	``os.replace`` so readers never observe a half-written file.
	"""

	def __init__(self, path: Path | str):
		self.path = Path(path)
		self._lock = threading.Lock()
		self._data: Dict[str, str] = self._read()

	def _read(self) -> Dict[str, str]:
		if not self.path.exists() or self.path.stat().st_size == 0:
			return {}
		try:
			data = json.loads(self.path.read_text(encoding='utf-8'))
		except (OSError, ValueError) as e:
			raise StorageError(f"Cannot read store {self.path}: {e}")
		if not isinstance(data, dict) or not all(isinstance(k, str) and isinstance(v, str) for k, v in data.items()):
			raise StorageError(f"Store {self.path} is not a string map")
		return data

	def _write(self, data: Dict[str, str]) -> None:
		tmp = self.path.with_suffix(self.path.suffix + '.tmp')
		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			tmp.write_text(json.dumps(data, indent=1), encoding='utf-8')
			os.replace(tmp, self.path)
		except OSError as e:
			tmp.unlink(missing_ok=True)
			raise StorageWriteError(f"Failed to write {self.path}: {e}")

	def get(self, key: str) -> Optional[str]:
		return self._data.get(key)

	def set(self, key: str, value: str) -> None:
		if not isinstance(value, str):
			raise StorageWriteError(f"Value for {key!r} must be a string")
		with self._lock:
			updated = dict(self._data); updated[key] = value
			self._write(updated)
			self._data = updated

	def remove(self, key: str) -> None:
		with self._lock:
			if key not in self._data:
				return
			updated = dict(self._data); del updated[key]
			self._write(updated)
			self._data = updated

	@property
	def length(self) -> int:
		return len(self._data)

	def key(self, index: int) -> Optional[str]:
		keys = list(self._data)
		return keys[index] if 0 <= index < len(keys) else None

	def keys(self) -> List[str]:
		return list(self._data)

	def clear(self) -> None:
		with self._lock:
			self._write({})
			self._data = {}
		log.debug("Cleared store %s", self.path)

	def reload(self) -> None:
		with self._lock:
			self._data = self._read()
