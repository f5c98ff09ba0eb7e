"""Serialization helpers.

Plaintext values found in a backing store may or may not be JSON. ``parse``
returns a tagged :class:`Decoded` so callers branch on ``ok`` instead of
catching decode errors; ``deserialize`` never raises and falls back to the raw
text.
"""
from __future__ import annotations
import json
from dataclasses import dataclass
from typing import Any, Optional
from .errors import SerializationError

_STRUCTURED_PREFIXES = ('{', '[', '"')

@dataclass(frozen=True)
class Decoded:
	ok: bool
	value: Any = None
	raw: Optional[str] = None

	def unwrap(self) -> Any:
		return self.value if self.ok else self.raw


def _reject_constant(name: str) -> Any:
	raise ValueError(f"Non-finite number {name}")


def dumps_payload(value: Any) -> str:
	try:
		text = json.dumps(value, separators=(',', ':'), ensure_ascii=False, allow_nan=False)
		text.encode('utf-8')
	except (TypeError, ValueError) as e:
		raise SerializationError(f"Value is not serializable: {e}")
	return text


def loads_payload(text: str) -> Any:
	return json.loads(text, parse_constant=_reject_constant)


def serialize(value: Any) -> str:
	"""Unstructured strings pass through verbatim; everything else becomes JSON.

	A string that would itself parse as JSON is encoded so ``deserialize``
	gives the same string back.
	"""
	if isinstance(value, str) and not parse(value).ok:
		return value
	return dumps_payload(value)


def parse(text: str) -> Decoded:
	if not isinstance(text, str):
		return Decoded(ok=False, raw=text)
	if not text.lstrip().startswith(_STRUCTURED_PREFIXES):
		return Decoded(ok=False, raw=text)
	try:
		return Decoded(ok=True, value=loads_payload(text))
	except ValueError:
		return Decoded(ok=False, raw=text)


def deserialize(text: str) -> Any:
	return parse(text).unwrap()
