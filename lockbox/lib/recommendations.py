"""Classify plaintext keys by sensitivity and propose migration options.

Classification looks at key names only, never values.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Final, List, Tuple
from config.settings import CRITICAL_EXPIRES_IN
from .backends import KeyValueStore
from .migration import MigrationOptions

CRITICAL: Final = 'critical'
IMPORTANT: Final = 'important'
LOW: Final = 'low'

_PRIORITY_ORDER = {CRITICAL: 0, IMPORTANT: 1, LOW: 2}

_CRITICAL_MARKERS: Final[Tuple[str, ...]] = (
	'token', 'password', 'passwd', 'apikey', 'api_key', 'secret', 'credential', 'private_key'
)
_IMPORTANT_MARKERS: Final[Tuple[str, ...]] = ('user', 'profile', 'account', 'financial', 'budget', 'transaction')
_LOW_MARKERS: Final[Tuple[str, ...]] = ('theme', 'preference', 'setting', 'ui-', 'cache')


@dataclass
class Recommendation:
	key: str
	priority: str
	reason: str
	options: MigrationOptions = field(default_factory=MigrationOptions)


def _matches(key: str, markers: Tuple[str, ...]) -> bool:
	lowered = key.lower()
	return any(m in lowered for m in markers)


def classify(key: str) -> Recommendation | None:
	if _matches(key, _CRITICAL_MARKERS):
		return Recommendation(key, CRITICAL, 'Contains authentication or sensitive credentials',
			MigrationOptions(encrypt=True, expires_in=CRITICAL_EXPIRES_IN, clear_plaintext=True))
	if _matches(key, _IMPORTANT_MARKERS):
		return Recommendation(key, IMPORTANT, 'Contains user data or financial information',
			MigrationOptions(encrypt=True, clear_plaintext=True))
	if _matches(key, _LOW_MARKERS):
		return Recommendation(key, LOW, 'UI preferences or non-sensitive data',
			MigrationOptions(encrypt=False, clear_plaintext=True))
	return None


def get_migration_recommendations(store: KeyValueStore) -> List[Recommendation]:
	"""Recommendations for every classifiable key, critical first."""
	found = [r for r in (classify(k) for k in store.keys()) if r is not None]
	return sorted(found, key=lambda r: _PRIORITY_ORDER[r.priority])


class RecommendationEngine:
	def __init__(self, store: KeyValueStore):
		self.store = store

	def get_migration_recommendations(self) -> List[Recommendation]:
		return get_migration_recommendations(self.store)
