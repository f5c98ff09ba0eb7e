"""Snapshot and restore a plaintext backing store.

A backup is one JSON object mapping every key to its raw stored string.
Restore is all-or-nothing: the blob is validated before anything is touched,
and a write failure part-way through puts the previous contents back.
"""
from __future__ import annotations
import json, logging, os
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional
from config.settings import BACKUP_SUFFIX, DEFAULT_BACKUP_DIR
from .backends import KeyValueStore
from .errors import RestoreError, StorageWriteError

log = logging.getLogger(__name__)

def parse_backup(blob: str) -> Dict[str, str]:
	try:
		data = json.loads(blob)
	except (TypeError, ValueError) as e:
		raise RestoreError(f"Backup is not valid JSON: {e}")
	if not isinstance(data, dict):
		raise RestoreError("Backup must be a JSON object")
	for k, v in data.items():
		if not isinstance(v, str):
			raise RestoreError(f"Backup value for {k!r} is not a string")
	return data


class BackupService:
	def __init__(self, store: KeyValueStore):
		self.store = store

	def create_backup(self) -> str:
		snapshot = {k: v for k, v in self.store.items()}
		return json.dumps(snapshot, sort_keys=True, ensure_ascii=False)

	def _replace(self, data: Dict[str, str]) -> None:
		self.store.clear()
		for k, v in data.items():
			self.store.set(k, v)

	def restore_or_raise(self, blob: str) -> None:
		data = parse_backup(blob)
		previous = dict(self.store.items())
		try:
			self._replace(data)
		except StorageWriteError as e:
			log.error("Restore failed part-way, putting previous contents back: %s", e)
			self._replace(previous)
			raise RestoreError(f"Restore failed: {e}")
		log.info("Restored %d keys from backup", len(data))

	def restore_backup(self, blob: str) -> bool:
		try:
			self.restore_or_raise(blob)
		except RestoreError as e:
			log.error("Backup restore failed: %s", e)
			return False
		return True

	def write_backup_file(self, dest_dir: Optional[Path] = None) -> Path:
		"""Write a timestamped backup file and return its path."""
		dest_dir = Path(dest_dir or DEFAULT_BACKUP_DIR)
		dest_dir.mkdir(parents=True, exist_ok=True)
		stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
		target = dest_dir / f"store_{stamp}{BACKUP_SUFFIX}"
		tmp = target.with_suffix(target.suffix + '.tmp')
		tmp.write_text(self.create_backup(), encoding='utf-8')
		os.replace(tmp, target)
		log.info("Backup written: %s", target)
		return target

	def restore_backup_file(self, path: Path) -> bool:
		path = Path(path)
		if not path.exists():
			log.error("Backup file does not exist: %s", path)
			return False
		return self.restore_backup(path.read_text(encoding='utf-8'))
