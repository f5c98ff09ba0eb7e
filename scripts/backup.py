"""Simple backup utility script.

Usage (from repo root):
  python -m scripts.backup --dest backups/
"""
from __future__ import annotations
import os
from pathlib import Path
import click
from config import settings
from lockbox.lib.backends import JsonFileStore
from lockbox.lib.backup import BackupService

@click.command()
@click.option('--dest', type=click.Path(file_okay=False, path_type=Path), default=settings.DEFAULT_BACKUP_DIR, help='Destination directory for backups.')
def main(dest: Path):
	store_path = Path(os.environ.get('LOCKBOX_STORE_PATH') or settings.DEFAULT_STORE_PATH)
	if not store_path.exists():
		click.echo(f"No store at {store_path}; nothing to backup.")
		raise SystemExit(1)
	target = BackupService(JsonFileStore(store_path)).write_backup_file(dest)
	click.echo(f"Backup written: {target}")

if __name__ == '__main__':  # pragma: no cover
	main()
