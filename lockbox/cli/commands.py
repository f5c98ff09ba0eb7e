"""CLI commands implemented with click.

The plaintext store and the secure store are JSON files (paths from
LOCKBOX_STORE_PATH / LOCKBOX_SECURE_PATH). The encryption key is derived
from a prompted passphrase; its salt and a verification token live next to
the secure store in ``<secure path>.salt``. ``--no-crypto`` skips the
passphrase and stores values unencrypted.
"""
from __future__ import annotations
import asyncio, json, os, click
from pathlib import Path
from config.settings import DEFAULT_STORE_PATH, DEFAULT_SECURE_PATH, DEFAULT_BACKUP_DIR, SALT_LENGTH, SALT_SUFFIX
from lockbox.lib.backends import JsonFileStore
from lockbox.lib.backup import BackupService
from lockbox.lib.crypto import CryptoEngine, UnavailableProvider, generate_salt
from lockbox.lib.errors import DecryptionError, LockboxError
from lockbox.lib.log import configure_logging
from lockbox.lib.migration import MigrationEngine, MigrationOptions
from lockbox.lib.recommendations import get_migration_recommendations
from lockbox.lib.secure_store import SecureStore

VERIFICATION_TEXT = 'LOCKBOX_KEY_VERIFICATION'

def _plain_path() -> Path:
	return Path(os.environ.get('LOCKBOX_STORE_PATH') or DEFAULT_STORE_PATH)

def _secure_path() -> Path:
	return Path(os.environ.get('LOCKBOX_SECURE_PATH') or DEFAULT_SECURE_PATH)

def _crypto_disabled() -> bool:
	ctx = click.get_current_context(silent=True)
	return bool(ctx and (ctx.find_root().obj or {}).get('no_crypto'))

def _derive(password: str, salt: bytes) -> CryptoEngine:
	try:
		crypto = CryptoEngine.from_password(password, salt)
	except ValueError as e:
		raise click.ClickException(str(e))
	if not crypto.available:
		raise click.ClickException('Cryptography provider unavailable; rerun with --no-crypto to store values unencrypted')
	return crypto

def _open_crypto(password: str) -> CryptoEngine:
	"""Derive the key, creating the salt file on first use."""
	if _crypto_disabled():
		return CryptoEngine(UnavailableProvider())
	keyfile = _secure_path().with_name(_secure_path().name + SALT_SUFFIX)
	if keyfile.exists():
		try:
			meta = json.loads(keyfile.read_text())
			salt = bytes.fromhex(meta['salt'])
			token, nonce = meta['verification'], meta['nonce']
		except (ValueError, KeyError, TypeError) as e:
			raise click.ClickException(f'Corrupt key file {keyfile}: {e}')
		if len(salt) != SALT_LENGTH:
			raise click.ClickException(f'Corrupt key file {keyfile}: bad salt length')
		crypto = _derive(password, salt)
		try:
			ok = crypto.decrypt(token, nonce) == VERIFICATION_TEXT
		except DecryptionError:
			ok = False
		if not ok:
			raise click.ClickException('Invalid password')
		return crypto
	salt = generate_salt()
	crypto = _derive(password, salt)
	token, nonce = crypto.encrypt(VERIFICATION_TEXT)
	keyfile.parent.mkdir(parents=True, exist_ok=True)
	keyfile.write_text(json.dumps({'salt': salt.hex(), 'verification': token, 'nonce': nonce}))
	return crypto

def _secure(crypto: CryptoEngine | None = None) -> SecureStore:
	return SecureStore(JsonFileStore(_secure_path()), crypto or CryptoEngine())

def _engine(password: str) -> MigrationEngine:
	return MigrationEngine(JsonFileStore(_plain_path()), _secure(_open_crypto(password)))

@click.group()
@click.option('--log-level', default=None, help='DEBUG, INFO, WARNING or ERROR.')
@click.option('--no-crypto', is_flag=True, help='Run without a cryptography provider; values are stored unencrypted.')
@click.pass_context
def cli(ctx, log_level, no_crypto):
	"""lockbox: migrate plaintext key-value data into encrypted storage."""
	configure_logging(log_level)
	ctx.obj = {'no_crypto': no_crypto}

@cli.command('keys')
def list_keys():
	"""List plaintext keys and secure keys per namespace."""
	try:
		plain = JsonFileStore(_plain_path())
		secure = _secure()
	except LockboxError as e:
		raise click.ClickException(str(e))
	click.echo('plaintext:')
	for k in plain.keys():
		click.echo(f'  {k}')
	click.echo('secure:')
	for ns in secure.namespaces():
		for k in secure.keys(namespace=ns):
			click.echo(f'  {ns + "/" if ns else ""}{k}')

@cli.command()
def recommend():
	"""Show which plaintext keys should be migrated, most sensitive first."""
	recs = get_migration_recommendations(JsonFileStore(_plain_path()))
	if not recs:
		click.echo('No recommendations.')
		return
	for r in recs:
		enc = 'encrypt' if r.options.encrypt else 'plain'
		click.echo(f"[{r.priority}] {r.key} ({enc}) - {r.reason}")

@cli.command()
@click.argument('keys', nargs=-1)
@click.option('--password', prompt=True, hide_input=True)
@click.option('--prefix', default=None, help='Migrate every key starting with this prefix.')
@click.option('--plan', is_flag=True, help='Migrate according to the recommendations.')
@click.option('--no-encrypt', is_flag=True)
@click.option('--keep-plaintext', is_flag=True, help='Do not remove plaintext after migrating.')
@click.option('--expires-in', type=float, default=None, help='Expiry in seconds.')
@click.option('--namespace', default=None)
@click.option('--concurrency', type=int, default=1)
def migrate(keys, password, prefix, plan, no_encrypt, keep_plaintext, expires_in, namespace, concurrency):
	"""Migrate KEYS (or --prefix / --plan) into the secure store."""
	engine = _engine(password)
	opts = MigrationOptions(encrypt=not no_encrypt, clear_plaintext=not keep_plaintext,
		expires_in=expires_in, namespace=namespace)
	if plan:
		recs = get_migration_recommendations(engine.plaintext)
		summary = asyncio.run(engine.migrate_plan(recs, concurrency=concurrency))
	elif prefix is not None:
		summary = asyncio.run(engine.migrate_all_keys(prefix, opts, concurrency=concurrency))
	elif keys:
		summary = asyncio.run(engine.migrate_to_secure_storage(keys, opts, concurrency=concurrency))
	else:
		raise click.UsageError('Give KEYS, --prefix or --plan.')
	for r in summary.results:
		status = 'ok' if r.success else 'FAILED'
		extra = f' ({r.error})' if r.error else ''
		kept = ' [plaintext preserved]' if r.preserved else ''
		click.echo(f'{status}: {r.key}{extra}{kept}')
	click.echo(f'{summary.succeeded}/{summary.total} migrated, {summary.failed} failed.')
	if not summary.success:
		raise SystemExit(1)

@cli.command()
@click.argument('key')
@click.option('--password', prompt=True, hide_input=True)
@click.option('--namespace', default=None)
def rollback(key, password, namespace):
	"""Move KEY back from the secure store to plaintext."""
	engine = _engine(password)
	try:
		done = asyncio.run(engine.rollback_migration(key, namespace))
	except LockboxError as e:
		raise click.ClickException(f'Rollback failed: {e}')
	click.echo(f'Rolled back {key}.' if done else f'Not migrated: {key}')

@cli.command()
@click.argument('key')
@click.option('--password', prompt=True, hide_input=True)
@click.option('--namespace', default=None)
def get(key, password, namespace):
	"""Print the decrypted value of KEY."""
	value = asyncio.run(_secure(_open_crypto(password)).get(key, namespace=namespace))
	if value is None:
		click.echo('Not found')
		return
	click.echo(value if isinstance(value, str) else json.dumps(value, indent=2))

@cli.command()
def cleanup():
	"""Remove expired secure entries."""
	removed = asyncio.run(_secure().cleanup_expired())
	click.echo(f'Removed {removed} expired entries.')

@cli.command()
@click.option('--dest', type=click.Path(file_okay=False, path_type=Path), default=None,
	help='Directory for the backup file.')
def backup(dest):
	"""Back up the plaintext store."""
	target = BackupService(JsonFileStore(_plain_path())).write_backup_file(dest or DEFAULT_BACKUP_DIR)
	click.echo(f'Backup written: {target}')

@cli.command()
@click.argument('backup_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def restore(backup_file):
	"""Replace the plaintext store with BACKUP_FILE."""
	if BackupService(JsonFileStore(_plain_path())).restore_backup_file(backup_file):
		click.echo('Restored.')
	else:
		raise click.ClickException('Backup is malformed; nothing was changed.')
