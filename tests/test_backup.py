import json
import pytest
from lockbox.lib.backends import MemoryStore, JsonFileStore
from lockbox.lib.backup import BackupService
from lockbox.lib.errors import RestoreError

def test_empty_backup():
    assert BackupService(MemoryStore()).create_backup() == '{}'

def test_backup_round_trip():
    store = MemoryStore({'a': '1', 'b': '{"x": [1]}', 'c': 'ünï'})
    svc = BackupService(store)
    blob = svc.create_backup()
    store.set('a', 'changed'); store.remove('b'); store.set('d', 'new')
    assert svc.restore_backup(blob) is True
    assert store.snapshot() == {'a': '1', 'b': '{"x": [1]}', 'c': 'ünï'}

def test_restore_is_full_replace():
    store = MemoryStore({'old': 'x'})
    assert BackupService(store).restore_backup('{"new": "y"}')
    assert store.snapshot() == {'new': 'y'}

def test_values_are_verbatim():
    raw = '{"v":1,"encrypted":true,"ciphertext":"abc","nonce":"n","expires_at":null}'
    store = MemoryStore({'entry': raw})
    assert json.loads(BackupService(store).create_backup()) == {'entry': raw}

@pytest.mark.parametrize('blob', ['not json', '[1, 2]', '{"a": 1}', '{"a": null}', '', '"str"'])
def test_malformed_backup_changes_nothing(blob):
    store = MemoryStore({'keep': 'me'})
    assert BackupService(store).restore_backup(blob) is False
    assert store.snapshot() == {'keep': 'me'}

def test_restore_or_raise():
    with pytest.raises(RestoreError):
        BackupService(MemoryStore()).restore_or_raise('{')

def test_write_failure_puts_previous_contents_back():
    store = MemoryStore({'keep': 'me'}, quota=20)
    blob = json.dumps({'a': 'x' * 10, 'b': 'y' * 10})
    assert BackupService(store).restore_backup(blob) is False
    assert store.snapshot() == {'keep': 'me'}

def test_backup_files(tmp_path):
    store = JsonFileStore(tmp_path / 'plain.json')
    store.set('token', 'abc')
    svc = BackupService(store)
    path = svc.write_backup_file(tmp_path / 'backups')
    assert path.exists() and path.name.endswith('.backup')
    store.set('token', 'changed')
    assert svc.restore_backup_file(path)
    assert JsonFileStore(tmp_path / 'plain.json').get('token') == 'abc'
    assert svc.restore_backup_file(tmp_path / 'missing.backup') is False
