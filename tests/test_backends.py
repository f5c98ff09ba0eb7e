import json
import pytest
from lockbox.lib.backends import MemoryStore, JsonFileStore
from lockbox.lib.errors import StorageError, StorageWriteError

def test_memory_store_basics():
    s = MemoryStore()
    assert s.get('a') is None
    s.set('a', '1'); s.set('b', '2')
    assert s.get('a') == '1'
    assert s.length == 2 and len(s) == 2
    assert s.key(0) == 'a' and s.key(1) == 'b' and s.key(2) is None
    assert s.keys() == ['a', 'b']
    assert dict(s.items()) == {'a': '1', 'b': '2'}
    s.remove('a'); s.remove('missing')
    assert 'a' not in s and 'b' in s
    s.clear()
    assert s.length == 0

def test_memory_store_quota():
    s = MemoryStore(quota=10)
    s.set('k', '12345')
    s.set('k', '123456789')  # replacing stays within quota
    with pytest.raises(StorageWriteError):
        s.set('other', 'x')
    assert s.snapshot() == {'k': '123456789'}

def test_rejects_non_string_values(tmp_path):
    with pytest.raises(StorageWriteError):
        MemoryStore().set('k', 1)
    with pytest.raises(StorageWriteError):
        JsonFileStore(tmp_path / 's.json').set('k', None)

def test_json_file_store_persists(tmp_path):
    path = tmp_path / 'data' / 'plain.json'
    s = JsonFileStore(path)
    assert s.length == 0
    s.set('token', 'abc'); s.set('theme', 'dark')
    s.remove('theme')
    again = JsonFileStore(path)
    assert again.keys() == ['token']
    assert again.get('token') == 'abc'
    assert json.loads(path.read_text()) == {'token': 'abc'}
    assert not list(path.parent.glob('*.tmp'))

def test_json_file_store_clear_and_reload(tmp_path):
    path = tmp_path / 'plain.json'
    s = JsonFileStore(path)
    s.set('a', '1')
    s.clear()
    assert JsonFileStore(path).length == 0
    path.write_text(json.dumps({'x': 'y'}))
    s.reload()
    assert s.get('x') == 'y'

@pytest.mark.parametrize('content', ['not json', '[1, 2]', '{"a": 1}'])
def test_json_file_store_rejects_corrupt_file(tmp_path, content):
    path = tmp_path / 'plain.json'
    path.write_text(content)
    with pytest.raises(StorageError):
        JsonFileStore(path)
