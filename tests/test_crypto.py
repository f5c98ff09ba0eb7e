import base64
import pytest
from lockbox.lib.crypto import CryptoEngine, UnavailableProvider, derive_key, generate_salt
from lockbox.lib.errors import DecryptionError

def test_derive_key_consistency():
    salt = generate_salt()
    k1 = derive_key('secret', salt)
    k2 = derive_key('secret', salt)
    assert k1 == k2 and len(k1) == 32
    assert derive_key('secret', generate_salt()) != k1

def test_derive_key_empty_password():
    with pytest.raises(ValueError):
        derive_key('', generate_salt())

@pytest.mark.parametrize('payload', ['', 'a', 'hello world', 'x' * 4096, 'ünïcödé ✓'])
def test_encrypt_decrypt_various_sizes(payload):
    c = CryptoEngine()
    ct, nonce = c.encrypt(payload)
    assert nonce is not None
    assert c.decrypt(ct, nonce) == payload

def test_fresh_nonce_per_encryption():
    c = CryptoEngine()
    ct1, n1 = c.encrypt('same')
    ct2, n2 = c.encrypt('same')
    assert n1 != n2 and ct1 != ct2

def test_decrypt_wrong_key():
    a, b = CryptoEngine(), CryptoEngine()
    ct, nonce = a.encrypt('data')
    with pytest.raises(DecryptionError):
        b.decrypt(ct, nonce)

def test_decrypt_corrupted():
    c = CryptoEngine()
    ct, nonce = c.encrypt('data')
    raw = bytearray(base64.b64decode(ct))
    raw[0] ^= 0x01
    with pytest.raises(DecryptionError):
        c.decrypt(base64.b64encode(bytes(raw)).decode(), nonce)

def test_decrypt_malformed_input():
    c = CryptoEngine()
    ct, nonce = c.encrypt('data')
    with pytest.raises(DecryptionError):
        c.decrypt('%%% not base64 %%%', nonce)
    with pytest.raises(DecryptionError):
        c.decrypt(ct, base64.b64encode(b'short').decode())

def test_password_engine_is_reproducible():
    salt = generate_salt()
    ct, nonce = CryptoEngine.from_password('pw', salt).encrypt('data')
    assert CryptoEngine.from_password('pw', salt).decrypt(ct, nonce) == 'data'

def test_bad_key_length():
    with pytest.raises(ValueError):
        CryptoEngine(key=b'short')

def test_unavailable_provider_passes_through():
    c = CryptoEngine(UnavailableProvider())
    assert c.available is False
    assert c.encrypt('plain') == ('plain', None)
    with pytest.raises(DecryptionError):
        c.decrypt('plain', 'nonce')

@pytest.mark.asyncio
async def test_async_round_trip():
    c = CryptoEngine()
    ct, nonce = await c.encrypt_async('async data')
    assert await c.decrypt_async(ct, nonce) == 'async data'

def test_associated_data_must_match():
    c = CryptoEngine()
    ct, nonce = c.encrypt('data', b'key-a')
    assert c.decrypt(ct, nonce, b'key-a') == 'data'
    with pytest.raises(DecryptionError):
        c.decrypt(ct, nonce, b'key-b')
    with pytest.raises(DecryptionError):
        c.decrypt(ct, nonce)

def test_sign_and_verify():
    c = CryptoEngine()
    tag, nonce = c.sign(b'envelope')
    c.verify(tag, nonce, b'envelope')
    with pytest.raises(DecryptionError):
        c.verify(tag, nonce, b'envelopf')
    with pytest.raises(DecryptionError):
        CryptoEngine().verify(tag, nonce, b'envelope')

def test_sign_requires_provider():
    with pytest.raises(DecryptionError):
        CryptoEngine(UnavailableProvider()).sign(b'data')
