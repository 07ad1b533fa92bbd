import hashlib
import unittest

import nacl.signing

from approtator.keys import KeyManager, generate_private_keys, is_hex, resolve_address
from fakes import make_key


class TestKeyManager(unittest.TestCase):
    def test_address_is_truncated_sha256_of_public_key(self):
        key = make_key(1)
        seed = bytes.fromhex(key[:64])
        public_key = nacl.signing.SigningKey(seed).verify_key.encode()
        expected = hashlib.sha256(public_key).digest()[:20].hex()

        km = KeyManager.from_private_key(key)
        self.assertEqual(km.address, expected)
        self.assertEqual(km.public_key, public_key.hex())

    def test_deterministic(self):
        self.assertEqual(resolve_address(make_key(9)), resolve_address(make_key(9)))
        self.assertNotEqual(resolve_address(make_key(9)), resolve_address(make_key(10)))

    def test_random_key_roundtrip(self):
        km = KeyManager.create_random()
        self.assertEqual(len(km.private_key), 128)
        self.assertTrue(km.private_key.endswith(km.public_key))
        self.assertEqual(KeyManager.from_private_key(km.private_key).address, km.address)

    def test_repr_hides_private_key(self):
        km = KeyManager.from_private_key(make_key(2))
        self.assertNotIn(km.private_key[:64], repr(km))
        self.assertIn(km.address, repr(km))

    def test_invalid_keys(self):
        for bad in ["", "ab" * 63, "zz" * 64]:
            with self.assertRaises(ValueError):
                KeyManager.from_private_key(bad)

    def test_generate_private_keys(self):
        keys = generate_private_keys(3)
        self.assertEqual(len(set(keys)), 3)
        self.assertTrue(all(len(k) == 128 and is_hex(k) for k in keys))
        with self.assertRaises(ValueError):
            generate_private_keys(0)
