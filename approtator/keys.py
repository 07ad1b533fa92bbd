"""
App key handling.

POKT app keys are ed25519 keys serialized as 128 hex characters: the 32 byte
seed followed by the 32 byte public key. The address is the first 20 bytes of
SHA-256 over the public key.
"""

import hashlib
import string

import nacl.signing
import nacl.utils

PRIVATE_KEY_LENGTH = 128
ADDRESS_BYTES = 20

_HEX_DIGITS = set(string.hexdigits)


def is_hex(value: str) -> bool:
    return bool(value) and all(c in _HEX_DIGITS for c in value)


class KeyManager:
    """Signer for a single app key. Only the address ever leaves this object."""

    def __init__(self, signing_key: nacl.signing.SigningKey):
        self._signing_key = signing_key
        self.public_key = signing_key.verify_key.encode().hex()
        self.address = hashlib.sha256(bytes.fromhex(self.public_key)).digest()[:ADDRESS_BYTES].hex()

    @classmethod
    def from_private_key(cls, private_key: str) -> "KeyManager":
        if len(private_key) != PRIVATE_KEY_LENGTH or not is_hex(private_key):
            raise ValueError(f"private key must be {PRIVATE_KEY_LENGTH} hex characters")
        seed = bytes.fromhex(private_key[:64])
        return cls(nacl.signing.SigningKey(seed))

    @classmethod
    def create_random(cls) -> "KeyManager":
        return cls(nacl.signing.SigningKey(nacl.utils.random(32)))

    @property
    def private_key(self) -> str:
        return bytes(self._signing_key).hex() + self.public_key

    def __repr__(self):
        return f"KeyManager(address={self.address!r})"


def resolve_address(private_key: str) -> str:
    return KeyManager.from_private_key(private_key).address


def generate_private_keys(count: int) -> list[str]:
    if count < 1:
        raise ValueError("count must be a positive integer")
    return [KeyManager.create_random().private_key for _ in range(count)]
