"""
Inheritable hashing.

All commitments on the host chain (block hashes, trie node references, state
trie keys) use keccak-256 with 32-byte binary output.
"""

import hmac
from typing import Union

from eth_utils import keccak

HASH_LENGTH = 32
ZERO_HASH = b"\x00" * HASH_LENGTH


def keccak256(data: Union[bytes, bytearray]) -> bytes:
    """Compute keccak-256 of raw bytes."""
    return keccak(bytes(data))


def keccak256_hex(data: Union[bytes, bytearray]) -> str:
    """Compute keccak-256 and return it as 0x-prefixed lowercase hex."""
    return "0x" + keccak256(data).hex()


def account_trie_key(address: bytes) -> bytes:
    """
    State tries are keyed by the hash of the address, not the address
    itself.
    """
    return keccak256(address)


def digests_equal(a: bytes, b: bytes) -> bool:
    """Compare two digests in constant time."""
    return hmac.compare_digest(bytes(a), bytes(b))


def is_zero_hash(value: bytes) -> bool:
    return len(value) == HASH_LENGTH and digests_equal(value, ZERO_HASH)


# keccak256(rlp(b"")): the root of a trie with no entries
EMPTY_TRIE_ROOT = bytes.fromhex(
    "56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"
)

# keccak256(b""): the code hash of an account without code
EMPTY_CODE_HASH = bytes.fromhex(
    "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
)
