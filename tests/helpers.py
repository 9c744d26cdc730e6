"""
Test fixtures: a minimal Merkle-Patricia trie builder, block headers and a
fake chain that records the hash of every header it produces.

Built independently of inheritable.trie so proofs are not checked against
the code that produced them.
"""

from typing import Dict, List, Optional

from inheritable import rlp
from inheritable.block_hashes import BlockHashRecorder
from inheritable.hashing import EMPTY_CODE_HASH, EMPTY_TRIE_ROOT, account_trie_key, keccak256


def nibbles_of(key: bytes) -> List[int]:
    out = []
    for byte in key:
        out.extend((byte >> 4, byte & 0x0F))
    return out


def hex_prefix(nibbles: List[int], is_leaf: bool) -> bytes:
    flag = 2 if is_leaf else 0
    if len(nibbles) % 2:
        padded = [flag + 1] + list(nibbles)
    else:
        padded = [flag, 0] + list(nibbles)
    return bytes((padded[i] << 4) | padded[i + 1] for i in range(0, len(padded), 2))


def _path_of(hp: bytes) -> List[int]:
    nibbles = nibbles_of(hp)
    return nibbles[1:] if nibbles[0] & 1 else nibbles[2:]


def _common_prefix(paths: List[List[int]]) -> List[int]:
    prefix = []
    for column in zip(*paths):
        if len(set(column)) != 1:
            break
        prefix.append(column[0])
    return prefix


class MiniTrie:
    """Builds a trie over raw keys and produces root-first proofs."""

    def __init__(self, items: Dict[bytes, bytes]):
        self.nodes: Dict[bytes, bytes] = {}
        entries = [(nibbles_of(k), v) for k, v in items.items()]
        self.root = self._build(entries) if entries else b""
        self.root_encoded = rlp.encode(self.root)
        self.root_hash = keccak256(self.root_encoded)

    def _ref(self, node):
        encoded = rlp.encode(node)
        if len(encoded) < 32:
            return node
        digest = keccak256(encoded)
        self.nodes[digest] = encoded
        return digest

    def _build(self, entries):
        if len(entries) == 1:
            path, value = entries[0]
            return [hex_prefix(path, True), value]
        prefix = _common_prefix([path for path, _ in entries])
        if prefix:
            rest = [(path[len(prefix):], value) for path, value in entries]
            return [hex_prefix(prefix, False), self._ref(self._branch(rest))]
        return self._branch(entries)

    def _branch(self, entries):
        branch = [b""] * 17
        for nibble in range(16):
            group = [(path[1:], value) for path, value in entries if path and path[0] == nibble]
            if group:
                branch[nibble] = self._ref(self._build(group))
        for path, value in entries:
            if not path:
                branch[16] = value
        return branch

    def proof(self, key: bytes) -> List[bytes]:
        nibbles = nibbles_of(key)
        proof = [self.root_encoded]
        node = self.root
        cursor = 0
        while isinstance(node, list):
            if len(node) == 2:
                path = _path_of(node[0])
                if node[0][0] >> 4 >= 2:
                    break
                if nibbles[cursor:cursor + len(path)] != path:
                    break
                cursor += len(path)
                ref = node[1]
            else:
                if cursor == len(nibbles):
                    break
                ref = node[nibbles[cursor]]
                cursor += 1
            if isinstance(ref, list):
                node = ref
            elif ref == b"":
                break
            else:
                proof.append(self.nodes[ref])
                node = rlp.decode(self.nodes[ref])
        return proof


def encode_account(nonce: int, balance: int = 0,
                   storage_root: bytes = EMPTY_TRIE_ROOT,
                   code_hash: bytes = EMPTY_CODE_HASH) -> bytes:
    return rlp.encode([nonce, balance, storage_root, code_hash])


def header_fields(number: int, timestamp: int, state_root: bytes, trailing: int = 0) -> list:
    fields = [
        b"\x11" * 32,           # parentHash
        b"\x1d" * 32,           # ommersHash
        b"\xbe" * 20,           # beneficiary
        state_root,             # stateRoot
        b"\x22" * 32,           # transactionsRoot
        b"\x33" * 32,           # receiptsRoot
        b"\x00" * 256,          # logsBloom
        0,                      # difficulty
        number,                 # number
        30_000_000,             # gasLimit
        21_000,                 # gasUsed
        timestamp,              # timestamp
        b"inheritable",         # extraData
        b"\x44" * 32,           # mixHash
        b"\x00" * 8,            # nonce
    ]
    era_fields = [7, b"\x55" * 32, 0, 0, b"\x66" * 32, b"\x77" * 32]
    return fields + era_fields[:trailing]


def make_header(number: int, timestamp: int, state_root: bytes, trailing: int = 0) -> bytes:
    return rlp.encode(header_fields(number, timestamp, state_root, trailing))


FILLER_ACCOUNTS = [bytes([i]) * 20 for i in range(1, 9)]


class FakeChain:
    """
    Produces (header, proof) pairs for an account at a chosen nonce and
    timestamp, recording every header hash in a BlockHashRecorder.
    """

    def __init__(self, first_block: int = 19_000_000):
        self.oracle = BlockHashRecorder()
        self.next_block = first_block
        self.headers: Dict[int, bytes] = {}

    def state_trie(self, address: bytes, nonce: int, balance: int = 10**18) -> MiniTrie:
        items = {account_trie_key(a): encode_account(i + 1) for i, a in enumerate(FILLER_ACCOUNTS)}
        items[account_trie_key(address)] = encode_account(nonce, balance)
        return MiniTrie(items)

    def observe(self, address: bytes, nonce: int, timestamp: int,
                number: Optional[int] = None, record_hash: bool = True):
        if number is None:
            number = self.next_block
        self.next_block = max(self.next_block, number) + 1

        trie = self.state_trie(address, nonce)
        header = make_header(number, timestamp, trie.root_hash, trailing=5)
        if record_hash:
            self.oracle.record(number, keccak256(header))
        self.headers[number] = header
        return header, trie.proof(account_trie_key(address))
