"""
Merkle-Patricia proof verification.

Given the encoded nodes on the path from a commitment root toward a key,
establishes either the value bound to the key or that the trie provably has
no entry for it. Nothing is retained between calls.

Node shapes after RLP decoding:

    b""                      empty node (key absent)
    [slot0 .. slot15, value] branch, one slot per nibble plus a value slot
    [hp_path, child_ref]     extension, hex-prefix flag 0 or 1
    [hp_path, value]         leaf, hex-prefix flag 2 or 3

A child reference is either a 32-byte hash of the next node (which must then
be the next proof node) or, when the child encodes to fewer than 32 bytes,
the child node itself embedded as a list.
"""

import logging
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Tuple

from . import rlp
from .errors import IncompleteProof, InvalidTrieNode, ProofNodeHashMismatch
from .hashing import HASH_LENGTH, digests_equal, keccak256

logger = logging.getLogger(__name__)

BRANCH_WIDTH = 17
VALUE_SLOT = 16


class NodeKind(str, Enum):
    """Node kinds, derived from the decoded shape."""
    EMPTY = "EMPTY"
    BRANCH = "BRANCH"
    EXTENSION = "EXTENSION"
    LEAF = "LEAF"


class ProofResult(NamedTuple):
    """Outcome of a proof walk: (present, value)."""
    present: bool
    value: bytes

    @classmethod
    def absent(cls) -> "ProofResult":
        return cls(False, b"")


def key_to_nibbles(key: bytes) -> List[int]:
    """Expand bytes into 4-bit nibbles, high nibble first."""
    nibbles = []
    for byte in key:
        nibbles.append(byte >> 4)
        nibbles.append(byte & 0x0F)
    return nibbles


def decode_hex_prefix(path) -> Tuple[List[int], bool]:
    """
    Decode a hex-prefix encoded path.

    The high nibble of the first byte is a flag: bit 1 marks a leaf, bit 0
    marks an odd-length path whose first nibble is the low nibble of the
    first byte. Even-length paths pad that low nibble with zero.

    Returns:
        Tuple of (nibbles, is_leaf)
    """
    if not isinstance(path, bytes) or len(path) == 0:
        raise InvalidTrieNode("Hex-prefix path must be a non-empty byte string")

    flag = path[0] >> 4
    if flag > 3:
        raise InvalidTrieNode("Unknown hex-prefix flag", required="0-3", observed=str(flag))

    nibbles = key_to_nibbles(path)
    if flag & 1:
        fragment = nibbles[1:]
    else:
        if nibbles[1] != 0:
            raise InvalidTrieNode("Even-length path with non-zero padding nibble")
        fragment = nibbles[2:]
    return fragment, bool(flag & 2)


def classify_node(node) -> NodeKind:
    """Determine the kind of a decoded node from its shape."""
    if isinstance(node, bytes):
        if len(node) == 0:
            return NodeKind.EMPTY
        raise InvalidTrieNode("Non-empty byte string is not a trie node")

    if len(node) == BRANCH_WIDTH:
        return NodeKind.BRANCH

    if len(node) == 2:
        _, is_leaf = decode_hex_prefix(node[0])
        return NodeKind.LEAF if is_leaf else NodeKind.EXTENSION

    raise InvalidTrieNode(
        "Unexpected trie node arity",
        required=f"2 or {BRANCH_WIDTH}",
        observed=str(len(node))
    )


def _child(ref) -> Tuple[Optional[bytes], Optional[list]]:
    """
    Interpret a child reference.

    Returns (hash, None) for a hash reference, (None, node) for an inline
    node, and (None, None) for an empty slot.
    """
    if isinstance(ref, list):
        return None, ref
    if len(ref) == 0:
        return None, None
    if len(ref) == HASH_LENGTH:
        return ref, None
    raise InvalidTrieNode(
        "Child reference is neither a hash nor an inline node",
        required=f"{HASH_LENGTH} bytes or list",
        observed=f"{len(ref)} bytes"
    )


def _value(slot) -> bytes:
    if not isinstance(slot, bytes):
        raise InvalidTrieNode("Value slot must be a byte string")
    return slot


def verify_proof(
    proof_nodes: Sequence[bytes],
    root_hash: bytes,
    key: bytes
) -> ProofResult:
    """
    Walk a proof from the root toward key.

    Steps per node:
    1. Check the node hashes to the reference held by its parent
       (inline nodes are covered by their parent's hash instead)
    2. Empty node: key absent
    3. Leaf: present if its path equals the remaining nibbles, else absent
    4. Extension: its path must prefix the remaining nibbles (otherwise the
       key is absent); consume it and follow the child
    5. Branch: at the end of the key return the value slot, otherwise
       follow the slot for the next nibble (an empty slot means absent)

    Nodes left over after the walk resolves are ignored.

    Args:
        proof_nodes: Encoded nodes, root first
        root_hash: 32-byte commitment root
        key: Raw lookup key (the caller hashes it first where the trie is
            keyed by hash)

    Returns:
        ProofResult(present, value)

    Raises:
        ProofNodeHashMismatch: a node does not match its reference
        IncompleteProof: nodes ran out before the walk resolved
        MalformedEncoding: a node is not valid RLP or not a valid node
    """
    if len(root_hash) != HASH_LENGTH:
        raise ValueError(f"root_hash must be {HASH_LENGTH} bytes")

    nibbles = key_to_nibbles(key)
    cursor = 0
    expected_hash: Optional[bytes] = bytes(root_hash)
    inline_node = None
    next_index = 0

    while True:
        # Step 1: obtain the next node, hash-checked unless inline
        if inline_node is not None:
            node = inline_node
            inline_node = None
        else:
            if next_index >= len(proof_nodes):
                raise IncompleteProof(
                    "Proof exhausted before reaching a leaf or absence",
                    required=f"node {next_index}",
                    observed=f"{len(proof_nodes)} nodes"
                )
            encoded = bytes(proof_nodes[next_index])
            computed = keccak256(encoded)
            if not digests_equal(computed, expected_hash):
                raise ProofNodeHashMismatch(
                    f"Proof node {next_index} is not referenced by its parent",
                    required=expected_hash.hex(),
                    observed=computed.hex()
                )
            node = rlp.decode(encoded)
            next_index += 1

        kind = classify_node(node)
        logger.debug("proof node kind=%s cursor=%d", kind.value, cursor)

        # Step 2: empty node
        if kind == NodeKind.EMPTY:
            return ProofResult.absent()

        remaining = nibbles[cursor:]

        # Step 3: leaf
        if kind == NodeKind.LEAF:
            fragment, _ = decode_hex_prefix(node[0])
            if fragment == remaining:
                return ProofResult(True, _value(node[1]))
            return ProofResult.absent()

        # Step 4: extension
        if kind == NodeKind.EXTENSION:
            fragment, _ = decode_hex_prefix(node[0])
            if remaining[:len(fragment)] != fragment:
                return ProofResult.absent()
            cursor += len(fragment)
            ref = node[1]
            if isinstance(ref, bytes) and len(ref) == 0:
                raise InvalidTrieNode("Extension with empty child reference")
        # Step 5: branch
        else:
            if not remaining:
                value = _value(node[VALUE_SLOT])
                if value:
                    return ProofResult(True, value)
                return ProofResult.absent()
            ref = node[remaining[0]]
            cursor += 1

        child_hash, child_node = _child(ref)
        if child_hash is None and child_node is None:
            return ProofResult.absent()
        expected_hash = child_hash
        inline_node = child_node


def verify_inclusion(
    proof_nodes: Sequence[bytes],
    root_hash: bytes,
    key: bytes
) -> Optional[bytes]:
    """Return the proven value, or None when the proof shows absence."""
    present, value = verify_proof(proof_nodes, root_hash, key)
    return value if present else None
