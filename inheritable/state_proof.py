"""
Inheritable State Proof Verification

Turns caller-supplied bytes into a verified (nonce, timestamp) observation:

1. Decode the block header and read block number, timestamp and state root
2. Confirm the header hash against a trusted block hash
3. Walk the account proof against the header's state root
4. Decode the account record

Nothing is trusted until step 2 has passed; the account proof is only as good
as the state root it is checked against.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from . import rlp
from .block_hashes import ChainedHashSource, HistoricalHashOracle, RecentBlockHashes
from .config import MIN_HEADER_FIELDS
from .errors import (
    AccountNotFound,
    BlockHashMismatch,
    BlockHashUnavailable,
    InvalidAccountEncoding,
    InvalidHeaderShape,
    MalformedEncoding,
)
from .hashing import HASH_LENGTH, account_trie_key, digests_equal, keccak256
from .trie import verify_proof

logger = logging.getLogger(__name__)

# Positional header fields (0-indexed)
PARENT_HASH_INDEX = 0
OMMERS_HASH_INDEX = 1
BENEFICIARY_INDEX = 2
STATE_ROOT_INDEX = 3
TRANSACTIONS_ROOT_INDEX = 4
RECEIPTS_ROOT_INDEX = 5
NUMBER_INDEX = 8
TIMESTAMP_INDEX = 11

ACCOUNT_FIELDS = 4


@dataclass(frozen=True)
class BlockHeader:
    """The header fields this package consumes, plus the header's own hash."""
    parent_hash: bytes
    ommers_hash: bytes
    beneficiary: bytes
    state_root: bytes
    transactions_root: bytes
    receipts_root: bytes
    number: int
    timestamp: int
    field_count: int
    hash: bytes


@dataclass(frozen=True)
class AccountRecord:
    """The four fields bound to an account's key in the state trie."""
    nonce: int
    balance: int
    storage_root: bytes
    code_hash: bytes

    def to_dict(self):
        return {
            "nonce": self.nonce,
            "balance": self.balance,
            "storage_root": "0x" + self.storage_root.hex(),
            "code_hash": "0x" + self.code_hash.hex(),
        }


@dataclass(frozen=True)
class NonceObservation:
    """A verified nonce at a verified point in time."""
    nonce: int
    timestamp: int
    block_number: int
    state_root: bytes


def _header_hash_field(fields: list, index: int, name: str, length: int = HASH_LENGTH) -> bytes:
    value = fields[index]
    if not isinstance(value, bytes) or len(value) != length:
        raise InvalidHeaderShape(
            f"Header field {name} has wrong shape",
            required=f"{length} bytes",
            observed="list" if isinstance(value, list) else f"{len(value)} bytes"
        )
    return value


def _header_int_field(fields: list, index: int, name: str) -> int:
    try:
        return rlp.decode_uint(fields[index])
    except MalformedEncoding as e:
        raise InvalidHeaderShape(f"Header field {name} is not a canonical integer: {e.message}") from e


def extract_header_fields(
    header_bytes: bytes,
    min_fields: int = MIN_HEADER_FIELDS
) -> BlockHeader:
    """
    Decode a header and read its consumed fields by position.

    Trailing fields added by later forks (base fee, withdrawals root, blob
    gas, parent beacon root, requests hash) are tolerated and ignored.

    Raises:
        MalformedEncoding: header is not valid RLP
        InvalidHeaderShape: not a list, too few fields, or a consumed field
            of the wrong shape
    """
    fields = rlp.decode(header_bytes)
    if not isinstance(fields, list):
        raise InvalidHeaderShape("Header must be an RLP list", observed="byte string")
    if len(fields) < min_fields:
        raise InvalidHeaderShape(
            "Header has too few fields",
            required=f">= {min_fields}",
            observed=str(len(fields))
        )

    return BlockHeader(
        parent_hash=_header_hash_field(fields, PARENT_HASH_INDEX, "parentHash"),
        ommers_hash=_header_hash_field(fields, OMMERS_HASH_INDEX, "ommersHash"),
        beneficiary=_header_hash_field(fields, BENEFICIARY_INDEX, "beneficiary", 20),
        state_root=_header_hash_field(fields, STATE_ROOT_INDEX, "stateRoot"),
        transactions_root=_header_hash_field(fields, TRANSACTIONS_ROOT_INDEX, "transactionsRoot"),
        receipts_root=_header_hash_field(fields, RECEIPTS_ROOT_INDEX, "receiptsRoot"),
        number=_header_int_field(fields, NUMBER_INDEX, "number"),
        timestamp=_header_int_field(fields, TIMESTAMP_INDEX, "timestamp"),
        field_count=len(fields),
        hash=keccak256(header_bytes),
    )


def confirm_header_hash(
    header_bytes: bytes,
    block_number: int,
    sources: ChainedHashSource
) -> bool:
    """
    Check the header hashes to the trusted hash for block_number.

    The hash is taken over the caller's bytes exactly as supplied, never over
    a re-encoding.

    Raises:
        BlockHashUnavailable: no source has a hash for the block
        BlockHashMismatch: the trusted hash differs
    """
    computed = keccak256(header_bytes)
    trusted = sources.trusted_hash(block_number)
    if trusted is None:
        raise BlockHashUnavailable(
            f"No trusted hash for block {block_number}",
            observed=str(block_number)
        )
    if not digests_equal(computed, trusted):
        raise BlockHashMismatch(
            f"Header does not hash to the trusted hash for block {block_number}",
            required=trusted.hex(),
            observed=computed.hex()
        )
    return True


def decode_account(value: bytes) -> AccountRecord:
    """
    Decode an account trie value into an AccountRecord.

    Raises:
        InvalidAccountEncoding: not a canonical 4-field account
    """
    try:
        fields = rlp.decode(value)
    except MalformedEncoding as e:
        raise InvalidAccountEncoding(f"Account value is not valid RLP: {e.message}") from e

    if not isinstance(fields, list) or len(fields) != ACCOUNT_FIELDS:
        raise InvalidAccountEncoding(
            "Account must be a 4-field list",
            required=str(ACCOUNT_FIELDS),
            observed="byte string" if not isinstance(fields, list) else str(len(fields))
        )

    nonce_raw, balance_raw, storage_root, code_hash = fields
    try:
        nonce = rlp.decode_uint(nonce_raw)
        balance = rlp.decode_uint(balance_raw)
    except MalformedEncoding as e:
        raise InvalidAccountEncoding(f"Account integer field invalid: {e.message}") from e

    for name, digest in (("storage_root", storage_root), ("code_hash", code_hash)):
        if not isinstance(digest, bytes) or len(digest) != HASH_LENGTH:
            raise InvalidAccountEncoding(f"Account {name} must be {HASH_LENGTH} bytes")

    return AccountRecord(nonce=nonce, balance=balance, storage_root=storage_root, code_hash=code_hash)


def verify_account(
    state_root: bytes,
    address: bytes,
    proof_nodes: Sequence[bytes]
) -> AccountRecord:
    """
    Prove an account's record against a state root.

    Raises:
        AccountNotFound: the proof shows the account does not exist
        InvalidAccountEncoding: the proven value is not an account
        ProofNodeHashMismatch, IncompleteProof, MalformedEncoding: bad proof
    """
    key = account_trie_key(address)
    present, value = verify_proof(proof_nodes, state_root, key)
    if not present:
        raise AccountNotFound(
            "Account is absent from the state trie",
            observed="0x" + bytes(address).hex()
        )
    return decode_account(value)


class StateProofVerifier:
    """
    Verifies nonce observations against trusted block hashes.

    Args:
        recent: Short-window source bound to the current chain height
        oracle: Historical hash oracle consulted when recent has nothing
        min_header_fields: Fewest header fields accepted
    """

    def __init__(
        self,
        recent: Optional[RecentBlockHashes] = None,
        oracle: Optional[HistoricalHashOracle] = None,
        min_header_fields: int = MIN_HEADER_FIELDS
    ):
        self.sources = ChainedHashSource(recent=recent, oracle=oracle)
        self.min_header_fields = min_header_fields

    def extract_header_fields(self, header_bytes: bytes) -> BlockHeader:
        return extract_header_fields(header_bytes, self.min_header_fields)

    def confirm_header_hash(self, header_bytes: bytes, block_number: int) -> bool:
        return confirm_header_hash(header_bytes, block_number, self.sources)

    def verify_account(
        self,
        state_root: bytes,
        address: bytes,
        proof_nodes: Sequence[bytes]
    ) -> AccountRecord:
        return verify_account(state_root, address, proof_nodes)

    def verify_header(self, header_bytes: bytes) -> BlockHeader:
        """Decode a header and confirm it is attested."""
        header = self.extract_header_fields(header_bytes)
        self.confirm_header_hash(header_bytes, header.number)
        return header

    def verify_account_at(
        self,
        address: bytes,
        header_bytes: bytes,
        proof_nodes: Sequence[bytes]
    ) -> AccountRecord:
        header = self.verify_header(header_bytes)
        return self.verify_account(header.state_root, address, proof_nodes)

    def verify_nonce_time(
        self,
        address: bytes,
        header_bytes: bytes,
        proof_nodes: Sequence[bytes]
    ) -> NonceObservation:
        """
        Extract, confirm, then verify the account.

        Returns:
            NonceObservation with the account's nonce and the header timestamp
        """
        header = self.verify_header(header_bytes)
        account = self.verify_account(header.state_root, address, proof_nodes)
        logger.debug(
            "verified nonce=%d at block=%d timestamp=%d",
            account.nonce, header.number, header.timestamp
        )
        return NonceObservation(
            nonce=account.nonce,
            timestamp=header.timestamp,
            block_number=header.number,
            state_root=header.state_root,
        )
