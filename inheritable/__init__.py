"""
Inheritable Account Core

Version: 1.0.0
License: Apache 2.0

Nonce-dormancy proofs and an inheritance gate for accounts on an
Ethereum-style chain.

A party proves, without trusted intermediaries, that an account's nonce at
one block equals its nonce at a later block at least `delay` seconds after
it. Once that holds, a configured inheritor may claim the account:

    claimable(account) := configured AND NOT claimed AND checkpoint_nonce > 0
                          AND observed_nonce == checkpoint_nonce
                          AND observed_timestamp >= checkpoint_timestamp + delay

Verification chain:
- RLP-decode the block header and read number, timestamp and state root
- Confirm keccak(header) against a trusted block hash (recent window first,
  historical oracle second)
- Walk the Merkle-Patricia account proof against the state root
- Decode the account record and take its nonce

Usage:
    from inheritable import (
        InheritableAccount,
        InheritanceStateMachine,
        InMemoryStateStore,
        StateProofVerifier,
        WindowedBlockHashes,
    )

    recent = WindowedBlockHashes(current_height=19_000_300, hashes={...})
    verifier = StateProofVerifier(recent=recent)
    machine = InheritanceStateMachine(verifier)
    account = InheritableAccount("0x...", machine, InMemoryStateStore())

    account.set_config(inheritor="0x...", delay=86400, caller_is_authority=True)
    account.record(header_rlp, account_proof)
    ...
    account.claim(later_header_rlp, later_account_proof)
    assert account.is_claimed()
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Codec and hashing
from . import rlp
from .hashing import (
    EMPTY_CODE_HASH,
    EMPTY_TRIE_ROOT,
    account_trie_key,
    digests_equal,
    keccak256,
    keccak256_hex,
)

# Proof verification
from .trie import (
    NodeKind,
    ProofResult,
    classify_node,
    verify_inclusion,
    verify_proof,
)

# Trusted block hashes
from .block_hashes import (
    BlockHashRecorder,
    ChainedHashSource,
    HistoricalHashOracle,
    JsonFileHashOracle,
    NoRecentBlockHashes,
    RecentBlockHashes,
    WindowedBlockHashes,
)

# Orchestrator
from .state_proof import (
    AccountRecord,
    BlockHeader,
    NonceObservation,
    StateProofVerifier,
    confirm_header_hash,
    decode_account,
    extract_header_fields,
    verify_account,
)

# State machine
from .inheritance import (
    AccountPhase,
    AccountState,
    Checkpoint,
    InheritableAccount,
    InheritanceConfig,
    InheritanceStateMachine,
    ZERO_ADDRESS,
    normalize_address,
)

# Persistence
from .store import InMemoryStateStore, SqliteStateStore, StateStore

# Models
from .models import OracleSnapshot, ProofBundle

# Errors
from .errors import (
    AccountNotFound,
    AlreadyClaimed,
    BlockHashMismatch,
    BlockHashUnavailable,
    DomainRuleViolation,
    IncompleteProof,
    InheritableError,
    InheritanceNotReady,
    InputMalformation,
    InvalidAccountEncoding,
    InvalidHeaderShape,
    InvalidTrieNode,
    MalformedEncoding,
    NoCheckpoint,
    NonceChanged,
    NonceRegressed,
    NotAuthorized,
    NotConfigured,
    ProofInconsistency,
    ProofNodeHashMismatch,
    StaleObservation,
    TrustAnchorFailure,
)


__all__ = [
    # Version
    "__version__",

    # Codec and hashing
    "rlp",
    "EMPTY_CODE_HASH",
    "EMPTY_TRIE_ROOT",
    "account_trie_key",
    "digests_equal",
    "keccak256",
    "keccak256_hex",

    # Proof verification
    "NodeKind",
    "ProofResult",
    "classify_node",
    "verify_inclusion",
    "verify_proof",

    # Trusted block hashes
    "BlockHashRecorder",
    "ChainedHashSource",
    "HistoricalHashOracle",
    "JsonFileHashOracle",
    "NoRecentBlockHashes",
    "RecentBlockHashes",
    "WindowedBlockHashes",

    # Orchestrator
    "AccountRecord",
    "BlockHeader",
    "NonceObservation",
    "StateProofVerifier",
    "confirm_header_hash",
    "decode_account",
    "extract_header_fields",
    "verify_account",

    # State machine
    "AccountPhase",
    "AccountState",
    "Checkpoint",
    "InheritableAccount",
    "InheritanceConfig",
    "InheritanceStateMachine",
    "ZERO_ADDRESS",
    "normalize_address",

    # Persistence
    "InMemoryStateStore",
    "SqliteStateStore",
    "StateStore",

    # Models
    "OracleSnapshot",
    "ProofBundle",

    # Errors
    "AccountNotFound",
    "AlreadyClaimed",
    "BlockHashMismatch",
    "BlockHashUnavailable",
    "DomainRuleViolation",
    "IncompleteProof",
    "InheritableError",
    "InheritanceNotReady",
    "InputMalformation",
    "InvalidAccountEncoding",
    "InvalidHeaderShape",
    "InvalidTrieNode",
    "MalformedEncoding",
    "NoCheckpoint",
    "NonceChanged",
    "NonceRegressed",
    "NotAuthorized",
    "NotConfigured",
    "ProofInconsistency",
    "ProofNodeHashMismatch",
    "StaleObservation",
    "TrustAnchorFailure",
]
