"""
Inheritable error taxonomy.

Every failure aborts the whole operation with no state mutation. Errors fall
into four families:

- InputMalformation: the caller supplied structurally invalid bytes
- ProofInconsistency: the supplied proof does not support the claimed fact
- TrustAnchorFailure: the header is not attested by any trusted source
- DomainRuleViolation: the checkpoint/config state does not allow the operation

Nothing here is retried internally. Retrying with corrected inputs (a
different block, a fresh proof) is the caller's job.
"""

from typing import Any, Dict, Optional


class InheritableError(Exception):
    """Base class for all inheritable failures."""

    code = "UNKNOWN"

    def __init__(
        self,
        message: str = "",
        required: Optional[str] = None,
        observed: Optional[str] = None
    ):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.required = required
        self.observed = observed

    def to_dict(self) -> Dict[str, Any]:
        d = {"code": self.code, "message": self.message}
        if self.required is not None:
            d["required"] = self.required
        if self.observed is not None:
            d["observed"] = self.observed
        return d


# =============================================================================
# INPUT MALFORMATION
# =============================================================================

class InputMalformation(InheritableError):
    code = "INPUT_MALFORMATION"


class MalformedEncoding(InputMalformation):
    """Length prefix overrun, non-canonical form, or trailing bytes."""
    code = "MALFORMED_ENCODING"


class InvalidTrieNode(MalformedEncoding):
    """Decodes cleanly but is not a branch, extension, leaf or empty node."""
    code = "INVALID_TRIE_NODE"


class InvalidHeaderShape(InputMalformation):
    code = "INVALID_HEADER_SHAPE"


class InvalidAccountEncoding(InputMalformation):
    code = "INVALID_ACCOUNT_ENCODING"


# =============================================================================
# PROOF INCONSISTENCY
# =============================================================================

class ProofInconsistency(InheritableError):
    code = "PROOF_INCONSISTENCY"


class ProofNodeHashMismatch(ProofInconsistency):
    """A proof node was not the one referenced by its predecessor."""
    code = "PROOF_NODE_HASH_MISMATCH"


class IncompleteProof(ProofInconsistency):
    """Proof ran out before reaching a leaf or an absence witness."""
    code = "INCOMPLETE_PROOF"


class AccountNotFound(ProofInconsistency):
    code = "ACCOUNT_NOT_FOUND"


# =============================================================================
# TRUST ANCHOR FAILURE
# =============================================================================

class TrustAnchorFailure(InheritableError):
    code = "TRUST_ANCHOR_FAILURE"


class BlockHashUnavailable(TrustAnchorFailure):
    code = "BLOCK_HASH_UNAVAILABLE"


class BlockHashMismatch(TrustAnchorFailure):
    code = "BLOCK_HASH_MISMATCH"


# =============================================================================
# DOMAIN RULE VIOLATION
# =============================================================================

class DomainRuleViolation(InheritableError):
    code = "DOMAIN_RULE_VIOLATION"


class NonceRegressed(DomainRuleViolation):
    code = "NONCE_REGRESSED"


class StaleObservation(DomainRuleViolation):
    """Same nonce as the checkpoint but not strictly newer."""
    code = "STALE_OBSERVATION"


class InheritanceNotReady(DomainRuleViolation):
    code = "INHERITANCE_NOT_READY"


class NonceChanged(DomainRuleViolation):
    code = "NONCE_CHANGED"


class NotConfigured(DomainRuleViolation):
    code = "NOT_CONFIGURED"


class AlreadyClaimed(DomainRuleViolation):
    code = "ALREADY_CLAIMED"


class NoCheckpoint(DomainRuleViolation):
    """Checkpoint nonce is zero: no baseline was ever recorded."""
    code = "NO_CHECKPOINT"


class NotAuthorized(DomainRuleViolation):
    code = "NOT_AUTHORIZED"
