"""
Inheritable Inheritance State Machine

Gates the transfer of an account's privileges to a configured inheritor on
verified evidence that the account has been dormant: its nonce at a later
block equals a recorded checkpoint nonce, and at least `delay` seconds
separate the two observations.

Phases per governed account:

    UNCONFIGURED -> CONFIGURED -> (RECORDED)* -> CLAIMED -> (reset) -> CONFIGURED

Every operation validates first and mutates last, so a failure never leaves
a partially applied change behind.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from eth_utils import is_address, to_canonical_address, to_checksum_address

from .errors import (
    AlreadyClaimed,
    InheritableError,
    InheritanceNotReady,
    NoCheckpoint,
    NonceChanged,
    NonceRegressed,
    NotAuthorized,
    NotConfigured,
    StaleObservation,
)
from .logging_config import AuditLogger, audit_log
from .state_proof import NonceObservation, StateProofVerifier

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "00" * 20

AddressLike = Union[str, bytes, None]


def normalize_address(value: AddressLike) -> str:
    """Return the checksummed form; None and empty mean the zero address."""
    if value is None or value == b"" or value == "":
        return ZERO_ADDRESS
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise ValueError("address must be 20 bytes")
        return to_checksum_address(bytes(value))
    if not is_address(value):
        raise ValueError(f"invalid address: {value}")
    return to_checksum_address(value)


def is_zero_address(value: AddressLike) -> bool:
    return normalize_address(value) == ZERO_ADDRESS


class AccountPhase(str, Enum):
    UNCONFIGURED = "UNCONFIGURED"
    CONFIGURED = "CONFIGURED"
    RECORDED = "RECORDED"
    CLAIMED = "CLAIMED"


@dataclass
class InheritanceConfig:
    """Who inherits and after how many seconds of dormancy."""
    inheritor: str = ZERO_ADDRESS
    delay: int = 0

    def is_set(self) -> bool:
        return self.inheritor != ZERO_ADDRESS and self.delay > 0

    def is_empty(self) -> bool:
        return self.inheritor == ZERO_ADDRESS and self.delay == 0


@dataclass
class Checkpoint:
    """Last verified (nonce, timestamp) observation and the claimed flag."""
    last_nonce: int = 0
    last_timestamp: int = 0
    claimed: bool = False


@dataclass
class AccountState:
    """Configuration and checkpoint of one governed account."""
    account: str
    config: InheritanceConfig = field(default_factory=InheritanceConfig)
    checkpoint: Checkpoint = field(default_factory=Checkpoint)

    def __post_init__(self):
        self.account = normalize_address(self.account)
        if self.account == ZERO_ADDRESS:
            raise ValueError("governed account cannot be the zero address")

    @property
    def phase(self) -> AccountPhase:
        if self.checkpoint.claimed:
            return AccountPhase.CLAIMED
        if self.config.is_empty():
            return AccountPhase.UNCONFIGURED
        if self.checkpoint.last_nonce > 0 or self.checkpoint.last_timestamp > 0:
            return AccountPhase.RECORDED
        return AccountPhase.CONFIGURED

    def copy(self) -> "AccountState":
        return AccountState(
            account=self.account,
            config=replace(self.config),
            checkpoint=replace(self.checkpoint),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "phase": self.phase.value,
            "inheritor": self.config.inheritor,
            "delay": self.config.delay,
            "last_nonce": self.checkpoint.last_nonce,
            "last_timestamp": self.checkpoint.last_timestamp,
            "claimed": self.checkpoint.claimed,
        }


class InheritanceStateMachine:
    """
    Applies inheritance operations to an explicit AccountState.

    The caller's authority over the governed account is decided outside this
    class and passed in as `caller_is_authority`.

    Args:
        verifier: Produces verified nonce observations
        audit: Audit logger (defaults to the package-wide instance)
    """

    def __init__(
        self,
        verifier: StateProofVerifier,
        audit: Optional[AuditLogger] = None
    ):
        self.verifier = verifier
        self.audit = audit or audit_log

    @contextmanager
    def _audited(self, state: AccountState, operation: str):
        try:
            yield
        except InheritableError as e:
            self.audit.operation_rejected(state.account, operation, e.code, e.message)
            raise

    def _observe(
        self,
        state: AccountState,
        header_bytes: bytes,
        proof_nodes: Sequence[bytes]
    ) -> NonceObservation:
        logger.debug("verifying observation for %s (phase=%s)", state.account, state.phase.value)
        return self.verifier.verify_nonce_time(
            to_canonical_address(state.account), header_bytes, proof_nodes
        )

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_config(
        self,
        state: AccountState,
        inheritor: AddressLike,
        delay: int,
        caller_is_authority: bool
    ) -> InheritanceConfig:
        """
        Update the configuration.

        Both arguments zero clears the configuration. Otherwise each non-zero
        argument replaces its stored field and a zero argument leaves its
        stored field as it was.
        """
        with self._audited(state, "set_config"):
            if not caller_is_authority:
                raise NotAuthorized("Only the account authority may change configuration")
            if delay < 0:
                raise ValueError("delay must be non-negative")

            inheritor = normalize_address(inheritor)
            if inheritor == ZERO_ADDRESS and delay == 0:
                state.config = InheritanceConfig()
                self.audit.config_updated(state.account, ZERO_ADDRESS, 0, cleared=True)
                return state.config

            new_config = replace(state.config)
            if inheritor != ZERO_ADDRESS:
                new_config.inheritor = inheritor
            if delay != 0:
                new_config.delay = delay

            state.config = new_config
            self.audit.config_updated(state.account, new_config.inheritor, new_config.delay)
            return new_config

    def get_config(self, state: AccountState) -> Tuple[str, int]:
        return state.config.inheritor, state.config.delay

    def get_inheritor(self, state: AccountState) -> str:
        return state.config.inheritor

    def get_delay(self, state: AccountState) -> int:
        return state.config.delay

    def get_checkpoint(self, state: AccountState) -> Checkpoint:
        return replace(state.checkpoint)

    def is_claimed(self, state: AccountState) -> bool:
        return state.checkpoint.claimed

    # ------------------------------------------------------------------
    # Checkpoints and claims
    # ------------------------------------------------------------------

    def record(
        self,
        state: AccountState,
        header_bytes: bytes,
        proof_nodes: Sequence[bytes]
    ) -> NonceObservation:
        """
        Move the checkpoint forward to a newer verified observation.

        Anyone may call this: it can only tighten the checkpoint toward the
        present.
        """
        with self._audited(state, "record"):
            observation = self._observe(state, header_bytes, proof_nodes)
            checkpoint = state.checkpoint

            if observation.nonce < checkpoint.last_nonce:
                raise NonceRegressed(
                    "Observed nonce is below the checkpoint",
                    required=f">= {checkpoint.last_nonce}",
                    observed=str(observation.nonce)
                )
            if (observation.nonce == checkpoint.last_nonce
                    and observation.timestamp <= checkpoint.last_timestamp):
                raise StaleObservation(
                    "Observation is not newer than the checkpoint",
                    required=f"timestamp > {checkpoint.last_timestamp}",
                    observed=str(observation.timestamp)
                )

            state.checkpoint = replace(
                checkpoint,
                last_nonce=observation.nonce,
                last_timestamp=observation.timestamp,
            )
            self.audit.checkpoint_recorded(
                state.account, observation.nonce, observation.timestamp, observation.block_number
            )
            return observation

    def claim(
        self,
        state: AccountState,
        header_bytes: bytes,
        proof_nodes: Sequence[bytes]
    ) -> NonceObservation:
        """
        Claim the account for the inheritor.

        Succeeds only if the account is configured and unclaimed, a non-zero
        checkpoint exists, the observation is at least `delay` seconds after
        the checkpoint, and the nonce has not moved. On success the
        checkpoint is zeroed, so the same proof cannot claim twice.
        """
        with self._audited(state, "claim"):
            config = state.config
            checkpoint = state.checkpoint

            if not config.is_set():
                raise NotConfigured(
                    "Inheritor and delay must both be set",
                    required="inheritor != 0 and delay > 0",
                    observed=f"inheritor={config.inheritor} delay={config.delay}"
                )
            if checkpoint.claimed:
                raise AlreadyClaimed("Inheritance already claimed")
            if checkpoint.last_nonce == 0:
                raise NoCheckpoint("No checkpoint has been recorded")

            observation = self._observe(state, header_bytes, proof_nodes)

            ready_at = checkpoint.last_timestamp + config.delay
            if observation.timestamp < ready_at:
                raise InheritanceNotReady(
                    "Delay has not elapsed since the checkpoint",
                    required=f"timestamp >= {ready_at}",
                    observed=str(observation.timestamp)
                )
            if observation.nonce != checkpoint.last_nonce:
                raise NonceChanged(
                    "Account nonce changed since the checkpoint",
                    required=str(checkpoint.last_nonce),
                    observed=str(observation.nonce)
                )

            state.checkpoint = Checkpoint(last_nonce=0, last_timestamp=0, claimed=True)
            self.audit.inheritance_claimed(
                state.account, config.inheritor,
                observation.nonce, observation.timestamp, observation.block_number
            )
            return observation

    def record_and_claim(
        self,
        state: AccountState,
        record_header: bytes,
        record_proof: Sequence[bytes],
        claim_header: bytes,
        claim_proof: Sequence[bytes]
    ) -> NonceObservation:
        """`record` then `claim`. A successful record stays applied if the claim fails."""
        self.record(state, record_header, record_proof)
        return self.claim(state, claim_header, claim_proof)

    def reset_claim(self, state: AccountState, caller_is_authority: bool) -> None:
        """Clear the claimed flag and the checkpoint, restarting the cycle."""
        with self._audited(state, "reset_claim"):
            if not caller_is_authority:
                raise NotAuthorized("Only the account authority may reset a claim")
            state.checkpoint = Checkpoint()
            self.audit.claim_reset(state.account)

    def is_authorized_executor(
        self,
        state: AccountState,
        caller: AddressLike,
        caller_is_authority: bool
    ) -> bool:
        """
        Whether caller may act for the account: the authority always, the
        inheritor only after a successful claim.
        """
        if caller_is_authority:
            return True
        caller = normalize_address(caller)
        return (
            state.checkpoint.claimed
            and caller != ZERO_ADDRESS
            and caller == state.config.inheritor
        )


class InheritableAccount:
    """
    One governed account bound to a state machine and a store.

    Each operation loads the account's state, applies the operation and
    saves the result only if it succeeded.

    Args:
        account: The governed account's address
        machine: State machine applying the operations
        store: A StateStore holding the account's state
    """

    def __init__(self, account: AddressLike, machine: InheritanceStateMachine, store):
        self.account = normalize_address(account)
        self.machine = machine
        self.store = store

    def _apply(self, operation, *args):
        state = self.store.load(self.account)
        result = operation(state, *args)
        self.store.save(state)
        return result

    def state(self) -> AccountState:
        return self.store.load(self.account)

    def set_config(
        self,
        inheritor: AddressLike,
        delay: int,
        caller_is_authority: bool
    ) -> InheritanceConfig:
        return self._apply(self.machine.set_config, inheritor, delay, caller_is_authority)

    def get_config(self) -> Tuple[str, int]:
        return self.machine.get_config(self.state())

    def record(self, header_bytes: bytes, proof_nodes: Sequence[bytes]) -> NonceObservation:
        return self._apply(self.machine.record, header_bytes, proof_nodes)

    def claim(self, header_bytes: bytes, proof_nodes: Sequence[bytes]) -> NonceObservation:
        return self._apply(self.machine.claim, header_bytes, proof_nodes)

    def record_and_claim(
        self,
        record_header: bytes,
        record_proof: Sequence[bytes],
        claim_header: bytes,
        claim_proof: Sequence[bytes]
    ) -> NonceObservation:
        self.record(record_header, record_proof)
        return self.claim(claim_header, claim_proof)

    def reset_claim(self, caller_is_authority: bool) -> None:
        self._apply(self.machine.reset_claim, caller_is_authority)

    def is_claimed(self) -> bool:
        return self.machine.is_claimed(self.state())

    def is_authorized_executor(self, caller: AddressLike, caller_is_authority: bool) -> bool:
        return self.machine.is_authorized_executor(self.state(), caller, caller_is_authority)
