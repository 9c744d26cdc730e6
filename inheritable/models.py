from typing import Any, Dict, List, Optional

from eth_utils import decode_hex, is_hex
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .hashing import HASH_LENGTH


def _hex_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and is_hex(value):
        return decode_hex(value)
    if isinstance(value, str) and value in ("", "0x"):
        return b""
    raise ValueError("expected 0x-prefixed hex string")


def _hex_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected integer or hex quantity")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    raise ValueError("expected integer or hex quantity")


class OracleSnapshot(BaseModel):
    block_hashes: Dict[int, bytes] = Field(default_factory=dict)

    @field_validator("block_hashes", mode="before")
    @classmethod
    def _decode_hashes(cls, value: Any) -> Dict[int, bytes]:
        decoded = {}
        for number, block_hash in dict(value).items():
            raw = _hex_bytes(block_hash)
            if len(raw) != HASH_LENGTH:
                raise ValueError(f"block {number}: hash must be {HASH_LENGTH} bytes")
            decoded[int(number)] = raw
        return decoded


class ProofBundle(BaseModel):
    """
    An eth_getProof account result plus the RLP header of the same block.

    The claimed account fields are informational only; the verified values
    always come from the proof.
    """
    model_config = ConfigDict(populate_by_name=True)

    address: bytes
    header_rlp: bytes = Field(alias="headerRlp")
    account_proof: List[bytes] = Field(alias="accountProof")
    nonce: Optional[int] = None
    balance: Optional[int] = None
    storage_hash: Optional[bytes] = Field(default=None, alias="storageHash")
    code_hash: Optional[bytes] = Field(default=None, alias="codeHash")

    @field_validator("address", mode="before")
    @classmethod
    def _decode_address(cls, value: Any) -> bytes:
        raw = _hex_bytes(value)
        if len(raw) != 20:
            raise ValueError("address must be 20 bytes")
        return raw

    @field_validator("header_rlp", "storage_hash", "code_hash", mode="before")
    @classmethod
    def _decode_bytes(cls, value: Any) -> Optional[bytes]:
        if value is None:
            return None
        return _hex_bytes(value)

    @field_validator("account_proof", mode="before")
    @classmethod
    def _decode_proof(cls, value: Any) -> List[bytes]:
        return [_hex_bytes(node) for node in value]

    @field_validator("nonce", "balance", mode="before")
    @classmethod
    def _decode_quantity(cls, value: Any) -> Optional[int]:
        if value is None:
            return None
        return _hex_int(value)

    def check_claims(self, record) -> List[str]:
        """List claimed fields that disagree with a verified AccountRecord."""
        mismatches = []
        if self.nonce is not None and self.nonce != record.nonce:
            mismatches.append("nonce")
        if self.balance is not None and self.balance != record.balance:
            mismatches.append("balance")
        if self.storage_hash is not None and self.storage_hash != record.storage_root:
            mismatches.append("storageHash")
        if self.code_hash is not None and self.code_hash != record.code_hash:
            mismatches.append("codeHash")
        return mismatches
