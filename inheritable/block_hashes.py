"""
Trusted block-hash sources.

A header is only believed once its hash matches a trusted hash for its block
number. Two sources exist:

- RecentBlockHashes: the host chain's native view of the last `window`
  blocks below the current height. Anything older or newer is unavailable.
- HistoricalHashOracle: an external service that recorded hashes while they
  were still recent. Consulted only when the recent source has nothing.

Both return None (or the all-zero hash, treated the same) when they have no
answer.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .config import RECENT_BLOCK_WINDOW, load_json_cached
from .errors import BlockHashUnavailable
from .hashing import HASH_LENGTH, is_zero_hash
from .models import OracleSnapshot

logger = logging.getLogger(__name__)


def _usable(block_hash: Optional[bytes]) -> Optional[bytes]:
    if block_hash is None or is_zero_hash(block_hash):
        return None
    return block_hash


def _check_hash(block_hash: bytes) -> bytes:
    if not isinstance(block_hash, (bytes, bytearray)) or len(block_hash) != HASH_LENGTH:
        raise ValueError(f"block hash must be {HASH_LENGTH} bytes")
    return bytes(block_hash)


class RecentBlockHashes(ABC):
    """Short-window block hash source bound to the current execution context."""

    @abstractmethod
    def get(self, block_number: int) -> Optional[bytes]:
        """Return the trusted hash for block_number, or None."""
        pass


class NoRecentBlockHashes(RecentBlockHashes):
    """Recent source for offline use: never has an answer."""

    def get(self, block_number: int) -> Optional[bytes]:
        return None


class WindowedBlockHashes(RecentBlockHashes):
    """
    Recent hashes as seen from a given chain height.

    Only blocks in [current_height - window, current_height - 1] are served,
    matching the host chain's native lookup.
    """

    def __init__(
        self,
        current_height: int,
        hashes: Optional[Dict[int, bytes]] = None,
        window: int = RECENT_BLOCK_WINDOW
    ):
        if window <= 0:
            raise ValueError("window must be positive")
        self.current_height = current_height
        self.window = window
        self._hashes: Dict[int, bytes] = {}
        for number, block_hash in (hashes or {}).items():
            self.add(number, block_hash)

    def add(self, block_number: int, block_hash: bytes) -> None:
        self._hashes[block_number] = _check_hash(block_hash)

    def advance(self, current_height: int) -> None:
        if current_height < self.current_height:
            raise ValueError("chain height cannot decrease")
        self.current_height = current_height

    def in_window(self, block_number: int) -> bool:
        return self.current_height - self.window <= block_number < self.current_height

    def get(self, block_number: int) -> Optional[bytes]:
        if not self.in_window(block_number):
            return None
        return _usable(self._hashes.get(block_number))


class HistoricalHashOracle(ABC):
    """External record of block hashes beyond the native window."""

    @abstractmethod
    def lookup(self, block_number: int) -> Optional[bytes]:
        """Return the recorded hash for block_number, or None."""
        pass


class BlockHashRecorder(HistoricalHashOracle):
    """
    In-memory oracle that captures hashes while they are still recent.

    A recorded hash is never replaced by a different one.
    """

    def __init__(self):
        self._recorded: Dict[int, bytes] = {}
        self._lock = threading.Lock()

    def record(self, block_number: int, block_hash: bytes) -> None:
        block_hash = _check_hash(block_hash)
        if is_zero_hash(block_hash):
            raise ValueError("cannot record the zero hash")
        with self._lock:
            existing = self._recorded.get(block_number)
            if existing is not None and existing != block_hash:
                raise ValueError(f"block {block_number} already recorded with a different hash")
            self._recorded[block_number] = block_hash

    def capture(self, recent: RecentBlockHashes, block_number: int) -> bytes:
        """Copy a hash from the recent source before it leaves the window."""
        block_hash = recent.get(block_number)
        if block_hash is None:
            raise BlockHashUnavailable(
                "Block is not in the recent window",
                observed=str(block_number)
            )
        self.record(block_number, block_hash)
        logger.info("recorded hash for block %d", block_number)
        return block_hash

    def lookup(self, block_number: int) -> Optional[bytes]:
        with self._lock:
            return _usable(self._recorded.get(block_number))

    def __len__(self) -> int:
        return len(self._recorded)


class JsonFileHashOracle(HistoricalHashOracle):
    """
    Oracle backed by a JSON snapshot file:

        {"block_hashes": {"19000000": "0xabc...", ...}}

    The file is reloaded after the configured cache TTL.
    """

    def __init__(self, path: str):
        self.path = path

    def lookup(self, block_number: int) -> Optional[bytes]:
        snapshot = OracleSnapshot.model_validate(load_json_cached(self.path))
        return _usable(snapshot.block_hashes.get(block_number))


class ChainedHashSource:
    """Recent source first, historical oracle second."""

    def __init__(
        self,
        recent: Optional[RecentBlockHashes] = None,
        oracle: Optional[HistoricalHashOracle] = None
    ):
        self.recent = recent or NoRecentBlockHashes()
        self.oracle = oracle

    def trusted_hash(self, block_number: int) -> Optional[bytes]:
        block_hash = _usable(self.recent.get(block_number))
        if block_hash is not None:
            logger.debug("block %d hash from recent source", block_number)
            return block_hash
        if self.oracle is None:
            return None
        block_hash = _usable(self.oracle.lookup(block_number))
        if block_hash is not None:
            logger.debug("block %d hash from historical oracle", block_number)
        return block_hash
