"""
Storage for governed account state.

Stores hand out copies: an operation works on its own AccountState and the
result is written back only when the operation succeeded.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional

from .config import DB_PATH
from .inheritance import AccountState, Checkpoint, InheritanceConfig, normalize_address


class StateStore(ABC):
    """
    Abstract interface for per-account configuration and checkpoints.

    Implementations must be:
    - Consistent (a save is applied entirely or not at all)
    - Isolated (callers never share a mutable state object)
    """

    @abstractmethod
    def load(self, account: str) -> AccountState:
        """Return the account's state, or a fresh zero state if unknown."""
        pass

    @abstractmethod
    def save(self, state: AccountState) -> None:
        pass

    @abstractmethod
    def delete(self, account: str) -> bool:
        """Forget an account. Returns True if it was stored."""
        pass

    @abstractmethod
    def accounts(self) -> List[str]:
        pass


class InMemoryStateStore(StateStore):
    """
    In-memory store for development/testing.

    Not persistent across restarts.
    """

    def __init__(self):
        self._states: Dict[str, AccountState] = {}
        self._lock = threading.Lock()

    def load(self, account: str) -> AccountState:
        account = normalize_address(account)
        with self._lock:
            state = self._states.get(account)
            return state.copy() if state else AccountState(account=account)

    def save(self, state: AccountState) -> None:
        with self._lock:
            self._states[state.account] = state.copy()

    def delete(self, account: str) -> bool:
        with self._lock:
            return self._states.pop(normalize_address(account), None) is not None

    def accounts(self) -> List[str]:
        with self._lock:
            return sorted(self._states)


class SqliteStateStore(StateStore):
    """
    SQLite-backed store.

    One thread-local connection per store; each save is a single
    transaction.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = Path(db_path or DB_PATH)
        self._local = threading.local()
        self.init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a thread-local database connection.
        Connections are reused within the same thread.
        """
        if getattr(self._local, 'conn', None) is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return self._local.conn

    @contextmanager
    def _transaction(self):
        """
        Context manager for database transactions.
        Automatically commits on success, rolls back on failure.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init_db(self) -> None:
        """
        Initialize database schema.
        Safe to call multiple times (uses IF NOT EXISTS).
        """
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS account_state (
                account TEXT PRIMARY KEY,
                inheritor TEXT NOT NULL,
                delay TEXT NOT NULL DEFAULT '0',
                last_nonce TEXT NOT NULL DEFAULT '0',
                last_timestamp TEXT NOT NULL DEFAULT '0',
                claimed INTEGER NOT NULL DEFAULT 0,
                updated_at INTEGER DEFAULT (strftime('%s', 'now'))
            );""")

    def load(self, account: str) -> AccountState:
        account = normalize_address(account)
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT inheritor, delay, last_nonce, last_timestamp, claimed "
            "FROM account_state WHERE account=?",
            (account,)
        )
        row = cur.fetchone()
        if row is None:
            return AccountState(account=account)
        # Delays, nonces and header timestamps may exceed SQLite's signed
        # 64-bit INTEGER range, so they are stored as decimal text
        return AccountState(
            account=account,
            config=InheritanceConfig(inheritor=row['inheritor'], delay=int(row['delay'])),
            checkpoint=Checkpoint(
                last_nonce=int(row['last_nonce']),
                last_timestamp=int(row['last_timestamp']),
                claimed=bool(row['claimed']),
            ),
        )

    def save(self, state: AccountState) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO account_state"
                "(account, inheritor, delay, last_nonce, last_timestamp, claimed, updated_at) "
                "VALUES(?,?,?,?,?,?,strftime('%s','now'))",
                (
                    state.account,
                    state.config.inheritor,
                    str(state.config.delay),
                    str(state.checkpoint.last_nonce),
                    str(state.checkpoint.last_timestamp),
                    int(state.checkpoint.claimed),
                )
            )

    def delete(self, account: str) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "DELETE FROM account_state WHERE account=?",
                (normalize_address(account),)
            )
            return cur.rowcount == 1

    def accounts(self) -> List[str]:
        conn = self._get_connection()
        cur = conn.execute("SELECT account FROM account_state ORDER BY account ASC")
        return [row['account'] for row in cur.fetchall()]

    def reset(self) -> None:
        """Clear all rows but keep the schema (test isolation)."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM account_state")

    def close(self) -> None:
        """Close the thread-local connection."""
        if getattr(self._local, 'conn', None) is not None:
            self._local.conn.close()
            self._local.conn = None
