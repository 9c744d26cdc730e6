import threading

import pytest

from inheritable.errors import InheritanceNotReady
from inheritable.inheritance import (
    AccountState,
    Checkpoint,
    InheritableAccount,
    InheritanceConfig,
    InheritanceStateMachine,
    normalize_address,
)
from inheritable.state_proof import StateProofVerifier
from inheritable.store import InMemoryStateStore, SqliteStateStore

from helpers import FakeChain

ACCOUNT = normalize_address("0x" + "aa" * 20)
INHERITOR = normalize_address("0x" + "bb" * 20)


def _state(nonce=5, timestamp=1000, claimed=False):
    return AccountState(
        account=ACCOUNT,
        config=InheritanceConfig(inheritor=INHERITOR, delay=86400),
        checkpoint=Checkpoint(last_nonce=nonce, last_timestamp=timestamp, claimed=claimed),
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryStateStore()
    else:
        s = SqliteStateStore(str(tmp_path / "state.db"))
        yield s
        s.close()


def test_unknown_account_is_fresh(store):
    state = store.load(ACCOUNT)
    assert state.account == ACCOUNT
    assert state.config.is_empty()
    assert state.checkpoint == Checkpoint()


def test_save_and_load(store):
    store.save(_state())
    loaded = store.load(ACCOUNT.lower())
    assert loaded.to_dict() == _state().to_dict()
    assert store.accounts() == [ACCOUNT]


def test_loads_are_copies(store):
    store.save(_state())
    loaded = store.load(ACCOUNT)
    loaded.checkpoint.last_nonce = 99
    assert store.load(ACCOUNT).checkpoint.last_nonce == 5


def test_overwrite(store):
    store.save(_state())
    store.save(_state(nonce=0, timestamp=0, claimed=True))
    loaded = store.load(ACCOUNT)
    assert loaded.checkpoint.claimed is True
    assert loaded.checkpoint.last_nonce == 0


def test_delete(store):
    store.save(_state())
    assert store.delete(ACCOUNT) is True
    assert store.delete(ACCOUNT) is False
    assert store.load(ACCOUNT).config.is_empty()


def test_sqlite_large_nonce(sqlite_store):
    sqlite_store.save(_state(nonce=2**70))
    assert sqlite_store.load(ACCOUNT).checkpoint.last_nonce == 2**70


def test_sqlite_large_delay_and_timestamp(sqlite_store):
    state = _state(timestamp=2**63)
    state.config.delay = 2**64
    sqlite_store.save(state)
    loaded = sqlite_store.load(ACCOUNT)
    assert loaded.config.delay == 2**64
    assert loaded.checkpoint.last_timestamp == 2**63


def test_sqlite_account_with_large_values(sqlite_store):
    chain = FakeChain()
    machine = InheritanceStateMachine(StateProofVerifier(oracle=chain.oracle))
    account = InheritableAccount(ACCOUNT, machine, sqlite_store)

    account.set_config(INHERITOR, 2**63, caller_is_authority=True)
    account.record(*chain.observe(bytes.fromhex("aa" * 20), 5, 2**63))
    with pytest.raises(InheritanceNotReady):
        account.claim(*chain.observe(bytes.fromhex("aa" * 20), 5, 2**63 + 1))

    state = sqlite_store.load(ACCOUNT)
    assert state.config.delay == 2**63
    assert state.checkpoint.last_timestamp == 2**63
    assert state.checkpoint.last_nonce == 5


def test_sqlite_persists_across_instances(tmp_path):
    path = str(tmp_path / "state.db")
    first = SqliteStateStore(path)
    first.save(_state())
    first.close()

    second = SqliteStateStore(path)
    assert second.load(ACCOUNT).config.delay == 86400
    second.close()


def test_sqlite_reset(sqlite_store):
    sqlite_store.save(_state())
    sqlite_store.reset()
    assert sqlite_store.accounts() == []


def test_sqlite_connection_per_thread(sqlite_store):
    sqlite_store.save(_state())
    seen = []

    def worker():
        seen.append(sqlite_store.load(ACCOUNT).checkpoint.last_nonce)
        sqlite_store.close()

    t = threading.Thread(target=worker)
    t.start()
    t.join()
    assert seen == [5]
