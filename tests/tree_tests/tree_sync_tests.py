#!/usr/bin/env python3
# tests/tree_tests/tree_sync_tests.py
#
# Tree replay from ledger events:
#   - delivery order does not matter, the explicit index does
#   - exact duplicates are dropped, conflicting duplicates and gaps fail
#   - locate() returns Found / NotFound, zero_path() is all zeros
#   - append_and_diff() and root_status()

import asyncio
import os
import sys

import pytest

THIS_FILE = os.path.abspath(__file__)
THIS_DIR = os.path.dirname(THIS_FILE)
PROJECT_ROOT = os.path.abspath(os.path.join(THIS_DIR, "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from errors import InconsistentLedgerData, LedgerUnavailable, TreeCapacityExceeded
from ledger import DEPOSIT_EVENT, REGISTRY_CONTRACT, InMemoryLedger
from merkle_tree import MerkleTree, compute_root_from_path
from tools import to_fixed_hex
from tree_sync import (
    Found,
    LeafRecord,
    NotFound,
    RootStatus,
    SyncState,
    TreeMirror,
    TreeSynchronizer,
)
from wrappers.hash_wrapper import get_hasher

HASHER = get_hasher()
LEVELS = 6
INSTANCE = "0x" + "aa" * 20


def _records(count):
    out = []
    i = 0
    while i < count:
        out.append(LeafRecord(instance=INSTANCE, hash=to_fixed_hex(1000 + i), block=i, index=i))
        i += 1
    return out


def _leaf(rec):
    return HASHER.hash([rec.instance, rec.hash, rec.block])


def _mirror():
    return TreeMirror("deposit", LEVELS, HASHER, _leaf)


def test_state_machine():
    mirror = _mirror()
    assert mirror.state is SyncState.EMPTY
    mirror.replay(_records(3))
    assert mirror.state is SyncState.SYNCED
    assert mirror.size() == 3


def test_replay_ignores_delivery_order():
    print("=== replay order ===")
    records = _records(7)
    in_order = _mirror().replay(records)
    shuffled = _mirror().replay([records[i] for i in (3, 0, 6, 1, 5, 2, 4)])
    assert in_order.root() == shuffled.root()

    expected = MerkleTree(LEVELS, [_leaf(r) for r in records], hasher=HASHER)
    assert in_order.root() == expected.root()


def test_replay_drops_exact_duplicates():
    records = _records(4)
    mirror = _mirror().replay(records + [records[1], records[3]])
    assert mirror.size() == 4
    assert mirror.root() == _mirror().replay(records).root()


def test_replay_rejects_conflicting_duplicate():
    records = _records(3)
    forged = LeafRecord(instance=INSTANCE, hash=to_fixed_hex(1), block=1, index=1)
    with pytest.raises(InconsistentLedgerData) as excinfo:
        _mirror().replay(records + [forged])
    assert excinfo.value.tree_name == "deposit"


def test_replay_rejects_gap():
    records = _records(4)
    with pytest.raises(InconsistentLedgerData):
        _mirror().replay([records[0], records[1], records[3]])
    with pytest.raises(InconsistentLedgerData):
        _mirror().replay(records[1:])


def test_failed_replay_keeps_previous_state():
    mirror = _mirror()
    with pytest.raises(TreeCapacityExceeded):
        mirror.replay(_records(2 ** LEVELS))
    assert mirror.state is SyncState.EMPTY
    assert mirror.size() == 0

    mirror.replay(_records(3))
    root = mirror.root()
    records = _records(4)
    with pytest.raises(InconsistentLedgerData):
        mirror.replay([records[0], records[2], records[3]])
    assert mirror.state is SyncState.SYNCED
    assert mirror.size() == 3
    assert mirror.root() == root


def test_locate_and_zero_path():
    mirror = _mirror().replay(_records(5))
    target = to_fixed_hex(1003)

    found = mirror.locate(lambda rec: rec.hash == target)
    assert found == Found(3)
    path = mirror.path(found.index)
    leaf = _leaf(mirror.records[3])
    assert compute_root_from_path(HASHER, leaf, path["path_elements"], path["path_indices"]) == mirror.root()

    missing = mirror.locate(lambda rec: rec.hash == to_fixed_hex(1))
    assert isinstance(missing, NotFound)

    zero = mirror.zero_path()
    assert zero["path_elements"] == [0] * LEVELS
    assert zero["path_indices"] == [0] * LEVELS


def test_append_and_diff():
    mirror = TreeMirror("account", LEVELS, HASHER).replay([])
    old_root = mirror.root()
    snap = mirror.snapshot()

    update = mirror.append_and_diff(777)
    assert update.old_root == old_root
    assert update.new_root == mirror.root()
    assert update.leaf == 777
    assert update.path_indices == 0
    assert compute_root_from_path(HASHER, 777, update.path_elements, update.path_indices) == update.new_root

    second = mirror.append_and_diff(888)
    assert second.old_root == update.new_root
    assert second.path_indices == 1
    assert snap.size() == 0
    assert snap.root() == old_root


def test_root_status():
    mirror = TreeMirror("account", LEVELS, HASHER).replay([])
    committed = to_fixed_hex(mirror.root())
    assert mirror.root_status(committed) is RootStatus.CURRENT
    mirror.append_and_diff(1)
    assert mirror.root_status(committed) is RootStatus.OUTDATED


def test_synchronizer_with_shuffled_ledger():
    print("\n=== synchronizer vs shuffled ledger ===")
    ordered = InMemoryLedger(LEVELS, HASHER)
    shuffled = InMemoryLedger(LEVELS, HASHER, shuffle_seed=1234)
    i = 0
    while i < 12:
        for ledger in (ordered, shuffled):
            ledger.register_deposit(INSTANCE, 5000 + i, block=i)
        i += 1

    events = asyncio.run(shuffled.get_past_events(REGISTRY_CONTRACT, DEPOSIT_EVENT))
    assert [e["index"] for e in events] != list(range(12))

    a = asyncio.run(TreeSynchronizer(ordered, LEVELS, HASHER).deposit_tree())
    b = asyncio.run(TreeSynchronizer(shuffled, LEVELS, HASHER).deposit_tree())
    assert a.root() == b.root()
    assert a.root() == ordered.deposit_tree.root()


def test_synchronizer_account_tree_from_leaves():
    ledger = InMemoryLedger(LEVELS, HASHER)
    sync = TreeSynchronizer(ledger, LEVELS, HASHER)

    empty = asyncio.run(sync.account_tree())
    assert empty.size() == 0
    assert empty.root() == MerkleTree(LEVELS, hasher=HASHER).root()

    given = asyncio.run(sync.account_tree([11, 22, 33]))
    assert given.size() == 3
    assert given.locate(lambda rec: rec.commitment == 22) == Found(1)


def test_synchronizer_propagates_outage():
    ledger = InMemoryLedger(LEVELS, HASHER)
    ledger.set_available(False)
    with pytest.raises(LedgerUnavailable):
        asyncio.run(TreeSynchronizer(ledger, LEVELS, HASHER).withdrawal_tree())


def main() -> None:
    test_state_machine()
    test_failed_replay_keeps_previous_state()
    test_replay_ignores_delivery_order()
    test_replay_drops_exact_duplicates()
    test_replay_rejects_conflicting_duplicate()
    test_replay_rejects_gap()
    test_locate_and_zero_path()
    test_append_and_diff()
    test_root_status()
    test_synchronizer_with_shuffled_ledger()
    test_synchronizer_account_tree_from_leaves()
    test_synchronizer_propagates_outage()
    print("=== all tree sync tests finished ===")


if __name__ == "__main__":
    main()
