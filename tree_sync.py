# tree_sync.py
# Rebuild the deposit, withdrawal and account trees from ledger events.
#
# Each tree mirror goes through EMPTY -> REPLAYING -> SYNCED. Replays always
# start from a fresh tree and follow the explicit `index` field of each
# event, never the order in which the ledger delivered them.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Union

from errors import InconsistentLedgerData, MiningError
from ledger import (
    DEPOSIT_EVENT,
    MINER_CONTRACT,
    NEW_ACCOUNT_EVENT,
    REGISTRY_CONTRACT,
    WITHDRAWAL_EVENT,
)
from merkle_tree import MerkleTree
from tools import ADDRESS_BYTES, bits_to_number, short_hex, to_fixed_hex, to_int

logger = logging.getLogger(__name__)

DEPOSIT_TREE = "deposit"
WITHDRAWAL_TREE = "withdrawal"
ACCOUNT_TREE = "account"


class SyncState(Enum):
    EMPTY = "empty"
    REPLAYING = "replaying"
    SYNCED = "synced"


class RootStatus(Enum):
    CURRENT = "current"
    OUTDATED = "outdated"


@dataclass(frozen=True)
class LeafRecord:
    """One deposit/withdrawal registry entry, as read from the ledger."""

    instance: str
    hash: str
    block: int
    index: int

    @classmethod
    def from_event(cls, values: dict) -> "LeafRecord":
        return cls(
            instance=to_fixed_hex(values["instance"], ADDRESS_BYTES),
            hash=to_fixed_hex(values["hash"]),
            block=to_int(values["block"]),
            index=to_int(values["index"]),
        )


@dataclass(frozen=True)
class AccountRecord:
    commitment: int
    index: int


@dataclass(frozen=True)
class Found:
    index: int


@dataclass(frozen=True)
class NotFound:
    pass


Located = Union[Found, NotFound]


@dataclass
class TreeUpdate:
    """Old/new root and insertion path for one appended leaf."""

    old_root: int
    new_root: int
    leaf: int
    path_indices: int
    path_elements: List[int] = field(default_factory=list)


def _order_by_index(tree_name, records):
    """
    Sort by explicit index, drop exact duplicates and reject conflicting
    duplicates or gaps.
    """
    by_index = {}
    for rec in records:
        seen = by_index.get(rec.index)
        if seen is None:
            by_index[rec.index] = rec
        elif seen != rec:
            raise InconsistentLedgerData(
                tree_name, "conflicting events for leaf index %d" % rec.index
            )

    ordered = [by_index[i] for i in sorted(by_index)]
    i = 0
    while i < len(ordered):
        if ordered[i].index != i:
            raise InconsistentLedgerData(
                tree_name, "missing leaf index %d (next seen %d)" % (i, ordered[i].index)
            )
        i += 1
    return ordered


class TreeMirror:
    """
    Client-side mirror of one on-chain tree.

    `records` holds the source entries (LeafRecord / AccountRecord) in index
    order, parallel to the tree leaves, so lookups can match on any field.
    """

    def __init__(self, name, levels, hasher, leaf_fn: Optional[Callable] = None):
        self.name = name
        self.levels = levels
        self.hasher = hasher
        self.leaf_fn = leaf_fn
        self.state = SyncState.EMPTY
        self.records = []
        self.tree = MerkleTree(levels, hasher=hasher)

    # ---------------- replay ----------------
    def replay(self, records):
        """
        Rebuild the tree from `records`. On failure the mirror keeps its
        previous records, tree and state.
        """
        previous = self.state
        self.state = SyncState.REPLAYING
        try:
            ordered = _order_by_index(self.name, records)

            tree = MerkleTree(self.levels, hasher=self.hasher)
            leaves = []
            for rec in ordered:
                leaves.append(self._leaf_of(rec))
            tree.bulk_insert(leaves)
        except MiningError:
            self.state = previous
            raise

        self.records = ordered
        self.tree = tree
        self.state = SyncState.SYNCED
        logger.debug(
            "[SYNC][%s] replayed %d leaves, root = %s",
            self.name,
            len(ordered),
            short_hex(to_fixed_hex(tree.root())),
        )
        return self

    def _leaf_of(self, rec):
        if self.leaf_fn is not None:
            return self.leaf_fn(rec)
        if isinstance(rec, AccountRecord):
            return rec.commitment
        return to_int(rec)

    # ---------------- queries ----------------
    def root(self):
        return self.tree.root()

    def size(self):
        return self.tree.size()

    def locate(self, predicate) -> Located:
        i = 0
        while i < len(self.records):
            if predicate(self.records[i]):
                return Found(i)
            i += 1
        return NotFound()

    def path(self, index):
        return self.tree.path(index)

    def zero_path(self):
        return {
            "path_elements": [0] * self.levels,
            "path_indices": [0] * self.levels,
        }

    def root_status(self, committed_root) -> RootStatus:
        if to_int(committed_root) == self.root():
            return RootStatus.CURRENT
        return RootStatus.OUTDATED

    # ---------------- mutation ----------------
    def append_and_diff(self, leaf) -> TreeUpdate:
        leaf = to_int(leaf)
        old_root = self.tree.root()
        self.tree.insert(leaf)
        self.records.append(AccountRecord(commitment=leaf, index=len(self.records)))
        new_root = self.tree.root()
        path = self.tree.path(self.tree.size() - 1)
        return TreeUpdate(
            old_root=old_root,
            new_root=new_root,
            leaf=leaf,
            path_indices=bits_to_number(path["path_indices"]),
            path_elements=path["path_elements"],
        )

    def snapshot(self) -> "TreeMirror":
        clone = TreeMirror(self.name, self.levels, self.hasher, self.leaf_fn)
        clone.state = self.state
        clone.records = list(self.records)
        clone.tree = self.tree.copy()
        return clone


class TreeSynchronizer:
    """
    Builds fresh tree mirrors from the ledger. Holds no cache: every call
    re-reads the events, unless the caller passes its own account leaves.
    """

    def __init__(self, ledger, levels, hasher):
        self.ledger = ledger
        self.levels = levels
        self.hasher = hasher

    def registry_leaf(self, rec: LeafRecord) -> int:
        return self.hasher.hash([rec.instance, rec.hash, rec.block])

    async def _fetch_registry(self, event_name):
        events = await self.ledger.get_past_events(REGISTRY_CONTRACT, event_name)
        return [LeafRecord.from_event(e) for e in events]

    async def deposit_tree(self) -> TreeMirror:
        records = await self._fetch_registry(DEPOSIT_EVENT)
        mirror = TreeMirror(DEPOSIT_TREE, self.levels, self.hasher, self.registry_leaf)
        return mirror.replay(records)

    async def withdrawal_tree(self) -> TreeMirror:
        records = await self._fetch_registry(WITHDRAWAL_EVENT)
        mirror = TreeMirror(WITHDRAWAL_TREE, self.levels, self.hasher, self.registry_leaf)
        return mirror.replay(records)

    async def fetch_account_commitments(self) -> List[int]:
        events = await self.ledger.get_past_events(MINER_CONTRACT, NEW_ACCOUNT_EVENT)
        records = [
            AccountRecord(commitment=to_int(e["commitment"]), index=to_int(e["index"]))
            for e in events
        ]
        return [rec.commitment for rec in _order_by_index(ACCOUNT_TREE, records)]

    async def account_tree(self, commitments=None) -> TreeMirror:
        if commitments is None:
            commitments = await self.fetch_account_commitments()
        records = []
        i = 0
        while i < len(commitments):
            records.append(AccountRecord(commitment=to_int(commitments[i]), index=i))
            i += 1
        mirror = TreeMirror(ACCOUNT_TREE, self.levels, self.hasher)
        return mirror.replay(records)
