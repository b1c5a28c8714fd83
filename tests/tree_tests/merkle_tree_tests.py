#!/usr/bin/env python3
# tests/tree_tests/merkle_tree_tests.py
#
# Fixed-height Merkle tree:
#   - bulk insert and one-by-one insert give the same root
#   - capacity is 2**levels - 1, overflow leaves the tree untouched
#   - every path folds back to the root

import os
import sys

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

THIS_FILE = os.path.abspath(__file__)
THIS_DIR = os.path.dirname(THIS_FILE)
PROJECT_ROOT = os.path.abspath(os.path.join(THIS_DIR, "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from errors import TreeCapacityExceeded
from merkle_tree import ZERO_VALUE, MerkleTree, compute_root_from_path
from tools import FIELD_SIZE, short_hex
from wrappers.hash_wrapper import get_hasher

HASHER = get_hasher()


def test_empty_tree_root():
    tree = MerkleTree(4, hasher=HASHER)
    zeros = tree.zeros()
    assert zeros[0] == ZERO_VALUE
    assert zeros[1] == HASHER.hash2(ZERO_VALUE, ZERO_VALUE)
    assert tree.root() == zeros[4]
    assert tree.size() == 0
    assert tree.capacity == 15


def test_hasher_is_required():
    with pytest.raises(ValueError):
        MerkleTree(4)
    with pytest.raises(ValueError):
        MerkleTree(0, hasher=HASHER)


def test_bulk_equals_single_insert():
    print("=== bulk vs single insert ===")
    leaves = [HASHER.hash([i]) for i in range(11)]

    bulk = MerkleTree(5, leaves, hasher=HASHER)
    single = MerkleTree(5, hasher=HASHER)
    for leaf in leaves:
        single.insert(leaf)
    mixed = MerkleTree(5, leaves[:4], hasher=HASHER)
    mixed.bulk_insert(leaves[4:])

    print("root:", short_hex(hex(bulk.root())))
    assert bulk.root() == single.root()
    assert bulk.root() == mixed.root()
    assert bulk.elements() == leaves


def test_capacity():
    tree = MerkleTree(2, hasher=HASHER)
    tree.bulk_insert([1, 2, 3])
    root = tree.root()

    with pytest.raises(TreeCapacityExceeded) as excinfo:
        tree.insert(4)
    assert excinfo.value.levels == 2
    assert excinfo.value.size == 3
    assert tree.size() == 3
    assert tree.root() == root

    with pytest.raises(TreeCapacityExceeded):
        MerkleTree(2, [1, 2, 3, 4], hasher=HASHER)

    other = MerkleTree(2, [1], hasher=HASHER)
    with pytest.raises(TreeCapacityExceeded):
        other.bulk_insert([2, 3, 4])
    assert other.size() == 1


def test_paths_fold_to_root():
    leaves = [HASHER.hash([i, i]) for i in range(9)]
    tree = MerkleTree(6, leaves, hasher=HASHER)
    i = 0
    while i < len(leaves):
        path = tree.path(i)
        assert len(path["path_elements"]) == 6
        assert compute_root_from_path(HASHER, leaves[i], path["path_elements"], path["path_indices"]) == tree.root()
        i += 1

    with pytest.raises(IndexError):
        tree.path(9)
    with pytest.raises(IndexError):
        tree.path(-1)


def test_update_and_index_of():
    tree = MerkleTree(3, [10, 20, 30], hasher=HASHER)
    assert tree.index_of(20) == 1
    assert tree.index_of("0x14") == 1
    assert tree.index_of(99) == -1

    tree.update(1, 99)
    expected = MerkleTree(3, [10, 99, 30], hasher=HASHER)
    assert tree.root() == expected.root()
    assert tree.index_of(99) == 1

    with pytest.raises(IndexError):
        tree.update(3, 1)


def test_copy_is_independent():
    tree = MerkleTree(3, [1, 2], hasher=HASHER)
    clone = tree.copy()
    clone.insert(3)
    assert tree.size() == 2
    assert clone.size() == 3
    assert tree.root() != clone.root()


@settings(max_examples=30, deadline=None)
@given(st.lists(st.integers(min_value=0, max_value=FIELD_SIZE - 1), max_size=15))
def test_bulk_equals_single_property(leaves):
    bulk = MerkleTree(4, leaves, hasher=HASHER)
    single = MerkleTree(4, hasher=HASHER)
    for leaf in leaves:
        single.insert(leaf)
    assert bulk.root() == single.root()


def main() -> None:
    test_empty_tree_root()
    test_hasher_is_required()
    test_bulk_equals_single_insert()
    test_capacity()
    test_paths_fold_to_root()
    test_update_and_index_of()
    test_copy_is_independent()
    print("=== all merkle tree tests finished ===")


if __name__ == "__main__":
    main()
