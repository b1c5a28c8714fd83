#!/usr/bin/env python3
# tests/controller_tests/batch_reward_tests.py
#
# Batch reward claims chain through one local snapshot of the account tree:
# claim i spends the account produced by claim i - 1.

import os
import sys

from eth_abi import decode

THIS_FILE = os.path.abspath(__file__)
THIS_DIR = os.path.dirname(THIS_FILE)
PROJECT_ROOT = os.path.abspath(os.path.join(THIS_DIR, "..", ".."))
for p in (THIS_DIR, PROJECT_ROOT):
    if p not in sys.path:
        sys.path.insert(0, p)

from acct import Account
from controller.utils import REWARD_ARGS_TYPE
from controller_fixtures import FAKE_PROOF, World, run
from tools import to_fixed_hex, to_int, turn_hex_str_to_bytes


def _batch_world():
    world = World()
    world.register_noise(2)
    notes = [
        world.register_note(deposit_block=10, withdrawal_block=5770),
        world.register_note(deposit_block=100, withdrawal_block=200),
        world.register_note(deposit_block=300, withdrawal_block=301),
    ]
    return world, notes


def test_batch_chains_accounts():
    print("=== batch of three claims ===")
    world, notes = _batch_world()
    batch = run(world.controller.batch_claim_reward(Account(world.hasher), notes, world.public_key))

    assert len(batch.proofs) == 3
    assert len(batch.args) == 3
    assert batch.proofs[-1].account.amount == 57600 + 1000 + 10

    i = 1
    while i < len(batch.proofs):
        prev = batch.proofs[i - 1].args["account"]
        cur = batch.proofs[i].args["account"]
        assert cur["inputRoot"] == prev["outputRoot"]
        assert cur["outputPathIndices"] == to_fixed_hex(i)
        assert cur["inputNullifierHash"] == to_fixed_hex(batch.proofs[i - 1].account.nullifier_hash)
        i += 1


def test_batch_args_are_abi_encoded():
    world, notes = _batch_world()
    batch = run(world.controller.batch_claim_reward(Account(world.hasher), notes, world.public_key))

    proof_bytes, reward_args = decode(["bytes", REWARD_ARGS_TYPE], turn_hex_str_to_bytes(batch.args[0]))
    first = batch.proofs[0].args
    assert proof_bytes == turn_hex_str_to_bytes(FAKE_PROOF)
    assert reward_args[0] == to_int(first["rate"])
    assert reward_args[2].lower() == first["instance"]
    assert "0x" + reward_args[3].hex() == first["rewardNullifier"]
    assert reward_args[7][1] == turn_hex_str_to_bytes(first["extData"]["sealedAccount"])
    assert reward_args[8][3] == 0


def test_batch_submitted_in_order():
    world, notes = _batch_world()
    batch = run(world.controller.batch_claim_reward(Account(world.hasher), notes, world.public_key))

    for result in batch.proofs:
        world.ledger.submit_reward(result.proof, result.args)

    assert world.ledger.account_tree.size() == 3
    assert to_fixed_hex(world.ledger.last_account_root()) == batch.proofs[-1].args["account"]["outputRoot"]


def main() -> None:
    test_batch_chains_accounts()
    test_batch_args_are_abi_encoded()
    test_batch_submitted_in_order()
    print("=== all batch reward tests finished ===")


if __name__ == "__main__":
    main()
