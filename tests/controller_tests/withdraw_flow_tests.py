#!/usr/bin/env python3
# tests/controller_tests/withdraw_flow_tests.py
#
# Withdrawal flow:
#   - the spent account must be a leaf of the account tree (UnknownAccount)
#   - public amount = amount + fee, new balance = old - amount - fee
#   - the ledger accepts the withdrawal and pays out through the swap pool

import os
import sys

import pytest

THIS_FILE = os.path.abspath(__file__)
THIS_DIR = os.path.dirname(THIS_FILE)
PROJECT_ROOT = os.path.abspath(os.path.join(THIS_DIR, "..", ".."))
for p in (THIS_DIR, PROJECT_ROOT):
    if p not in sys.path:
        sys.path.insert(0, p)

from acct import Account, unseal
from config import DEFAULT_CONFIG
from controller_fixtures import RECIPIENT, RELAYER, World, run
from errors import InvalidAmount, LedgerRejected, UnknownAccount
from merkle_tree import compute_root_from_path
from reward_swap import RewardSwap
from tools import to_fixed_hex, to_int


def _funded_world(reward_swap=None):
    world = World(reward_swap=reward_swap)
    note = world.register_note()
    claimed = run(world.controller.claim_reward(Account(world.hasher), note, world.public_key))
    world.ledger.submit_reward(claimed.proof, claimed.args)
    return world, claimed.account


def test_withdraw_amounts_and_args():
    print("=== withdraw 10000 with fee 600 ===")
    world, account = _funded_world()

    result = run(
        world.controller.withdraw(
            account, 10000, RECIPIENT, world.public_key, fee=600, relayer=RELAYER
        )
    )
    print("remaining:", result.account.amount)

    assert result.account.amount == 57600 - 10000 - 600
    assert result.args["amount"] == to_fixed_hex(10600)
    assert result.args["extData"]["fee"] == to_fixed_hex(600)
    assert result.args["extData"]["recipient"] == RECIPIENT
    assert result.args["extData"]["relayer"] == RELAYER
    assert result.args["extDataHash"].startswith("0x00")

    opened = unseal(world.hasher, world.private_key, result.args["extData"]["sealedAccount"])
    assert opened.amount == 47000

    witness = world.prover.last_witness("withdraw")
    assert witness["amount"] == "10600"
    assert witness["inputAmount"] == "57600"
    # the spent account is leaf 0, with a real path
    root = compute_root_from_path(
        world.hasher,
        account.commitment,
        witness["inputPathElements"],
        int(witness["inputPathIndices"]),
    )
    assert root == to_int(witness["inputRoot"])
    assert root == world.ledger.last_account_root()


def test_withdraw_accepted_with_swap_payout():
    swap = RewardSwap.from_config(DEFAULT_CONFIG)
    world, account = _funded_world(reward_swap=swap)

    result = run(world.controller.withdraw(account, 50000, RECIPIENT, world.public_key, fee=100))
    tokens = world.ledger.submit_withdraw(result.proof, result.args)

    print("tokens paid:", tokens)
    assert tokens > 0
    assert swap.tokens_sold == tokens
    assert world.ledger.payouts[-1]["points"] == 50000
    assert world.ledger.account_tree.size() == 2


def test_withdraw_tampered_recipient_rejected():
    world, account = _funded_world()
    result = run(world.controller.withdraw(account, 100, RECIPIENT, world.public_key))

    result.args["extData"]["recipient"] = RELAYER
    with pytest.raises(LedgerRejected) as excinfo:
        world.ledger.submit_withdraw(result.proof, result.args)
    assert excinfo.value.reason == "Incorrect external data hash"


def test_withdraw_unknown_account():
    world, _ = _funded_world()
    stranger = Account(world.hasher, amount=1000)

    with pytest.raises(UnknownAccount) as excinfo:
        run(world.controller.withdraw(stranger, 10, RECIPIENT, world.public_key))
    assert excinfo.value.commitment == to_fixed_hex(stranger.commitment)
    assert world.prover.last_witness("withdraw") is None


def test_withdraw_more_than_balance():
    world, account = _funded_world()

    with pytest.raises(InvalidAmount):
        run(world.controller.withdraw(account, 57600, RECIPIENT, world.public_key, fee=1))


def main() -> None:
    test_withdraw_amounts_and_args()
    test_withdraw_accepted_with_swap_payout()
    test_withdraw_tampered_recipient_rejected()
    test_withdraw_unknown_account()
    test_withdraw_more_than_balance()
    print("=== all withdraw flow tests finished ===")


if __name__ == "__main__":
    main()
