#!/usr/bin/env python3
# demo/demo_mining_flow.py
# Demo:
#   1) Alice deposits into a pool and withdraws 5760 blocks later.
#   2) She claims her anonymity points into a fresh account (batch of two notes).
#   3) Bob's claim lands first, so Alice's next claim needs a tree-update proof.
#   4) Alice withdraws part of her points through the swap pool.
#
# Proofs come from a stand-in prover: the in-memory ledger does not verify
# them, everything else (trees, roots, nullifiers, sealed accounts, external
# data hashes) is checked for real.

import asyncio
import logging
import os
import sys

THIS_FILE = os.path.abspath(__file__)
THIS_DIR = os.path.dirname(THIS_FILE)
PROJECT_ROOT = os.path.abspath(os.path.join(THIS_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from acct import Account, unseal
from config import load_config
from controller.core import Controller
from errors import LedgerRejected
from ledger import InMemoryLedger
from note import Note
from reward_swap import RewardSwap
from tools import short_hex
from tree_sync import RootStatus
from wrappers.hash_wrapper import get_hasher
from wrappers.sealed_box_wrapper import get_encryption_public_key
from wrappers.zkproof_wrapper import CircuitDescriptor, ProofData, Prover, ProvingKeys

POOL = "0x" + "5e" * 20
RECIPIENT = "0x" + "a1" * 20


class StandInProver(Prover):
    async def prove(self, witness, circuit):
        return ProofData(proof="0x" + "00" * 256, public_signals=[])


def _register(ledger, hasher, deposit_block, withdrawal_block):
    note = Note(hasher, instance=POOL, deposit_block=deposit_block, withdrawal_block=withdrawal_block)
    ledger.register_deposit(POOL, note.commitment, block=deposit_block)
    ledger.register_withdrawal(POOL, note.nullifier_hash, block=withdrawal_block)
    return note


async def run_demo():
    config = load_config()
    config["merkle_tree_height"] = 10
    hasher = get_hasher(config["hash_kind"])

    swap = RewardSwap.from_config(config)
    ledger = InMemoryLedger(config["merkle_tree_height"], hasher, reward_swap=swap)
    ledger.set_rate(POOL, 10)

    circuits = ProvingKeys(
        reward=CircuitDescriptor("reward", "Reward.wasm", "Reward_circuit_final.zkey"),
        withdraw=CircuitDescriptor("withdraw", "Withdraw.wasm", "Withdraw_circuit_final.zkey"),
        tree_update=CircuitDescriptor("treeUpdate", "TreeUpdate.wasm", "TreeUpdate_circuit_final.zkey"),
    )
    controller = Controller.from_config(config, ledger, StandInProver(), circuits)

    alice_sk = os.urandom(32).hex()
    alice_pk = get_encryption_public_key(alice_sk)
    bob_pk = get_encryption_public_key(os.urandom(32))

    print("\n========== 1) deposits and withdrawals ==========")
    alice_notes = [_register(ledger, hasher, 10, 5770), _register(ledger, hasher, 20, 120)]
    bob_note = _register(ledger, hasher, 30, 230)
    alice_late_note = _register(ledger, hasher, 40, 340)
    print("[DEMO] registry size:", ledger.deposit_tree.size())

    print("\n========== 2) batch reward claim ==========")
    batch = await controller.batch_claim_reward(Account(hasher), alice_notes, alice_pk)
    for result in batch.proofs:
        ledger.submit_reward(result.proof, result.args)
    alice = unseal(hasher, alice_sk, batch.proofs[-1].args["extData"]["sealedAccount"])
    print("[DEMO] Alice's account:", alice.amount, "points")

    print("\n========== 3) concurrent claim, catch-up ==========")
    mine = await controller.claim_reward(alice, alice_late_note, alice_pk)
    bobs = await controller.claim_reward(Account(hasher), bob_note, bob_pk)
    ledger.submit_reward(bobs.proof, bobs.args)

    if await controller.account_root_status(mine) is RootStatus.OUTDATED:
        try:
            ledger.submit_reward(mine.proof, mine.args)
        except LedgerRejected as e:
            print("[DEMO] rejected as expected:", e.reason)
        update = await controller.catch_up_tree_root(mine.account.commitment)
        ledger.submit_reward(mine.proof, mine.args, update.proof, update.args)
    else:
        ledger.submit_reward(mine.proof, mine.args)
    alice = mine.account
    print("[DEMO] Alice's account:", alice.amount, "points, root", short_hex(hex(ledger.last_account_root())))

    print("\n========== 4) withdraw ==========")
    result = await controller.withdraw(alice, 50000, RECIPIENT, alice_pk, fee=100)
    tokens = ledger.submit_withdraw(result.proof, result.args)
    print("[DEMO] paid out:", tokens, "base units; remaining points:", result.account.amount)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    asyncio.run(run_demo())
