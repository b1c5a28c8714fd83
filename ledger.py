# ledger.py
# Read interface to the on-chain state, plus an in-memory ledger that keeps
# the registry trees and the account tree the way the contracts do.

import logging
import random
from abc import ABC, abstractmethod

from controller.utils import reward_ext_data_hash, withdraw_ext_data_hash
from errors import LedgerRejected, LedgerUnavailable
from merkle_tree import MerkleTree
from tools import ADDRESS_BYTES, short_hex, to_fixed_hex, to_int

logger = logging.getLogger(__name__)

REGISTRY_CONTRACT = "TornadoTrees"
MINER_CONTRACT = "Miner"

DEPOSIT_EVENT = "DepositData"
WITHDRAWAL_EVENT = "WithdrawalData"
NEW_ACCOUNT_EVENT = "NewAccount"

ACCOUNT_ROOT_HISTORY_SIZE = 100


class Ledger(ABC):
    """
    What the proof orchestrator reads from the chain.

    Implementations raise LedgerUnavailable when the chain cannot be
    reached; the orchestrator never retries.
    """

    @abstractmethod
    async def get_past_events(self, contract, event_name):
        """Return all past events as dicts of their return values."""
        raise NotImplementedError

    @abstractmethod
    async def get_rate(self, instance):
        """Reward rate (points per block) of a pool instance."""
        raise NotImplementedError


class InMemoryLedger(Ledger):
    """
    A minimal chain for tests and demos:
      - block_number: current height, advanced with mine_block()
      - deposit/withdrawal registries and their Merkle trees
      - account tree with a bounded root history
      - spent reward nullifiers and spent account nullifiers

    submit_reward() / submit_withdraw() apply the same checks as the miner
    contract (except proof verification, delegated to `verifier`) and raise
    LedgerRejected with the contract's revert reason.
    """

    def __init__(self, levels, hasher, verifier=None, reward_swap=None, shuffle_seed=None):
        self.levels = levels
        self.hasher = hasher
        self.verifier = verifier
        self.reward_swap = reward_swap
        self.block_number = 0
        self.timestamp = 0
        self.available = True

        # None keeps events in emission order
        self._shuffle = random.Random(shuffle_seed) if shuffle_seed is not None else None

        self.rates = {}
        self.events = {
            (REGISTRY_CONTRACT, DEPOSIT_EVENT): [],
            (REGISTRY_CONTRACT, WITHDRAWAL_EVENT): [],
            (MINER_CONTRACT, NEW_ACCOUNT_EVENT): [],
        }

        self.deposit_tree = MerkleTree(levels, hasher=hasher)
        self.withdrawal_tree = MerkleTree(levels, hasher=hasher)
        self.deposit_roots = [self.deposit_tree.root()]
        self.withdrawal_roots = [self.withdrawal_tree.root()]

        self.account_tree = MerkleTree(levels, hasher=hasher)
        self.account_roots = [self.account_tree.root()]

        self.reward_nullifiers = set()
        self.account_nullifiers = set()
        self.payouts = []

        logger.info("[LEDGER] New in-memory ledger, tree levels = %d", levels)

    # ---------------- chain control ----------------
    def mine_block(self, count=1, seconds_per_block=15):
        self.block_number += count
        self.timestamp += count * seconds_per_block
        return self.block_number

    def set_available(self, available):
        self.available = available

    def _check_available(self):
        if not self.available:
            raise LedgerUnavailable("ledger is unreachable")

    def set_rate(self, instance, rate):
        self.rates[to_fixed_hex(instance, ADDRESS_BYTES)] = to_int(rate)

    # ---------------- registries ----------------
    def _register(self, event_name, tree, roots, instance, commitment, block):
        instance = to_fixed_hex(instance, ADDRESS_BYTES)
        commitment = to_fixed_hex(commitment)
        block = self.block_number if block is None else to_int(block)
        index = tree.size()

        tree.insert(self.hasher.hash([instance, commitment, block]))
        roots.append(tree.root())
        event = {"instance": instance, "hash": commitment, "block": block, "index": index}
        self.events[(REGISTRY_CONTRACT, event_name)].append(event)

        logger.debug(
            "[LEDGER] %s: index = %d, instance = %s, block = %d",
            event_name,
            index,
            short_hex(instance),
            block,
        )
        return event

    def register_deposit(self, instance, commitment, block=None):
        return self._register(
            DEPOSIT_EVENT, self.deposit_tree, self.deposit_roots, instance, commitment, block
        )

    def register_withdrawal(self, instance, nullifier_hash, block=None):
        return self._register(
            WITHDRAWAL_EVENT,
            self.withdrawal_tree,
            self.withdrawal_roots,
            instance,
            nullifier_hash,
            block,
        )

    # ---------------- Ledger interface ----------------
    async def get_past_events(self, contract, event_name):
        self._check_available()
        key = (contract, event_name)
        if key not in self.events:
            raise ValueError("unknown event %s.%s" % (contract, event_name))
        events = [dict(e) for e in self.events[key]]
        if self._shuffle is not None:
            self._shuffle.shuffle(events)
        return events

    async def get_rate(self, instance):
        self._check_available()
        return self.rates.get(to_fixed_hex(instance, ADDRESS_BYTES), 0)

    def last_account_root(self):
        return self.account_roots[-1]

    def is_known_account_root(self, root):
        root = to_int(root)
        history = self.account_roots[-ACCOUNT_ROOT_HISTORY_SIZE:]
        return root in history

    # ---------------- submissions ----------------
    def _reject(self, reason):
        logger.warning("[LEDGER][REJECT] %s", reason)
        raise LedgerRejected(reason)

    def _validate_account_update(self, account, tree_update_args):
        """
        Mirror of the contract's account-update validation. Returns the
        account tree as it will look after the output commitment is inserted.
        """
        if to_int(account["inputNullifierHash"]) in self.account_nullifiers:
            self._reject("Outdated account state")

        commitment = to_int(account["outputCommitment"])
        next_tree = self.account_tree.copy()
        next_tree.insert(commitment)

        if to_int(account["inputRoot"]) == self.last_account_root():
            if to_int(account["outputPathIndices"]) != self.account_tree.size():
                self._reject("Incorrect account insert index")
            if to_int(account["outputRoot"]) != next_tree.root():
                self._reject("Incorrect commitment inserted")
            return next_tree

        if tree_update_args is None or not self.is_known_account_root(account["inputRoot"]):
            self._reject("Outdated account merkle root")
        if to_int(tree_update_args["oldRoot"]) != self.last_account_root():
            self._reject("Outdated tree update merkle root")
        if to_int(tree_update_args["leaf"]) != commitment:
            self._reject("Incorrect commitment inserted")
        if to_int(tree_update_args["pathIndices"]) != self.account_tree.size():
            self._reject("Incorrect account insert index")
        if to_int(tree_update_args["newRoot"]) != next_tree.root():
            self._reject("Outdated tree update merkle root")
        return next_tree

    def _verify(self, circuit_name, proof, args):
        if self.verifier is not None and not self.verifier(circuit_name, proof, args):
            self._reject("Invalid %s proof" % circuit_name)

    def _commit_account(self, next_tree, account, sealed_account):
        self.account_nullifiers.add(to_int(account["inputNullifierHash"]))
        index = self.account_tree.size()
        self.account_tree = next_tree
        self.account_roots.append(next_tree.root())
        self.events[(MINER_CONTRACT, NEW_ACCOUNT_EVENT)].append(
            {
                "commitment": to_fixed_hex(account["outputCommitment"]),
                "index": index,
                "nullifier": to_fixed_hex(account["inputNullifierHash"]),
                "encryptedAccount": sealed_account,
            }
        )
        self.mine_block()
        logger.info(
            "[LEDGER] NewAccount: index = %d, root = %s",
            index,
            short_hex(to_fixed_hex(next_tree.root())),
        )

    def submit_reward(self, proof, args, tree_update_proof=None, tree_update_args=None):
        self._check_available()
        account = args["account"]
        next_tree = self._validate_account_update(account, tree_update_args)

        if to_int(args["depositRoot"]) not in self.deposit_roots[-2:]:
            self._reject("Incorrect deposit tree root")
        if to_int(args["withdrawalRoot"]) not in self.withdrawal_roots[-2:]:
            self._reject("Incorrect withdrawal tree root")

        ext = args["extData"]
        if to_int(args["extDataHash"]) != reward_ext_data_hash(
            ext["relayer"], ext["sealedAccount"]
        ):
            self._reject("Incorrect external data hash")

        rate = self.rates.get(to_fixed_hex(args["instance"], ADDRESS_BYTES), 0)
        if to_int(args["rate"]) != rate or rate == 0:
            self._reject("Invalid reward rate")

        reward_nullifier = to_int(args["rewardNullifier"])
        if reward_nullifier in self.reward_nullifiers:
            self._reject("Reward has been already spent")

        self._verify("reward", proof, args)
        if tree_update_args is not None and to_int(account["inputRoot"]) != self.last_account_root():
            self._verify("treeUpdate", tree_update_proof, tree_update_args)

        self.reward_nullifiers.add(reward_nullifier)
        self._commit_account(next_tree, account, ext["sealedAccount"])

    def submit_withdraw(self, proof, args, tree_update_proof=None, tree_update_args=None):
        """Apply a withdrawal; returns the tokens paid out when a swap pool is attached."""
        self._check_available()
        account = args["account"]
        next_tree = self._validate_account_update(account, tree_update_args)

        ext = args["extData"]
        if to_int(args["extDataHash"]) != withdraw_ext_data_hash(
            ext["fee"], ext["recipient"], ext["relayer"], ext["sealedAccount"]
        ):
            self._reject("Incorrect external data hash")

        amount = to_int(args["amount"])
        fee = to_int(ext["fee"])
        if fee > amount:
            self._reject("Amount should be greater than fee")

        self._verify("withdraw", proof, args)
        if tree_update_args is not None and to_int(account["inputRoot"]) != self.last_account_root():
            self._verify("treeUpdate", tree_update_proof, tree_update_args)

        self._commit_account(next_tree, account, ext["sealedAccount"])

        tokens = None
        if self.reward_swap is not None:
            tokens = self.reward_swap.swap(amount - fee, self.timestamp)
        self.payouts.append(
            {"recipient": to_fixed_hex(ext["recipient"], ADDRESS_BYTES), "points": amount - fee, "tokens": tokens}
        )
        return tokens
