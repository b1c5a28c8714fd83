# controller/core.py
# Controller: off-chain proof construction for reward claims, withdrawals
# and account-tree catch-up. Builders live in the apply_for_* modules.

import logging

from errors import ProofGenerationFailed
from note import CANONICAL_NOTE_FORMAT, Note, get_note_format
from tree_sync import RootStatus, TreeSynchronizer
from wrappers.hash_wrapper import get_hasher

from .apply_for_reward import build_batch_reward_proofs, build_reward_proof
from .apply_for_tree_update import build_tree_update_proof
from .apply_for_withdraw import build_withdraw_proof

logger = logging.getLogger(__name__)


class Controller:
    """
    - ledger:  Ledger implementation (events + rates), read-only here
    - prover:  Prover implementation
    - circuits: ProvingKeys with the reward / withdraw / tree_update circuits
    - merkle_tree_height: levels of all three trees
    - hasher:  the hash strategy of the deployed trees and circuits
    - note_format: payload revision used by parse_note()

    The controller keeps no tree state between calls. Every operation
    rebuilds the trees it needs from the ledger, so a failed operation can
    simply be called again after the cause is fixed.
    """

    def __init__(
        self,
        ledger,
        prover,
        circuits,
        merkle_tree_height,
        hasher,
        note_format=CANONICAL_NOTE_FORMAT,
    ):
        if hasher is None:
            raise ValueError("Controller requires an explicit hasher")
        self.ledger = ledger
        self.prover = prover
        self.circuits = circuits
        self.merkle_tree_height = int(merkle_tree_height)
        self.hasher = hasher
        self.note_format = get_note_format(note_format)
        self.synchronizer = TreeSynchronizer(ledger, self.merkle_tree_height, hasher)
        logger.info(
            "[CONTROLLER] initialized: height = %d, hasher = %s, note format = %s",
            self.merkle_tree_height,
            hasher.kind.value,
            self.note_format.value,
        )

    @classmethod
    def from_config(cls, config, ledger, prover, circuits):
        return cls(
            ledger,
            prover,
            circuits,
            merkle_tree_height=config["merkle_tree_height"],
            hasher=get_hasher(config["hash_kind"]),
            note_format=config.get("note_format", CANONICAL_NOTE_FORMAT),
        )

    def parse_note(self, note_str, instance, deposit_block, withdrawal_block):
        """Decode a note string with the configured payload revision."""
        return Note.from_string(
            self.hasher,
            note_str,
            instance,
            deposit_block,
            withdrawal_block,
            note_format=self.note_format,
        )

    # ---------------- prover ----------------
    async def prove(self, witness, circuit):
        """Run the prover; any failure other than cancellation becomes ProofGenerationFailed."""
        try:
            return await self.prover.prove(witness.to_circuit_input(), circuit)
        except Exception as e:
            logger.error("[CONTROLLER][PROVER] %s failed: %r", circuit.name, e)
            raise ProofGenerationFailed(circuit.name, e) from e

    # ---------------- operations ----------------
    async def claim_reward(
        self,
        account,
        note,
        public_key,
        fee=0,
        relayer=0,
        account_commitments=None,
    ):
        return await build_reward_proof(
            self, account, note, public_key, fee, relayer, account_commitments
        )

    async def batch_claim_reward(self, account, notes, public_key, fee=0, relayer=0):
        return await build_batch_reward_proofs(self, account, notes, public_key, fee, relayer)

    async def withdraw(self, account, amount, recipient, public_key, fee=0, relayer=0):
        return await build_withdraw_proof(
            self, account, amount, recipient, public_key, fee, relayer
        )

    async def catch_up_tree_root(self, commitment, account_tree=None):
        return await build_tree_update_proof(self, commitment, account_tree)

    async def account_root_status(self, result) -> RootStatus:
        """
        CURRENT if the proof's inputRoot is still the latest account root;
        OUTDATED means the caller must attach a catch_up_tree_root() proof.
        """
        account_tree = await self.synchronizer.account_tree()
        status = account_tree.root_status(result.args["account"]["inputRoot"])
        logger.info("[CONTROLLER] account root status: %s", status.value)
        return status
