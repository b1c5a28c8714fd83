# controller/apply_for_tree_update.py
# Catch-up proof for a reward/withdraw proof built against an account root
# that has since moved on: prove the insertion of the same commitment into
# the current account tree.

import logging

from tools import to_fixed_hex, to_int

from .results import ProofResult
from .witness import TreeUpdateWitness

logger = logging.getLogger(__name__)


async def build_tree_update_proof(controller, commitment, account_tree=None):
    """
    account_tree: optional TreeMirror to insert into. It is modified in
    place so consecutive catch-ups can be chained; pass mirror.snapshot()
    to keep the original. When None, the tree is rebuilt from the ledger.
    """
    if account_tree is None:
        account_tree = await controller.synchronizer.account_tree()

    commitment = to_int(commitment)
    update = account_tree.append_and_diff(commitment)
    logger.info(
        "[CONTROLLER][TreeUpdate] leaf index = %d, old root = %s",
        update.path_indices,
        to_fixed_hex(update.old_root),
    )

    witness = TreeUpdateWitness(
        old_root=update.old_root,
        new_root=update.new_root,
        leaf=commitment,
        path_indices=update.path_indices,
        path_elements=update.path_elements,
    )
    proof_data = await controller.prove(witness, controller.circuits.tree_update)

    args = {
        "oldRoot": to_fixed_hex(update.old_root),
        "newRoot": to_fixed_hex(update.new_root),
        "leaf": to_fixed_hex(commitment),
        "pathIndices": to_fixed_hex(update.path_indices),
    }
    return ProofResult(proof=proof_data.proof, args=args)
