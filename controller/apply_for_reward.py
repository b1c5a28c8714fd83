# controller/apply_for_reward.py
# Build reward-claim proofs: convert a note's deposit/withdrawal block span
# into anonymity points credited to a fresh account.
# Only builds proofs and arguments; submitting them is the caller's job.

import logging

from acct import Account, seal
from errors import MalformedNote, UnregisteredNote
from tools import ADDRESS_BYTES, bits_to_number, short_hex, to_fixed_hex, to_int
from tree_sync import DEPOSIT_TREE, WITHDRAWAL_TREE, Found, NotFound

from .results import BatchResult, ProofResult
from .utils import _truncate_long_hex_in_obj, encode_reward_args, reward_ext_data_hash
from .witness import AccountTransition, RewardWitness

logger = logging.getLogger(__name__)


def _registry_path(mirror, tree_name, leaf_hash):
    """Path of the registry entry whose `hash` equals leaf_hash."""
    located = mirror.locate(lambda rec: rec.hash == leaf_hash)
    if isinstance(located, NotFound):
        raise UnregisteredNote(tree_name, leaf_hash)
    return mirror.path(located.index)


def _check_claimable(note):
    missing = []
    for field in ("instance", "deposit_block", "withdrawal_block"):
        if getattr(note, field) is None:
            missing.append(field)
    if missing:
        raise MalformedNote("%r cannot be claimed, missing: %s" % (note, ", ".join(missing)))


def build_account_transition(account, new_account, account_path, update):
    return AccountTransition(
        input_amount=account.amount,
        input_secret=account.secret,
        input_nullifier=account.nullifier,
        input_nullifier_hash=account.nullifier_hash,
        input_root=update.old_root,
        input_path_indices=bits_to_number(account_path["path_indices"]),
        input_path_elements=account_path["path_elements"],
        output_amount=new_account.amount,
        output_secret=new_account.secret,
        output_nullifier=new_account.nullifier,
        output_root=update.new_root,
        output_path_indices=update.path_indices,
        output_path_elements=update.path_elements,
        output_commitment=new_account.commitment,
    )


def format_account_args(transition):
    return {
        "inputRoot": to_fixed_hex(transition.input_root),
        "inputNullifierHash": to_fixed_hex(transition.input_nullifier_hash),
        "outputRoot": to_fixed_hex(transition.output_root),
        "outputPathIndices": to_fixed_hex(transition.output_path_indices),
        "outputCommitment": to_fixed_hex(transition.output_commitment),
    }


async def build_reward_proof(
    controller,
    account,
    note,
    public_key,
    fee=0,
    relayer=0,
    account_commitments=None,
):
    """
    Steps:
      1) rate of the note's pool instance, new amount
           amount + rate * (withdrawal_block - deposit_block) - fee
      2) deposit leaf and withdrawal leaf of the note (UnregisteredNote if
         either is missing)
      3) old account leaf, or the all-zero path for a first claim
      4) insertion diff of the new account leaf
      5) seal the new account, external data hash, prove
    """
    logger.info("[CONTROLLER][Reward] prepare proof for %r", note)

    _check_claimable(note)
    fee = to_int(fee)
    rate = to_int(await controller.ledger.get_rate(note.instance))
    reward = rate * (note.withdrawal_block - note.deposit_block)
    new_account = Account(controller.hasher, amount=account.amount + reward - fee)
    logger.info(
        "[CONTROLLER][Reward] rate = %d, reward = %d, fee = %d, new amount = %d",
        rate,
        reward,
        fee,
        new_account.amount,
    )

    sync = controller.synchronizer
    deposit_tree = await sync.deposit_tree()
    deposit_path = _registry_path(deposit_tree, DEPOSIT_TREE, to_fixed_hex(note.commitment))

    withdrawal_tree = await sync.withdrawal_tree()
    withdrawal_path = _registry_path(
        withdrawal_tree, WITHDRAWAL_TREE, to_fixed_hex(note.nullifier_hash)
    )

    account_tree = await sync.account_tree(account_commitments)
    located = account_tree.locate(lambda rec: rec.commitment == account.commitment)
    if isinstance(located, Found):
        account_path = account_tree.path(located.index)
    else:
        logger.info("[CONTROLLER][Reward] account not in tree, using zero path")
        account_path = account_tree.zero_path()
    update = account_tree.append_and_diff(new_account.commitment)

    sealed_account = seal(new_account, public_key)
    ext_data_hash = reward_ext_data_hash(relayer, sealed_account)

    transition = build_account_transition(account, new_account, account_path, update)
    witness = RewardWitness(
        rate=rate,
        fee=fee,
        instance=note.instance,
        reward_nullifier=note.reward_nullifier,
        ext_data_hash=ext_data_hash,
        note_secret=note.secret,
        note_nullifier=note.nullifier,
        deposit_block=note.deposit_block,
        deposit_root=deposit_tree.root(),
        deposit_path_indices=bits_to_number(deposit_path["path_indices"]),
        deposit_path_elements=deposit_path["path_elements"],
        withdrawal_block=note.withdrawal_block,
        withdrawal_root=withdrawal_tree.root(),
        withdrawal_path_indices=bits_to_number(withdrawal_path["path_indices"]),
        withdrawal_path_elements=withdrawal_path["path_elements"],
        account=transition,
    )

    proof_data = await controller.prove(witness, controller.circuits.reward)

    args = {
        "rate": to_fixed_hex(rate),
        "fee": to_fixed_hex(fee),
        "instance": to_fixed_hex(note.instance, ADDRESS_BYTES),
        "rewardNullifier": to_fixed_hex(note.reward_nullifier),
        "extDataHash": to_fixed_hex(ext_data_hash),
        "depositRoot": to_fixed_hex(deposit_tree.root()),
        "withdrawalRoot": to_fixed_hex(withdrawal_tree.root()),
        "extData": {
            "relayer": to_fixed_hex(relayer, ADDRESS_BYTES),
            "sealedAccount": sealed_account,
        },
        "account": format_account_args(transition),
    }
    logger.debug("[CONTROLLER][Reward] args = %s", _truncate_long_hex_in_obj(args))
    logger.info(
        "[CONTROLLER][Reward] proof = %s, new commitment = %s",
        short_hex(proof_data.proof),
        short_hex(args["account"]["outputCommitment"]),
    )
    return ProofResult(proof=proof_data.proof, args=args, account=new_account)


async def build_batch_reward_proofs(controller, account, notes, public_key, fee=0, relayer=0):
    """
    Chain reward claims: each claim spends the account produced by the
    previous one, against a single snapshot of the account leaves that is
    extended locally after every claim.
    """
    commitments = await controller.synchronizer.fetch_account_commitments()
    last_account = account
    proofs = []
    for note in notes:
        result = await build_reward_proof(
            controller,
            last_account,
            note,
            public_key,
            fee=fee,
            relayer=relayer,
            account_commitments=list(commitments),
        )
        proofs.append(result)
        last_account = result.account
        commitments.append(last_account.commitment)

    args = [encode_reward_args(p.proof, p.args) for p in proofs]
    logger.info("[CONTROLLER][BatchReward] %d claims chained", len(proofs))
    return BatchResult(proofs=proofs, args=args)
