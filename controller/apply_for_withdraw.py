# controller/apply_for_withdraw.py
# Build withdrawal proofs that move points out of an account.

import logging

from acct import Account, seal
from errors import UnknownAccount
from tools import ADDRESS_BYTES, short_hex, to_fixed_hex, to_int
from tree_sync import NotFound

from .apply_for_reward import build_account_transition, format_account_args
from .results import ProofResult
from .utils import _truncate_long_hex_in_obj, withdraw_ext_data_hash
from .witness import WithdrawWitness

logger = logging.getLogger(__name__)


async def build_withdraw_proof(controller, account, amount, recipient, public_key, fee=0, relayer=0):
    """
    Unlike a reward claim, the spent account must already be in the account
    tree: there is no zero-path fallback, a missing leaf is UnknownAccount.

    The circuit's public `amount` is amount + fee; the new account keeps
    account.amount - amount - fee (InvalidAmount if that is negative).
    """
    logger.info("[CONTROLLER][Withdraw] amount = %s, fee = %s", amount, fee)

    amount = to_int(amount)
    fee = to_int(fee)
    new_account = Account(controller.hasher, amount=account.amount - amount - fee)

    account_tree = await controller.synchronizer.account_tree()
    located = account_tree.locate(lambda rec: rec.commitment == account.commitment)
    if isinstance(located, NotFound):
        raise UnknownAccount(to_fixed_hex(account.commitment))
    account_path = account_tree.path(located.index)
    update = account_tree.append_and_diff(new_account.commitment)

    sealed_account = seal(new_account, public_key)
    ext_data_hash = withdraw_ext_data_hash(fee, recipient, relayer, sealed_account)

    transition = build_account_transition(account, new_account, account_path, update)
    witness = WithdrawWitness(
        amount=amount + fee,
        ext_data_hash=ext_data_hash,
        account=transition,
    )

    proof_data = await controller.prove(witness, controller.circuits.withdraw)

    args = {
        "amount": to_fixed_hex(amount + fee),
        "extDataHash": to_fixed_hex(ext_data_hash),
        "extData": {
            "fee": to_fixed_hex(fee),
            "recipient": to_fixed_hex(recipient, ADDRESS_BYTES),
            "relayer": to_fixed_hex(relayer, ADDRESS_BYTES),
            "sealedAccount": sealed_account,
        },
        "account": format_account_args(transition),
    }
    logger.debug("[CONTROLLER][Withdraw] args = %s", _truncate_long_hex_in_obj(args))
    logger.info("[CONTROLLER][Withdraw] proof = %s", short_hex(proof_data.proof))
    return ProofResult(proof=proof_data.proof, args=args, account=new_account)
