# controller/utils.py
# ABI helpers shared by the controller and the in-memory ledger.

from eth_abi import encode
from web3 import Web3

from tools import ADDRESS_BYTES, short_hex, to_fixed_hex, to_int, turn_hex_str_to_bytes

EXT_REWARD_TYPE = "(address,bytes)"
EXT_WITHDRAW_TYPE = "(uint256,address,address,bytes)"
ACCOUNT_UPDATE_TYPE = "(bytes32,bytes32,bytes32,uint256,bytes32)"
REWARD_ARGS_TYPE = (
    "(uint256,uint256,address,bytes32,bytes32,bytes32,bytes32,"
    + EXT_REWARD_TYPE
    + ","
    + ACCOUNT_UPDATE_TYPE
    + ")"
)


def _address(value) -> bytes:
    return turn_hex_str_to_bytes(to_fixed_hex(value, ADDRESS_BYTES))


def _bytes32(value) -> bytes:
    return turn_hex_str_to_bytes(to_fixed_hex(value, 32))


def keccak248(encoded: bytes) -> int:
    """
    keccak256 of `encoded` with the most significant byte cleared, so the
    digest always fits into the circuit's scalar field.
    """
    digest = bytes(Web3.keccak(encoded))
    return int.from_bytes(b"\x00" + digest[1:], "big")


def reward_ext_data_hash(relayer, sealed_account) -> int:
    encoded = encode(
        [EXT_REWARD_TYPE],
        [(_address(relayer), turn_hex_str_to_bytes(sealed_account))],
    )
    return keccak248(encoded)


def withdraw_ext_data_hash(fee, recipient, relayer, sealed_account) -> int:
    encoded = encode(
        [EXT_WITHDRAW_TYPE],
        [
            (
                to_int(fee),
                _address(recipient),
                _address(relayer),
                turn_hex_str_to_bytes(sealed_account),
            )
        ],
    )
    return keccak248(encoded)


def _account_update_tuple(account):
    return (
        _bytes32(account["inputRoot"]),
        _bytes32(account["inputNullifierHash"]),
        _bytes32(account["outputRoot"]),
        to_int(account["outputPathIndices"]),
        _bytes32(account["outputCommitment"]),
    )


def encode_reward_args(proof, args) -> str:
    """
    ABI-encode one (bytes proof, RewardArgs args) pair as submitted in a
    batch reward transaction.
    """
    ext = args["extData"]
    reward_tuple = (
        to_int(args["rate"]),
        to_int(args["fee"]),
        _address(args["instance"]),
        _bytes32(args["rewardNullifier"]),
        _bytes32(args["extDataHash"]),
        _bytes32(args["depositRoot"]),
        _bytes32(args["withdrawalRoot"]),
        (_address(ext["relayer"]), turn_hex_str_to_bytes(ext["sealedAccount"])),
        _account_update_tuple(args["account"]),
    )
    encoded = encode(["bytes", REWARD_ARGS_TYPE], [turn_hex_str_to_bytes(proof), reward_tuple])
    return "0x" + encoded.hex()


def _truncate_long_hex_in_obj(obj, max_len=80):
    """Shorten long strings inside nested dicts/lists before logging them."""
    if isinstance(obj, dict):
        new_dict = {}
        for k in obj:
            new_dict[k] = _truncate_long_hex_in_obj(obj[k], max_len)
        return new_dict

    if isinstance(obj, list):
        new_list = []
        i = 0
        while i < len(obj):
            new_list.append(_truncate_long_hex_in_obj(obj[i], max_len))
            i += 1
        return new_list

    if isinstance(obj, str):
        s = obj.strip()
        if len(s) > max_len:
            return short_hex(s)
        return s

    return obj
