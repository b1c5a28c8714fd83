# controller/witness.py
# Typed circuit inputs. Each field carries the name of the circuit signal
# it feeds; to_circuit_input() renders the dict handed to the prover.

from dataclasses import dataclass, field, fields
from typing import List

from tools import to_int


def signal(name):
    return field(metadata={"signal": name})


def path_signal(name):
    return field(default_factory=list, metadata={"signal": name})


def _render(value):
    if isinstance(value, (list, tuple)):
        return [_render(v) for v in value]
    return str(to_int(value))


class CircuitWitness:
    def to_circuit_input(self) -> dict:
        """Signal name -> decimal string (or list of decimal strings)."""
        out = {}
        for f in fields(self):
            out[f.metadata["signal"]] = _render(getattr(self, f.name))
        return out


@dataclass
class AccountTransition(CircuitWitness):
    """Old account leaf spent and new account leaf inserted by one proof."""

    input_amount: int = signal("inputAmount")
    input_secret: int = signal("inputSecret")
    input_nullifier: int = signal("inputNullifier")
    input_nullifier_hash: int = signal("inputNullifierHash")
    input_root: int = signal("inputRoot")
    input_path_indices: int = signal("inputPathIndices")
    output_amount: int = signal("outputAmount")
    output_secret: int = signal("outputSecret")
    output_nullifier: int = signal("outputNullifier")
    output_root: int = signal("outputRoot")
    output_path_indices: int = signal("outputPathIndices")
    output_commitment: int = signal("outputCommitment")
    input_path_elements: List[int] = path_signal("inputPathElements")
    output_path_elements: List[int] = path_signal("outputPathElements")


@dataclass
class RewardWitness(CircuitWitness):
    rate: int = signal("rate")
    fee: int = signal("fee")
    instance: int = signal("instance")
    reward_nullifier: int = signal("rewardNullifier")
    ext_data_hash: int = signal("extDataHash")

    note_secret: int = signal("noteSecret")
    note_nullifier: int = signal("noteNullifier")

    deposit_block: int = signal("depositBlock")
    deposit_root: int = signal("depositRoot")
    deposit_path_indices: int = signal("depositPathIndices")
    withdrawal_block: int = signal("withdrawalBlock")
    withdrawal_root: int = signal("withdrawalRoot")
    withdrawal_path_indices: int = signal("withdrawalPathIndices")
    deposit_path_elements: List[int] = path_signal("depositPathElements")
    withdrawal_path_elements: List[int] = path_signal("withdrawalPathElements")

    account: AccountTransition = None

    def to_circuit_input(self) -> dict:
        out = {}
        for f in fields(self):
            if f.name == "account":
                continue
            out[f.metadata["signal"]] = _render(getattr(self, f.name))
        out.update(self.account.to_circuit_input())
        return out


@dataclass
class WithdrawWitness(CircuitWitness):
    amount: int = signal("amount")
    ext_data_hash: int = signal("extDataHash")
    account: AccountTransition = None

    def to_circuit_input(self) -> dict:
        out = {
            "amount": _render(self.amount),
            "extDataHash": _render(self.ext_data_hash),
        }
        out.update(self.account.to_circuit_input())
        return out


@dataclass
class TreeUpdateWitness(CircuitWitness):
    old_root: int = signal("oldRoot")
    new_root: int = signal("newRoot")
    leaf: int = signal("leaf")
    path_indices: int = signal("pathIndices")
    path_elements: List[int] = path_signal("pathElements")
