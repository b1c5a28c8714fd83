# controller/results.py

from dataclasses import dataclass, field
from typing import List, Optional

from acct import Account


@dataclass
class ProofResult:
    """
    proof:   0x-prefixed hex proof in the verifier's layout
    args:    public arguments, every value fixed-width hex
    account: the new account (None for tree updates)
    """

    proof: str
    args: dict
    account: Optional[Account] = None


@dataclass
class BatchResult:
    proofs: List[ProofResult] = field(default_factory=list)
    # ABI-encoded (bytes proof, RewardArgs args) per claim, hex
    args: List[str] = field(default_factory=list)
