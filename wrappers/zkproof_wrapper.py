# wrappers/zkproof_wrapper.py
# Prover interface used by the controller and a snarkjs-backed adapter.
#
# Witnesses come in as circuit input dicts (signal name -> decimal/hex
# string or list of them). Proofs go out as one 0x-prefixed hex string in
# the on-chain verifier layout:
#   a0 a1 b[0][1] b[0][0] b[1][1] b[1][0] c0 c1   (32 bytes each)

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from tools import to_fixed_hex, to_int

logger = logging.getLogger(__name__)

SNARKJS_BIN = "snarkjs"


@dataclass(frozen=True)
class CircuitDescriptor:
    """A compiled circuit (wasm witness generator) and its proving key."""

    name: str
    circuit: str
    proving_key: str


@dataclass(frozen=True)
class ProvingKeys:
    reward: CircuitDescriptor
    withdraw: CircuitDescriptor
    tree_update: CircuitDescriptor


@dataclass
class ProofData:
    proof: str
    public_signals: List[str] = field(default_factory=list)


class Prover(ABC):
    @abstractmethod
    async def prove(self, witness: dict, circuit: CircuitDescriptor) -> ProofData:
        """
        Produce a proof for `witness` against `circuit`. Any failure is
        raised as an exception; the controller reports it as
        ProofGenerationFailed.
        """
        raise NotImplementedError


def to_solidity_proof(proof: dict) -> str:
    """
    Flatten a snarkjs groth16 proof object ({pi_a, pi_b, pi_c}) into the
    verifier's 8-word hex layout. Note the swapped coordinates of pi_b.
    """
    words = [
        proof["pi_a"][0],
        proof["pi_a"][1],
        proof["pi_b"][0][1],
        proof["pi_b"][0][0],
        proof["pi_b"][1][1],
        proof["pi_b"][1][0],
        proof["pi_c"][0],
        proof["pi_c"][1],
    ]
    out = "0x"
    i = 0
    while i < len(words):
        out += to_fixed_hex(to_int(words[i]))[2:]
        i += 1
    return out


class SnarkjsProver(Prover):
    """
    Runs `snarkjs groth16 fullprove` in a subprocess per proof. Inputs and
    outputs live in a throw-away temporary directory.
    """

    def __init__(self, snarkjs_bin=SNARKJS_BIN):
        self.snarkjs_bin = snarkjs_bin

    async def prove(self, witness, circuit):
        with tempfile.TemporaryDirectory(prefix="mining-proof-") as tmpdir:
            input_path = os.path.join(tmpdir, "input.json")
            proof_path = os.path.join(tmpdir, "proof.json")
            public_path = os.path.join(tmpdir, "public.json")

            with open(input_path, "w", encoding="utf-8") as f:
                json.dump(witness, f)

            cmd = [
                self.snarkjs_bin,
                "groth16",
                "fullprove",
                input_path,
                circuit.circuit,
                circuit.proving_key,
                proof_path,
                public_path,
            ]
            logger.info("[PROVER] %s: running %s", circuit.name, " ".join(cmd[:3]))

            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            try:
                output, _ = await proc.communicate()
            except asyncio.CancelledError:
                proc.kill()
                await proc.wait()
                raise

            if proc.returncode != 0:
                text = output.decode("utf-8", errors="replace").strip()
                raise RuntimeError(
                    "snarkjs exited with code %d: %s" % (proc.returncode, text[-500:])
                )

            with open(proof_path, "r", encoding="utf-8") as f:
                proof_json = json.load(f)
            with open(public_path, "r", encoding="utf-8") as f:
                public_signals = json.load(f)

        return ProofData(
            proof=to_solidity_proof(proof_json),
            public_signals=[str(s) for s in public_signals],
        )
