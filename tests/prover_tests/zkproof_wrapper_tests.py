#!/usr/bin/env python3
# tests/prover_tests/zkproof_wrapper_tests.py
#
# Proof formatting and the snarkjs subprocess adapter. A tiny shell script
# stands in for the snarkjs binary and writes fixed proof/public files.

import asyncio
import json
import os
import stat
import sys

import pytest

THIS_FILE = os.path.abspath(__file__)
THIS_DIR = os.path.dirname(THIS_FILE)
PROJECT_ROOT = os.path.abspath(os.path.join(THIS_DIR, "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tools import to_fixed_hex
from wrappers.zkproof_wrapper import CircuitDescriptor, SnarkjsProver, to_solidity_proof

PROOF_JSON = {
    "pi_a": ["1", "2", "1"],
    "pi_b": [["3", "4"], ["5", "6"], ["1", "0"]],
    "pi_c": ["7", "8", "1"],
    "protocol": "groth16",
}

CIRCUIT = CircuitDescriptor("treeUpdate", "TreeUpdate.wasm", "TreeUpdate.zkey")


def _word(i):
    return to_fixed_hex(i)[2:]


def test_to_solidity_proof_layout():
    proof = to_solidity_proof(PROOF_JSON)
    assert proof.startswith("0x")
    assert len(proof) == 2 + 8 * 64
    # a0 a1 b01 b00 b11 b10 c0 c1
    assert proof == "0x" + "".join(_word(i) for i in (1, 2, 4, 3, 6, 5, 7, 8))


def _fake_snarkjs(tmp_path, exit_code=0):
    script = tmp_path / "snarkjs"
    script.write_text(
        "#!/bin/sh\n"
        "echo '%s' > \"$6\"\n"
        "echo '[\"9\", \"10\"]' > \"$7\"\n"
        "exit %d\n" % (json.dumps(PROOF_JSON), exit_code),
        encoding="utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return str(script)


@pytest.mark.skipif(os.name == "nt", reason="needs a POSIX shell")
def test_snarkjs_prover(tmp_path):
    prover = SnarkjsProver(snarkjs_bin=_fake_snarkjs(tmp_path))
    data = asyncio.run(prover.prove({"leaf": "1", "pathElements": ["0", "0"]}, CIRCUIT))

    assert data.proof == to_solidity_proof(PROOF_JSON)
    assert data.public_signals == ["9", "10"]


@pytest.mark.skipif(os.name == "nt", reason="needs a POSIX shell")
def test_snarkjs_failure(tmp_path):
    prover = SnarkjsProver(snarkjs_bin=_fake_snarkjs(tmp_path, exit_code=3))
    with pytest.raises(RuntimeError) as excinfo:
        asyncio.run(prover.prove({"leaf": "1"}, CIRCUIT))
    assert "code 3" in str(excinfo.value)


def test_snarkjs_missing_binary(tmp_path):
    prover = SnarkjsProver(snarkjs_bin=str(tmp_path / "missing-snarkjs"))
    with pytest.raises(OSError):
        asyncio.run(prover.prove({"leaf": "1"}, CIRCUIT))


def main() -> None:
    test_to_solidity_proof_layout()
    print("=== zkproof wrapper tests finished (tmp_path tests need pytest) ===")


if __name__ == "__main__":
    main()
