# wrappers/hash_wrapper.py
# Hash strategies shared by commitments, nullifiers and every Merkle tree.
#
# A strategy is selected once (by HashKind) and passed explicitly to each
# tree and codec that needs it. Roots computed with different strategies are
# never comparable, so nothing in this package falls back to a default
# strategy behind the caller's back.
#
# Items are field elements: ints, hex strings (with or without 0x) or
# big-endian bytes. Each item is reduced modulo the BN254 scalar field and
# serialized as a 32-byte big-endian block before hashing.

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Sequence, Union

from tools import FIELD_SIZE, to_int

BytesLike = Union[bytes, bytearray, memoryview]
FieldLike = Union[int, str, BytesLike]


class HashKind(Enum):
    # default; local only, proofs built with it never verify on chain
    SHA256 = "sha256"
    # Circuit-matching Poseidon/Pedersen: supplied by the integrator through
    # register_hasher(); there is no built-in implementation.
    POSEIDON = "poseidon"


def _to_field(x: FieldLike) -> int:
    if isinstance(x, memoryview):
        x = x.tobytes()
    return to_int(x) % FIELD_SIZE


def concat_field_blocks(items: Sequence[FieldLike], block_size: int = 32) -> bytes:
    """
    Reduce each item modulo the scalar field and concatenate the results as
    fixed-size big-endian blocks.
    """
    if block_size <= 0:
        raise ValueError(f"block_size must be a positive integer, got: {block_size!r}")

    blocks: List[bytes] = []
    for item in items:
        blocks.append(_to_field(item).to_bytes(block_size, "big"))
    return b"".join(blocks)


class Hasher(ABC):
    """
    Fixed-arity, deterministic hash into the scalar field.

    hash(items)       -- leaf / commitment hash over field elements
    hash2(l, r)       -- Merkle node combiner
    hash_bytes(data)  -- hash over a raw byte string (note commitments)
    """

    kind: HashKind

    @abstractmethod
    def hash(self, items: Sequence[FieldLike]) -> int:
        raise NotImplementedError

    @abstractmethod
    def hash_bytes(self, data: BytesLike) -> int:
        raise NotImplementedError

    def hash2(self, left: FieldLike, right: FieldLike) -> int:
        return self.hash([left, right])

    def __repr__(self):
        return f"<{type(self).__name__} kind={self.kind.value}>"


class Sha256FieldHasher(Hasher):
    """
    SHA-256 based strategy.

    digest = SHA256(tag || arity || block_0 || ... || block_n-1) mod FIELD_SIZE

    The tag separates field-element hashing from byte-string hashing, and the
    arity byte keeps H([a, b]) distinct from H([a, b, 0]).

    This is NOT the hash of the deployed circuits and contracts. Roots,
    commitments and proofs built with it are self-consistent for local use
    and testing, but will never verify against the deployed verifiers.
    Production use needs a Poseidon/Pedersen binding registered under
    HashKind.POSEIDON.
    """

    kind = HashKind.SHA256

    _FIELD_TAG = b"\x01"
    _BYTES_TAG = b"\x02"

    def hash(self, items: Sequence[FieldLike]) -> int:
        if len(items) == 0:
            raise ValueError("hash requires at least one item")
        if len(items) > 255:
            raise ValueError(f"hash arity is limited to 255 items, got: {len(items)}")

        message = self._FIELD_TAG + bytes([len(items)]) + concat_field_blocks(items)
        digest = hashlib.sha256(message).digest()
        return int.from_bytes(digest, "big") % FIELD_SIZE

    def hash_bytes(self, data: BytesLike) -> int:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"hash_bytes expects bytes-like data, got: {type(data)!r}")
        digest = hashlib.sha256(self._BYTES_TAG + bytes(data)).digest()
        return int.from_bytes(digest, "big") % FIELD_SIZE


_REGISTRY: Dict[HashKind, Hasher] = {
    HashKind.SHA256: Sha256FieldHasher(),
}


def register_hasher(kind: HashKind, hasher: Hasher) -> None:
    """
    Install the strategy used for `kind`. Typically called once at start-up
    with a binding to the circuit's Poseidon/Pedersen implementation.
    """
    if not isinstance(kind, HashKind):
        raise TypeError(f"kind must be a HashKind, got: {type(kind)!r}")
    if not isinstance(hasher, Hasher):
        raise TypeError(f"hasher must implement Hasher, got: {type(hasher)!r}")
    _REGISTRY[kind] = hasher


def get_hasher(kind: Union[HashKind, str] = HashKind.SHA256) -> Hasher:
    """
    Return the registered strategy for `kind` (a HashKind or its value).
    """
    if isinstance(kind, str):
        kind = HashKind(kind)
    if kind not in _REGISTRY:
        raise RuntimeError(
            f"no hasher registered for {kind.value!r}; call register_hasher() first."
        )
    return _REGISTRY[kind]


__all__ = [
    "HashKind",
    "Hasher",
    "Sha256FieldHasher",
    "concat_field_blocks",
    "register_hasher",
    "get_hasher",
    "BytesLike",
    "FieldLike",
]
