# note.py
# Deposit/withdrawal note: the one-time secret behind a reward claim.
#
# Note string format:
#   <label>-<currency>-<amount>-<netId>-0x<payload hex>
#
# The payload carries nullifier and secret as little-endian integers. How
# the payload is split has changed between format revisions, so decoding is
# always driven by an explicit NoteFormat value.

import logging
from enum import Enum

from errors import MalformedNote, UnsupportedNoteFormat
from tools import (
    ADDRESS_BYTES,
    SCALAR_BYTES,
    random_bn,
    short_hex,
    to_fixed_hex,
    to_int,
    turn_hex_str_to_bytes,
)

logger = logging.getLogger(__name__)

NOTE_DELIMITER = "-"


class NoteFormat(Enum):
    # nullifier = payload[:31], secret = payload[31:]
    BYTE_SPLIT = "v1-byte-split"
    # nullifier = hex[:len/2], secret = hex[len/2:]
    HEX_MIDPOINT = "v0-hex-midpoint"


CANONICAL_NOTE_FORMAT = NoteFormat.BYTE_SPLIT


# ---------------- commitment codec ----------------
def commit(hasher, nullifier, secret) -> int:
    """Note commitment: H_bytes(nullifier_le31 || secret_le31)."""
    preimage = to_int(nullifier).to_bytes(SCALAR_BYTES, "little") + to_int(secret).to_bytes(
        SCALAR_BYTES, "little"
    )
    return hasher.hash_bytes(preimage)


def nullify(hasher, nullifier) -> int:
    """Note nullifier hash: H_bytes(nullifier_le31)."""
    return hasher.hash_bytes(to_int(nullifier).to_bytes(SCALAR_BYTES, "little"))


def reward_nullify(hasher, nullifier) -> int:
    """Reward nullifier: H([nullifier]), spent once per claimed note."""
    return hasher.hash([to_int(nullifier)])


def _check_half(name, data, note_format):
    if not 1 <= len(data) <= SCALAR_BYTES:
        raise MalformedNote(
            "%s note %s must be 1..%d bytes, got %d"
            % (note_format.value, name, SCALAR_BYTES, len(data))
        )
    return data


def _split_payload(payload: bytes, payload_hex: str, note_format):
    if note_format is NoteFormat.BYTE_SPLIT:
        if not SCALAR_BYTES < len(payload) <= 2 * SCALAR_BYTES:
            raise MalformedNote(
                "note payload must be %d..%d bytes, got %d"
                % (SCALAR_BYTES + 1, 2 * SCALAR_BYTES, len(payload))
            )
        return payload[:SCALAR_BYTES], payload[SCALAR_BYTES:]

    if note_format is NoteFormat.HEX_MIDPOINT:
        mid = len(payload_hex) // 2
        left_hex = payload_hex[:mid]
        right_hex = payload_hex[mid:]
        # an odd number of hex characters on either side cannot be decoded
        if len(left_hex) % 2 != 0 or len(right_hex) == 0:
            raise MalformedNote("note payload cannot be split at its hex midpoint")
        return (
            _check_half("nullifier", bytes.fromhex(left_hex), note_format),
            _check_half("secret", bytes.fromhex(right_hex), note_format),
        )

    raise UnsupportedNoteFormat("unsupported note format: %r" % (note_format,))


def get_note_format(value) -> NoteFormat:
    """NoteFormat from an enum member or its string value (e.g. from config)."""
    if isinstance(value, NoteFormat):
        return value
    try:
        return NoteFormat(value)
    except ValueError as e:
        raise UnsupportedNoteFormat("unsupported note format: %r" % (value,)) from e


class Note:
    """
    A registered deposit/withdrawal pair for one pool instance.

    commitment, nullifier_hash and reward_nullifier are pure functions of
    (secret, nullifier) and are computed once in the constructor.
    """

    def __init__(
        self,
        hasher,
        secret=None,
        nullifier=None,
        instance=None,
        deposit_block=None,
        withdrawal_block=None,
        label="tornado",
        currency=None,
        amount=None,
        net_id=None,
    ):
        self.hasher = hasher
        self.secret = to_int(secret) if secret is not None else random_bn(SCALAR_BYTES)
        self.nullifier = to_int(nullifier) if nullifier is not None else random_bn(SCALAR_BYTES)

        self.commitment = commit(hasher, self.nullifier, self.secret)
        self.nullifier_hash = nullify(hasher, self.nullifier)
        self.reward_nullifier = reward_nullify(hasher, self.nullifier)

        self.instance = to_fixed_hex(instance, ADDRESS_BYTES) if instance is not None else None
        self.deposit_block = to_int(deposit_block) if deposit_block is not None else None
        self.withdrawal_block = to_int(withdrawal_block) if withdrawal_block is not None else None

        self.label = label
        self.currency = currency
        self.amount = amount
        self.net_id = net_id

    @classmethod
    def from_string(
        cls,
        hasher,
        note_str,
        instance,
        deposit_block,
        withdrawal_block,
        note_format=CANONICAL_NOTE_FORMAT,
    ):
        """
        Parse '<label>-<currency>-<amount>-<netId>-0x<hex>' with an explicit
        payload format revision.
        """
        note_format = get_note_format(note_format)
        if not isinstance(note_str, str):
            raise MalformedNote("note must be a string")

        parts = note_str.strip().split(NOTE_DELIMITER)
        if len(parts) != 5:
            raise MalformedNote(
                "note must have 5 '%s'-separated parts, got %d" % (NOTE_DELIMITER, len(parts))
            )
        label, currency, amount, net_id, payload_hex = parts

        if not payload_hex.startswith(("0x", "0X")):
            raise MalformedNote("note payload must be 0x-prefixed hex")
        try:
            payload = turn_hex_str_to_bytes(payload_hex)
        except ValueError as e:
            raise MalformedNote("note payload is not valid hex") from e

        nullifier_bytes, secret_bytes = _split_payload(payload, payload_hex[2:], note_format)

        note = cls(
            hasher,
            secret=int.from_bytes(secret_bytes, "little"),
            nullifier=int.from_bytes(nullifier_bytes, "little"),
            instance=instance,
            deposit_block=deposit_block,
            withdrawal_block=withdrawal_block,
            label=label,
            currency=currency,
            amount=amount,
            net_id=net_id,
        )
        logger.debug(
            "[NOTE] parsed %s note, commitment = %s",
            note_format.value,
            short_hex(to_fixed_hex(note.commitment)),
        )
        return note

    def to_string(self) -> str:
        """Serialize in the canonical BYTE_SPLIT layout."""
        if self.currency is None or self.amount is None or self.net_id is None:
            raise MalformedNote("currency, amount and net_id are required to serialize a note")
        payload = self.nullifier.to_bytes(SCALAR_BYTES, "little") + self.secret.to_bytes(
            SCALAR_BYTES, "little"
        )
        return NOTE_DELIMITER.join(
            [self.label, str(self.currency), str(self.amount), str(self.net_id), "0x" + payload.hex()]
        )

    def __repr__(self):
        return "<Note instance=%s commitment=%s deposit_block=%s withdrawal_block=%s>" % (
            self.instance,
            short_hex(to_fixed_hex(self.commitment)),
            self.deposit_block,
            self.withdrawal_block,
        )
