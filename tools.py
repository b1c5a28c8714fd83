import os

from errors import EncodingOverflow

# BN254 scalar field order; every circuit signal lives below this bound.
FIELD_SIZE = int(
    "21888242871839275222246405745257275088548364400416034343698204186575808495617"
)

# Secrets and nullifiers are 31 bytes so they always fit the scalar field.
SCALAR_BYTES = 31
ADDRESS_BYTES = 20


# ==========================================================
# Utility functions
# ==========================================================
def turn_hex_str_to_bytes(s) -> bytes:
    """
    Convert bytes or a hex string (with or without 0x prefix) into bytes.
    Raise ValueError if the input is an invalid hex string.
    """
    if isinstance(s, (bytes, bytearray)):
        return bytes(s)

    if not isinstance(s, str):
        raise TypeError("turn_hex_str_to_bytes only accepts str or bytes")

    s2 = s.strip()
    if s2.startswith(("0x", "0X")):
        s2 = s2[2:]
    if len(s2) % 2 != 0:
        raise ValueError("hex string length must be even")
    try:
        return bytes.fromhex(s2)
    except ValueError as e:
        raise ValueError("invalid hex string: " + repr(e))


def to_int(value) -> int:
    """
    Interpret an int, a 0x-prefixed hex string, a decimal string or
    big-endian bytes as a non-negative integer.
    """
    if isinstance(value, bool):
        raise TypeError("bool is not a valid numeric value")
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(bytes(value), "big")
    if isinstance(value, str):
        s = value.strip()
        if s.startswith(("0x", "0X")):
            if len(s) == 2:
                return 0
            return int(s[2:], 16)
        return int(s, 10)
    raise TypeError("cannot convert %r to int" % type(value))


def to_fixed_hex(value, length=32) -> str:
    """
    Encode value as 0x-prefixed hex, zero-left-padded to exactly `length` bytes.

    Raises EncodingOverflow for negative values or values that need more
    than `length` bytes.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
        if len(raw) > length:
            raise EncodingOverflow("0x" + raw.hex(), length)
        return "0x" + raw.hex().rjust(length * 2, "0")

    number = to_int(value)
    if number < 0 or number >= 1 << (8 * length):
        raise EncodingOverflow(number, length)
    return "0x" + format(number, "x").rjust(length * 2, "0")


def bits_to_number(bits) -> int:
    """
    Fold a list of path bits into an integer; bits[0] is the least significant.
    """
    result = 0
    for item in reversed(list(bits)):
        result = (result << 1) + int(item)
    return result


def random_bn(nbytes=SCALAR_BYTES) -> int:
    """
    Return a random little-endian integer of `nbytes` bytes.
    """
    return int.from_bytes(os.urandom(nbytes), "little")


def short_hex(h, prefix_len=8):
    """
    Return a shortened hex string like abcd1234...9f0a.
    If h is bytes or bytearray, convert to hex string first.
    If h is not a string or hex string is already short, return as-is.
    """
    if isinstance(h, (bytes, bytearray)):
        s = bytes(h).hex()
    elif isinstance(h, int) and not isinstance(h, bool):
        s = hex(h)
    else:
        s = h

    if not isinstance(s, str):
        return s

    if len(s) <= prefix_len * 2:
        return s

    head = s[:prefix_len]
    tail = s[-4:]
    return head + "..." + tail
