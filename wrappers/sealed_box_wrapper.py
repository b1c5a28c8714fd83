# wrappers/sealed_box_wrapper.py
# x25519-xsalsa20-poly1305 encryption of account state for its next holder.
#
# This is the wallet "encryption public key" scheme: the sender generates an
# ephemeral Curve25519 key pair per message and seals the payload with a
# NaCl Box between the ephemeral secret key and the recipient public key.
#
# Key conventions:
#   - Private keys are 32 bytes (bytes or hex string, 0x prefix optional).
#   - Public keys are 32 bytes, exchanged as base64 text (bytes also accepted).
#   - Nonces are 24 bytes.
#
# Packed blob layout (hex, 0x-prefixed):
#   nonce(24) || ephemeral_public_key(32) || ciphertext(len(plaintext) + 16)

import base64
import binascii
from dataclasses import dataclass
from typing import Union

from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey
from nacl.utils import random as nacl_random

from errors import DecryptionFailed, MalformedBlob
from tools import turn_hex_str_to_bytes

NONCE_SIZE = Box.NONCE_SIZE
PUBLIC_KEY_SIZE = PublicKey.SIZE
MAC_SIZE = 16
MIN_BLOB_SIZE = NONCE_SIZE + PUBLIC_KEY_SIZE + MAC_SIZE

KeyLike = Union[str, bytes, bytearray]


@dataclass(frozen=True)
class EncryptedMessage:
    nonce: bytes
    ephem_public_key: bytes
    ciphertext: bytes


def _private_key_bytes(private_key: KeyLike) -> bytes:
    try:
        sk = turn_hex_str_to_bytes(private_key)
    except ValueError as e:
        raise ValueError("private key must be 32 bytes or a hex string") from e
    if len(sk) != PrivateKey.SIZE:
        raise ValueError("private key must be exactly 32 bytes")
    return sk


def _public_key_bytes(public_key: KeyLike) -> bytes:
    if isinstance(public_key, (bytes, bytearray)):
        pk = bytes(public_key)
    elif isinstance(public_key, str):
        try:
            pk = base64.b64decode(public_key.strip(), validate=True)
        except binascii.Error as e:
            raise ValueError("public key must be base64 text") from e
    else:
        raise TypeError("public key must be base64 str or bytes")
    if len(pk) != PUBLIC_KEY_SIZE:
        raise ValueError("public key must be exactly 32 bytes")
    return pk


def get_encryption_public_key(private_key: KeyLike) -> str:
    """Derive the base64 encryption public key for a 32-byte private key."""
    sk = PrivateKey(_private_key_bytes(private_key))
    return base64.b64encode(bytes(sk.public_key)).decode("ascii")


def encrypt_message(public_key: KeyLike, data: bytes) -> EncryptedMessage:
    """
    Encrypt `data` for the holder of `public_key` using a fresh ephemeral key.
    """
    recipient = PublicKey(_public_key_bytes(public_key))
    ephemeral = PrivateKey.generate()
    nonce = nacl_random(NONCE_SIZE)

    sealed = Box(ephemeral, recipient).encrypt(bytes(data), nonce)
    return EncryptedMessage(
        nonce=nonce,
        ephem_public_key=bytes(ephemeral.public_key),
        ciphertext=sealed.ciphertext,
    )


def decrypt_message(private_key: KeyLike, message: EncryptedMessage) -> bytes:
    """
    Open an EncryptedMessage. A wrong key or a tampered ciphertext raises
    DecryptionFailed.
    """
    sk = PrivateKey(_private_key_bytes(private_key))
    ephem = PublicKey(message.ephem_public_key)
    try:
        return Box(sk, ephem).decrypt(message.ciphertext, message.nonce)
    except CryptoError as e:
        raise DecryptionFailed("could not decrypt sealed message: " + str(e)) from e


def pack_encrypted_message(message: EncryptedMessage) -> str:
    """Concatenate nonce, ephemeral public key and ciphertext into one hex blob."""
    if len(message.nonce) != NONCE_SIZE:
        raise ValueError("nonce must be exactly 24 bytes")
    if len(message.ephem_public_key) != PUBLIC_KEY_SIZE:
        raise ValueError("ephemeral public key must be exactly 32 bytes")
    blob = message.nonce + message.ephem_public_key + message.ciphertext
    return "0x" + blob.hex()


def unpack_encrypted_message(blob) -> EncryptedMessage:
    """
    Exact inverse of pack_encrypted_message, splitting at fixed offsets.
    """
    try:
        raw = turn_hex_str_to_bytes(blob)
    except (TypeError, ValueError) as e:
        raise MalformedBlob("sealed blob is not valid hex: " + str(e)) from e

    if len(raw) < MIN_BLOB_SIZE:
        raise MalformedBlob(
            "sealed blob too short: %d bytes, need at least %d" % (len(raw), MIN_BLOB_SIZE)
        )

    return EncryptedMessage(
        nonce=raw[:NONCE_SIZE],
        ephem_public_key=raw[NONCE_SIZE:NONCE_SIZE + PUBLIC_KEY_SIZE],
        ciphertext=raw[NONCE_SIZE + PUBLIC_KEY_SIZE:],
    )
