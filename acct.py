# acct.py
# Account: the private running balance of a miner.
import base64
import binascii

from errors import InvalidAmount, MalformedBlob
from tools import SCALAR_BYTES, random_bn, short_hex, to_int
from wrappers.sealed_box_wrapper import (
    MAC_SIZE,
    NONCE_SIZE,
    PUBLIC_KEY_SIZE,
    decrypt_message,
    encrypt_message,
    pack_encrypted_message,
    unpack_encrypted_message,
)

_PLAINTEXT_SIZE = 3 * SCALAR_BYTES
# base64 text of the plaintext, sealed: 24 + 32 + 124 + 16 bytes
SEALED_ACCOUNT_SIZE = NONCE_SIZE + PUBLIC_KEY_SIZE + 4 * ((_PLAINTEXT_SIZE + 2) // 3) + MAC_SIZE


class Account:
    """
    Account state that is only ever published as a commitment.

    Design notes:
      - amount must be non-negative, otherwise InvalidAmount is raised.
      - secret and nullifier are fresh 31-byte random scalars unless given.
      - commitment    = H([amount, secret, nullifier])
        nullifier_hash = H([nullifier])
        where H is the hash strategy passed in; it must be the same strategy
        used by the account tree the commitment is inserted into.
      - Accounts are never mutated. Every reward claim or withdrawal produces
        a brand-new Account; the old nullifier_hash is what the ledger marks
        as spent.
    """

    def __init__(self, hasher, amount=0, secret=None, nullifier=None):
        amount = to_int(amount)
        if amount < 0:
            raise InvalidAmount(amount)

        self.hasher = hasher
        self.amount = amount
        self.secret = to_int(secret) if secret is not None else random_bn(SCALAR_BYTES)
        self.nullifier = to_int(nullifier) if nullifier is not None else random_bn(SCALAR_BYTES)

        self.commitment = hasher.hash([self.amount, self.secret, self.nullifier])
        self.nullifier_hash = hasher.hash([self.nullifier])

    # ---------------- sealed state ----------------
    def to_plaintext(self) -> bytes:
        """amount || secret || nullifier, each 31 bytes big-endian."""
        parts = []
        for value in (self.amount, self.secret, self.nullifier):
            try:
                parts.append(value.to_bytes(SCALAR_BYTES, "big"))
            except OverflowError:
                raise ValueError("account field does not fit into 31 bytes: %d" % value)
        return b"".join(parts)

    @classmethod
    def from_plaintext(cls, hasher, data: bytes):
        if len(data) != _PLAINTEXT_SIZE:
            raise MalformedBlob(
                "sealed account payload must be %d bytes, got %d" % (_PLAINTEXT_SIZE, len(data))
            )
        amount = int.from_bytes(data[0:SCALAR_BYTES], "big")
        secret = int.from_bytes(data[SCALAR_BYTES:2 * SCALAR_BYTES], "big")
        nullifier = int.from_bytes(data[2 * SCALAR_BYTES:3 * SCALAR_BYTES], "big")
        return cls(hasher, amount=amount, secret=secret, nullifier=nullifier)

    def encrypt(self, public_key):
        """
        Encrypt this account for `public_key`. The sealed plaintext is the
        base64 text of to_plaintext(), as wallets expect string messages.
        """
        data = base64.b64encode(self.to_plaintext())
        return encrypt_message(public_key, data)

    @classmethod
    def decrypt(cls, hasher, private_key, message):
        text = decrypt_message(private_key, message)
        try:
            data = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedBlob("sealed account payload is not base64") from e
        return cls.from_plaintext(hasher, data)

    def __eq__(self, other):
        if not isinstance(other, Account):
            return NotImplemented
        return (
            self.amount == other.amount
            and self.secret == other.secret
            and self.nullifier == other.nullifier
            and self.commitment == other.commitment
        )

    def __hash__(self):
        return hash(self.commitment)

    def __repr__(self):
        return "<Account amount=%d commitment=%s>" % (self.amount, short_hex(self.commitment))


def seal(account, recipient_public_key) -> str:
    """Encrypt `account` for the recipient and pack it into a hex blob."""
    return pack_encrypted_message(account.encrypt(recipient_public_key))


def unseal(hasher, private_key, blob) -> Account:
    """
    Inverse of seal():
      - non-hex blob, or not exactly SEALED_ACCOUNT_SIZE bytes -> MalformedBlob
      - wrong private key                                     -> DecryptionFailed
    """
    message = unpack_encrypted_message(blob)
    size = len(message.nonce) + len(message.ephem_public_key) + len(message.ciphertext)
    if size != SEALED_ACCOUNT_SIZE:
        raise MalformedBlob(
            "sealed account must be %d bytes, got %d" % (SEALED_ACCOUNT_SIZE, size)
        )
    return Account.decrypt(hasher, private_key, message)
