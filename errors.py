# errors.py
# Error taxonomy for the mining client.
#
# Every error is terminal for the operation in progress. None of them is
# retried internally: retrying against the same Merkle snapshot would only
# reproduce the failure, so callers re-fetch and try again themselves.


class MiningError(Exception):
    """Base class for all errors raised by the mining client."""


# ---------------- codec errors ----------------

class InvalidAmount(MiningError, ValueError):
    def __init__(self, amount):
        super().__init__("Cannot create an account with negative amount: %s" % amount)
        self.amount = amount


class EncodingOverflow(MiningError, ValueError):
    def __init__(self, value, length):
        super().__init__(
            "value %s does not fit into %d bytes" % (value, length)
        )
        self.value = value
        self.length = length


class MalformedNote(MiningError, ValueError):
    pass


class UnsupportedNoteFormat(MiningError, ValueError):
    pass


class DecryptionFailed(MiningError):
    pass


class MalformedBlob(MiningError, ValueError):
    pass


# ---------------- tree / lookup errors ----------------

class TreeCapacityExceeded(MiningError):
    def __init__(self, levels, size, adding):
        super().__init__(
            "Merkle tree with %d levels is full: %d leaves present, %d more requested"
            % (levels, size, adding)
        )
        self.levels = levels
        self.size = size
        self.adding = adding


class InconsistentLedgerData(MiningError):
    """Ledger events cannot be replayed into a tree (index gap or conflicting duplicate)."""

    def __init__(self, tree_name, message):
        super().__init__("[%s] %s" % (tree_name, message))
        self.tree_name = tree_name


class UnregisteredNote(MiningError):
    def __init__(self, tree_name, leaf_hash):
        super().__init__(
            "The %s tree does not contain such note leaf: %s" % (tree_name, leaf_hash)
        )
        self.tree_name = tree_name
        self.leaf_hash = leaf_hash


class UnknownAccount(MiningError):
    def __init__(self, commitment):
        super().__init__(
            "The accounts tree does not contain such account commitment: %s" % commitment
        )
        self.commitment = commitment


# ---------------- collaborator errors ----------------

class LedgerUnavailable(MiningError):
    pass


class LedgerRejected(MiningError):
    """The ledger refused a submission. `reason` mirrors the contract revert string."""

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class ProofGenerationFailed(MiningError):
    def __init__(self, circuit_name, cause=None):
        msg = "proof generation failed for circuit %s" % circuit_name
        if cause is not None:
            msg = msg + ": " + repr(cause)
        super().__init__(msg)
        self.circuit_name = circuit_name
        self.cause = cause
