"""Identity, hash and signature containers."""

from votalizer.types import Bytes32, Bytes64


class Pubkey(Bytes32):
    """A validator's vote account identity (ed25519 public key)."""


class Hash(Bytes32):
    """
    Content hash of a voted block.

    Two votes for the same slot with different hashes are on different forks.
    """


class Signature(Bytes64):
    """
    Signature of a vote transaction.

    Also serves as the transaction identifier. It may name a transaction
    that only ever landed on a fork that was later abandoned.
    """
