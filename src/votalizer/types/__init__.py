"""Reusable type definitions for the lockout monitor."""

from .base import CamelModel, StrictBaseModel
from .base58 import Base58
from .byte_arrays import BaseBytes, Bytes32, Bytes64
from .uint import BaseUint, Uint64

__all__ = [
    "Base58",
    "BaseBytes",
    "BaseUint",
    "Bytes32",
    "Bytes64",
    "CamelModel",
    "StrictBaseModel",
    "Uint64",
]
