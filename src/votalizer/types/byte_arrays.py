"""
Fixed-length byte array types.

Validator identities, block hashes and transaction signatures all travel as
Base58 text on the wire but are compared and hashed as raw bytes internally.
"""

from __future__ import annotations

from typing import Any, ClassVar, Iterable

from pydantic.annotated_handlers import GetCoreSchemaHandler
from pydantic_core import core_schema
from typing_extensions import Self

from .base58 import Base58


def _coerce_to_bytes(value: Any) -> bytes:
    """
    Coerce a variety of inputs to raw bytes.

    Accepts:
      - `bytes` / `bytearray` (returned as immutable `bytes`)
      - Iterables of integers in [0, 255]

    Text is deliberately not accepted here: use `from_base58` so that the
    encoding is always explicit at the call site.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        raise TypeError("Text must be decoded explicitly, e.g. with from_base58()")
    if isinstance(value, Iterable):
        return bytes(bytearray(value))
    return bytes(value)


class BaseBytes(bytes):
    """
    A base class for fixed-length byte types that inherits from `bytes`.

    Subclasses set:
      - `LENGTH`: exact number of bytes the instance must contain.

    Instances are immutable byte objects with strict length checking.
    """

    LENGTH: ClassVar[int]
    """The exact number of bytes (overridden by subclasses)."""

    def __new__(cls, value: Any = b"") -> Self:
        """
        Create and validate a new Bytes instance.

        Raises:
            ValueError: If the resulting byte length differs from `LENGTH`.
        """
        if not hasattr(cls, "LENGTH"):
            raise TypeError(f"{cls.__name__} must define LENGTH")

        b = _coerce_to_bytes(value)
        if len(b) != cls.LENGTH:
            raise ValueError(f"{cls.__name__} expects exactly {cls.LENGTH} bytes, got {len(b)}")
        return super().__new__(cls, b)

    @classmethod
    def zero(cls) -> Self:
        """Create a new instance filled with zero bytes."""
        return cls(b"\x00" * cls.LENGTH)

    @classmethod
    def from_base58(cls, text: str) -> Self:
        """
        Parse the Base58 text form used by the vote feed.

        Raises:
            ValueError: On invalid characters or a decoded length other than `LENGTH`.
        """
        return cls(Base58.decode(text))

    def to_base58(self) -> str:
        """Render as Base58 text."""
        return Base58.encode(bytes(self))

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """
        Hook into Pydantic's validation system.

        1. If the input is already an instance of the class, accept it.
        2. Raw bytes of the exact length are wrapped.
        3. In JSON mode, Base58 text is decoded.
        4. Serialization always emits Base58 text.
        """
        python_schema = core_schema.chain_schema(
            [
                core_schema.bytes_schema(min_length=cls.LENGTH, max_length=cls.LENGTH),
                core_schema.no_info_plain_validator_function(cls),
            ]
        )
        json_schema = core_schema.chain_schema(
            [
                core_schema.str_schema(),
                core_schema.no_info_plain_validator_function(cls.from_base58),
            ]
        )

        return core_schema.json_or_python_schema(
            json_schema=json_schema,
            python_schema=core_schema.union_schema(
                [core_schema.is_instance_schema(cls), python_schema]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda x: x.to_base58()
            ),
        )

    def __str__(self) -> str:
        """Return the Base58 text form."""
        return self.to_base58()

    def __repr__(self) -> str:
        """Return a string representation of the bytes."""
        return f"{type(self).__name__}({self.to_base58()})"

    def __hash__(self) -> int:
        """Return the hash of the bytes."""
        return hash((type(self), bytes(self)))


class Bytes32(BaseBytes):
    """Fixed-size byte array of exactly 32 bytes."""

    LENGTH = 32


class Bytes64(BaseBytes):
    """Fixed-size byte array of exactly 64 bytes."""

    LENGTH = 64
