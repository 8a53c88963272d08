"""Timestamps handed out by the timestamp oracle.

A version packs a timestamp into 64 bits: the low 18 bits hold the logical
part and the higher bits the physical part.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

PHYSICAL_SHIFT_BITS = 18
LOGICAL_MASK = (1 << PHYSICAL_SHIFT_BITS) - 1

_U64_MAX = (1 << 64) - 1


def _as_i64(value: int) -> int:
    value &= _U64_MAX
    return value - (1 << 64) if value >= 1 << 63 else value


@dataclass(frozen=True)
class Timestamp:
    """A timestamp with a physical and a logical part."""

    physical: int = 0
    logical: int = 0
    suffix_bits: int = 0

    def version(self) -> int:
        """Pack the timestamp into an unsigned 64-bit version."""
        version = (self.physical << PHYSICAL_SHIFT_BITS) + self.logical
        if not 0 <= version <= _U64_MAX:
            raise OverflowError("Overflow converting timestamp to version")
        return version

    @classmethod
    def from_version(cls, version: int) -> "Timestamp":
        """Unpack a 64-bit version into a timestamp."""
        signed = _as_i64(version)
        return cls(
            physical=signed >> PHYSICAL_SHIFT_BITS,
            logical=signed & LOGICAL_MASK,
            suffix_bits=0,
        )

    @classmethod
    def try_from_version(cls, version: int) -> Optional["Timestamp"]:
        """Unpack a version, where 0 means no timestamp."""
        if version == 0:
            return None
        return cls.from_version(version)