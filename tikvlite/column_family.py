"""Column families that raw requests may address."""

from __future__ import annotations

import enum

from tikvlite.errors import ColumnFamilyError


class ColumnFamily(enum.Enum):
    """A storage column family; requests use ``DEFAULT`` when none is given."""

    DEFAULT = "default"
    LOCK = "lock"
    WRITE = "write"
    VERSION_DEFAULT = "ver_default"

    @classmethod
    def parse(cls, value: str) -> "ColumnFamily":
        """Look up a column family by its name."""
        for member in cls:
            if member.value == value:
                return member
        raise ColumnFamilyError(value)

    def __str__(self) -> str:
        return self.value