"""Exceptions raised by the client."""

from __future__ import annotations

from typing import Any


class TikvError(Exception):
    """Base class for every error the client raises."""


class LeaderNotFoundError(TikvError):
    """The region has no known leader peer."""

    def __init__(self, region_id: int) -> None:
        super().__init__(f"Leader of region {region_id} is not found")
        self.region_id = region_id


class RegionNotFoundError(TikvError):
    """The region could not be found."""

    def __init__(self, region_id: int) -> None:
        super().__init__(f"Region {region_id} is not found")
        self.region_id = region_id


class ColumnFamilyError(TikvError):
    """The name does not denote a known column family."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unsupported column family {name}")
        self.name = name


class MaxScanLimitExceededError(TikvError):
    """A scan asked for more entries than the server allows."""

    def __init__(self, limit: int, max_limit: int) -> None:
        super().__init__(f"Limit {limit} exceeds max scan limit {max_limit}")
        self.limit = limit
        self.max_limit = max_limit


class UnsupportedModeError(TikvError):
    """The operation is not supported in the client's current mode."""

    def __init__(self) -> None:
        super().__init__("Raw operation is not supported in the current mode")


class ResolveLockError(TikvError):
    """Locks on the requested keys could not be resolved."""

    def __init__(self) -> None:
        super().__init__("Failed to resolve lock")


class UnimplementedError(TikvError):
    """The feature is not implemented."""

    def __init__(self) -> None:
        super().__init__("Unimplemented feature")


class KeyError_(TikvError):
    """A key error reported by a storage node in a response."""

    FIELDS = (
        "locked",
        "retryable",
        "abort",
        "conflict",
        "already_exist",
        "deadlock",
        "commit_ts_expired",
        "txn_not_found",
        "commit_ts_too_large",
    )

    def __init__(
        self,
        locked: Any = None,
        retryable: str = "",
        abort: str = "",
        conflict: Any = None,
        already_exist: Any = None,
        deadlock: Any = None,
        commit_ts_expired: Any = None,
        txn_not_found: Any = None,
        commit_ts_too_large: Any = None,
    ) -> None:
        self.locked = locked
        self.retryable = retryable
        self.abort = abort
        self.conflict = conflict
        self.already_exist = already_exist
        self.deadlock = deadlock
        self.commit_ts_expired = commit_ts_expired
        self.txn_not_found = txn_not_found
        self.commit_ts_too_large = commit_ts_too_large
        details = ", ".join(
            f"{name}={getattr(self, name)!r}"
            for name in self.FIELDS
            if getattr(self, name) not in (None, "")
        )
        super().__init__(f"Key error: {{{details}}}")