"""Regions: key ranges of the cluster together with their leader."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from tikvlite.errors import LeaderNotFoundError


@dataclass(frozen=True)
class RegionEpoch:
    """Configuration and data version of a region."""

    conf_ver: int = 0
    version: int = 0


@dataclass(frozen=True)
class Peer:
    """One replica of a region on a store."""

    id: int = 0
    store_id: int = 0


@dataclass(frozen=True)
class RegionMeta:
    """Region metadata as reported by the placement driver."""

    id: int = 0
    start_key: bytes = b""
    end_key: bytes = b""
    region_epoch: RegionEpoch = field(default_factory=RegionEpoch)
    peers: tuple[Peer, ...] = ()


@dataclass(frozen=True)
class Context:
    """Routing context attached to a request sent to a region."""

    region_id: int = 0
    region_epoch: RegionEpoch = field(default_factory=RegionEpoch)
    peer: Optional[Peer] = None


@dataclass(frozen=True)
class RegionVerId:
    """A region's id with its conf change and split/merge versions."""

    id: int = 0
    conf_ver: int = 0
    ver: int = 0


@dataclass(frozen=True)
class Region:
    """A region and its leader, if known."""

    region: RegionMeta = field(default_factory=RegionMeta)
    leader: Optional[Peer] = None

    def contains(self, key: bytes) -> bool:
        """Whether the key lies in the region; an empty end key is unbounded."""
        start_key = self.region.start_key
        end_key = self.region.end_key
        return key >= start_key and (key < end_key or not end_key)

    def context(self) -> Context:
        """The request context for this region's leader."""
        if self.leader is None:
            raise LeaderNotFoundError(self.region.id)
        return Context(
            region_id=self.region.id,
            region_epoch=self.region.region_epoch,
            peer=self.leader,
        )

    def start_key(self) -> bytes:
        return bytes(self.region.start_key)

    def end_key(self) -> bytes:
        return bytes(self.region.end_key)

    def range(self) -> tuple[bytes, bytes]:
        return self.start_key(), self.end_key()

    def ver_id(self) -> RegionVerId:
        epoch = self.region.region_epoch
        return RegionVerId(
            id=self.region.id, conf_ver=epoch.conf_ver, ver=epoch.version
        )

    def id(self) -> int:
        return self.region.id

    def store_id(self) -> int:
        """The store holding the leader."""
        if self.leader is None:
            raise LeaderNotFoundError(self.id())
        return self.leader.store_id