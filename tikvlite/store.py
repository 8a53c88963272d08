"""Stores and the streams that map keys and ranges onto them."""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Iterable

from tikvlite.region import Region

logger = logging.getLogger(__name__)


class KvClient(abc.ABC):
    """A connection to one storage node."""

    @abc.abstractmethod
    async def dispatch(self, request: Any) -> Any:
        """Send a request and return its response."""


@dataclass(frozen=True)
class KeyRange:
    """A half-open key range; an empty end key is unbounded."""

    start_key: bytes = b""
    end_key: bytes = b""


@dataclass
class Store:
    """A region together with a client for the node leading it."""

    region: Region
    client: KvClient


class PdClient(abc.ABC):
    """Locates regions and the stores that serve them."""

    @abc.abstractmethod
    async def store_for_id(self, region_id: int) -> Store:
        """The store for the region with the given id."""

    @abc.abstractmethod
    async def store_for_key(self, key: bytes) -> Store:
        """The store for the region that holds the key."""

    async def group_keys_by_region(
        self, keys: Iterable[bytes]
    ) -> AsyncIterator[tuple[int, list[bytes]]]:
        """Group sorted keys into runs that share a region."""
        current_id = None
        group: list[bytes] = []
        for key in keys:
            store = await self.store_for_key(key)
            region_id = store.region.id()
            if current_id is not None and region_id != current_id:
                yield current_id, group
                group = []
            current_id = region_id
            group.append(key)
        if current_id is not None:
            yield current_id, group

    async def group_ranges_by_region(
        self, ranges: Iterable[KeyRange]
    ) -> AsyncIterator[tuple[int, list[KeyRange]]]:
        """Split ranges at region boundaries and group the pieces by region."""
        current_id = None
        group: list[KeyRange] = []
        for key_range in ranges:
            start, end = key_range.start_key, key_range.end_key
            while True:
                store = await self.store_for_key(start)
                region_id = store.region.id()
                region_end = store.region.end_key()
                if current_id is not None and region_id != current_id:
                    yield current_id, group
                    group = []
                current_id = region_id
                if not region_end or (end and end <= region_end):
                    group.append(KeyRange(start, end))
                    break
                group.append(KeyRange(start, region_end))
                start = region_end
        if current_id is not None:
            yield current_id, group

    async def stores_for_range(
        self, start_key: bytes, end_key: bytes
    ) -> AsyncIterator[Store]:
        """Every store whose region overlaps the range, in key order."""
        key = start_key
        while True:
            store = await self.store_for_key(key)
            yield store
            region_end = store.region.end_key()
            if not region_end or (end_key and region_end >= end_key):
                return
            key = region_end


def range_intersection(
    region_range: tuple[bytes, bytes], range: tuple[bytes, bytes]
) -> tuple[bytes, bytes]:
    """Intersect two ranges, where an empty end key means unbounded."""
    lower, upper = region_range
    if not upper:
        up = range[1]
    elif not range[1]:
        up = upper
    else:
        up = min(upper, range[1])
    return max(lower, range[0]), up


async def store_stream_for_keys(
    keys: Iterable[bytes], pd_client: PdClient
) -> AsyncIterator[tuple[list[bytes], Store]]:
    """Map sorted keys to the stores holding them."""
    async for region_id, group in pd_client.group_keys_by_region(keys):
        store = await pd_client.store_for_id(region_id)
        yield group, store


async def store_stream_for_range(
    range: tuple[bytes, bytes], pd_client: PdClient
) -> AsyncIterator[tuple[tuple[bytes, bytes], Store]]:
    """Split a range over the stores it touches."""
    start, end = range
    async for store in pd_client.stores_for_range(start, end):
        yield range_intersection(store.region.range(), (start, end)), store


async def store_stream_for_range_by_start_key(
    start_key: bytes, pd_client: PdClient
) -> AsyncIterator[tuple[bytes, Store]]:
    """The start key to use in each store from ``start_key`` onwards."""
    async for store in pd_client.stores_for_range(start_key, b""):
        yield range_intersection(store.region.range(), (start_key, b""))[0], store


async def store_stream_for_ranges(
    ranges: Iterable[KeyRange], pd_client: PdClient
) -> AsyncIterator[tuple[list[KeyRange], Store]]:
    """Group ranges by the stores that hold them."""
    async for region_id, group in pd_client.group_ranges_by_region(ranges):
        store = await pd_client.store_for_id(region_id)
        yield group, store