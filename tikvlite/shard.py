"""Requests that can be split over the regions they touch."""

from __future__ import annotations

import abc
from typing import Any, AsyncIterator

from tikvlite.store import PdClient, Store, store_stream_for_keys, store_stream_for_range


class Shardable(abc.ABC):
    """Something that splits into one shard per store."""

    @abc.abstractmethod
    def shards(self, pd_client: PdClient) -> AsyncIterator[tuple[Any, Store]]:
        """Yield ``(shard, store)`` pairs."""

    @abc.abstractmethod
    def apply_shard(self, shard: Any, store: Store) -> None:
        """Narrow this object to one shard aimed at one store."""


class KeysShardable(Shardable):
    """A request with a ``keys`` list and a ``context``, sharded by key."""

    keys: list[bytes]
    context: Any

    def shards(self, pd_client: PdClient) -> AsyncIterator[tuple[list[bytes], Store]]:
        return store_stream_for_keys(sorted(self.keys), pd_client)

    def apply_shard(self, shard: list[bytes], store: Store) -> None:
        self.context = store.region.context()
        self.keys = list(shard)


class RangeShardable(Shardable):
    """A request with ``start_key`` and ``end_key``, sharded by range."""

    start_key: bytes
    end_key: bytes
    context: Any

    def shards(
        self, pd_client: PdClient
    ) -> AsyncIterator[tuple[tuple[bytes, bytes], Store]]:
        return store_stream_for_range((self.start_key, self.end_key), pd_client)

    def apply_shard(self, shard: tuple[bytes, bytes], store: Store) -> None:
        self.context = store.region.context()
        self.start_key, self.end_key = shard