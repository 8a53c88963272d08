"""A client for raw key-value requests."""

from __future__ import annotations

import copy
from typing import Any, Iterable, Optional, Union

from tikvlite.column_family import ColumnFamily
from tikvlite.errors import MaxScanLimitExceededError, UnsupportedModeError
from tikvlite.plan import Backoff, Collect
from tikvlite.plan_builder import PlanBuilder
from tikvlite.raw_requests import (
    KeyLike,
    KvPair,
    RangeLike,
    new_cas_request,
    new_raw_batch_delete_request,
    new_raw_batch_get_request,
    new_raw_batch_put_request,
    new_raw_batch_scan_request,
    new_raw_delete_range_request,
    new_raw_delete_request,
    new_raw_get_request,
    new_raw_put_request,
    new_raw_scan_request,
)
from tikvlite.store import PdClient

MAX_RAW_KV_SCAN_LIMIT = 10240
DEFAULT_REGION_BACKOFF = Backoff.no_jitter_backoff(2, 500, 10)


class RawClient:
    """Sends raw requests, each processed on its own without a transaction.

    Ranges are given as a ``KeyRange`` or as a ``(start, end)`` pair; the end
    is exclusive, and an end of ``None`` or ``b""`` means unbounded.
    """

    def __init__(
        self,
        pd_client: PdClient,
        cf: Optional[Union[ColumnFamily, str]] = None,
        atomic: bool = False,
        region_backoff: Optional[Backoff] = None,
    ) -> None:
        if isinstance(cf, str):
            cf = ColumnFamily.parse(cf)
        self.pd_client = pd_client
        self.cf: Optional[ColumnFamily] = cf
        self.atomic = atomic
        self.region_backoff = (
            region_backoff if region_backoff is not None else DEFAULT_REGION_BACKOFF
        )

    def _backoff(self) -> Backoff:
        return copy.copy(self.region_backoff)

    def with_cf(self, cf: Union[ColumnFamily, str]) -> "RawClient":
        """A client sharing this one's connection but using the given column family."""
        return RawClient(self.pd_client, cf, self.atomic, self.region_backoff)

    def with_atomic_for_cas(self) -> "RawClient":
        """A client in atomic mode, as ``compare_and_swap`` requires.

        Writes are dearer in this mode and some operations are refused.
        """
        return RawClient(self.pd_client, self.cf, True, self.region_backoff)

    def _assert_non_atomic(self) -> None:
        if self.atomic:
            raise UnsupportedModeError()

    def _assert_atomic(self) -> None:
        if not self.atomic:
            raise UnsupportedModeError()

    async def _single(self, request: Any, *, process: bool) -> Any:
        builder = await PlanBuilder(self.pd_client, request).single_region()
        builder = builder.retry_region(self._backoff())
        builder = builder.post_process_default() if process else builder.extract_error()
        return await builder.plan().execute()

    async def _multi(self, request: Any, *, collect: bool) -> Any:
        builder = (
            PlanBuilder(self.pd_client, request)
            .multi_region()
            .retry_region(self._backoff())
        )
        builder = builder.merge(Collect()) if collect else builder.extract_error()
        return await builder.plan().execute()

    async def get(self, key: KeyLike) -> Optional[bytes]:
        """The value stored under the key, or None if there is none."""
        return await self._single(new_raw_get_request(key, self.cf), process=True)

    async def batch_get(self, keys: Iterable[KeyLike]) -> list[KvPair]:
        """The pairs for the keys that exist; key order is not kept."""
        request = new_raw_batch_get_request(keys, self.cf)
        return await self._multi(request, collect=True)

    async def put(self, key: KeyLike, value: KeyLike) -> None:
        """Store a value under a key."""
        request = new_raw_put_request(key, value, self.cf, self.atomic)
        await self._single(request, process=False)

    async def batch_put(self, pairs: Iterable[Any]) -> None:
        """Store every ``(key, value)`` pair."""
        request = new_raw_batch_put_request(pairs, self.cf, self.atomic)
        await self._multi(request, collect=False)

    async def delete(self, key: KeyLike) -> None:
        """Delete a key; a missing key is not an error."""
        request = new_raw_delete_request(key, self.cf, self.atomic)
        await self._single(request, process=False)

    async def batch_delete(self, keys: Iterable[KeyLike]) -> None:
        """Delete every key given; missing keys are skipped."""
        self._assert_non_atomic()
        request = new_raw_batch_delete_request(keys, self.cf)
        await self._multi(request, collect=False)

    async def delete_range(self, range: RangeLike) -> None:
        """Delete every key in the range."""
        self._assert_non_atomic()
        request = new_raw_delete_range_request(range, self.cf)
        await self._multi(request, collect=False)

    async def scan(self, range: RangeLike, limit: int) -> list[KvPair]:
        """At most ``limit`` pairs in the range, in key order."""
        return await self._scan_inner(range, limit, False)

    async def scan_keys(self, range: RangeLike, limit: int) -> list[bytes]:
        """At most ``limit`` keys in the range, in key order."""
        return [pair.key for pair in await self._scan_inner(range, limit, True)]

    async def batch_scan(
        self, ranges: Iterable[RangeLike], each_limit: int
    ) -> list[KvPair]:
        """Pairs in each of the ranges.

        ``each_limit`` applies to each region of each range, so a range may
        yield more than ``each_limit`` pairs.
        """
        return await self._batch_scan_inner(ranges, each_limit, False)

    async def batch_scan_keys(
        self, ranges: Iterable[RangeLike], each_limit: int
    ) -> list[bytes]:
        """Keys in each of the ranges, limited as in ``batch_scan``."""
        pairs = await self._batch_scan_inner(ranges, each_limit, True)
        return [pair.key for pair in pairs]

    async def compare_and_swap(
        self,
        key: KeyLike,
        previous_value: Optional[KeyLike],
        new_value: KeyLike,
    ) -> tuple[Optional[bytes], bool]:
        """Write ``new_value`` if the stored value equals ``previous_value``.

        ``None`` as the previous value means the key must not exist. Returns
        the value found before and whether the swap happened.
        """
        self._assert_atomic()
        request = new_cas_request(key, new_value, previous_value, self.cf)
        return await self._single(request, process=True)

    async def _scan_inner(
        self, range: RangeLike, limit: int, key_only: bool
    ) -> list[KvPair]:
        if limit > MAX_RAW_KV_SCAN_LIMIT:
            raise MaxScanLimitExceededError(limit, MAX_RAW_KV_SCAN_LIMIT)
        request = new_raw_scan_request(range, limit, key_only, self.cf)
        pairs = await self._multi(request, collect=True)
        return pairs[:limit]

    async def _batch_scan_inner(
        self, ranges: Iterable[RangeLike], each_limit: int, key_only: bool
    ) -> list[KvPair]:
        if each_limit > MAX_RAW_KV_SCAN_LIMIT:
            raise MaxScanLimitExceededError(each_limit, MAX_RAW_KV_SCAN_LIMIT)
        request = new_raw_batch_scan_request(ranges, each_limit, key_only, self.cf)
        return await self._multi(request, collect=True)