"""Composable plans describing how a request is executed."""

from __future__ import annotations

import abc
import asyncio
import copy
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from tikvlite.errors import ResolveLockError, TikvError
from tikvlite.stats import tikv_stats
from tikvlite.store import KvClient, PdClient, Store


def _take_error(result: Any) -> Optional[BaseException]:
    if isinstance(result, list):
        for item in result:
            error = item if isinstance(item, BaseException) else _take_error(item)
            if error is not None:
                return error
        return None
    take = getattr(result, "take_error", None)
    return take() if take else None


def _take_region_error(result: Any) -> Optional[BaseException]:
    if isinstance(result, list):
        for item in result:
            if not isinstance(item, BaseException):
                error = _take_region_error(item)
                if error is not None:
                    return error
        return None
    take = getattr(result, "take_region_error", None)
    return take() if take else None


def _take_locks(result: Any) -> list:
    if isinstance(result, list):
        return [
            lock
            for item in result
            if not isinstance(item, BaseException)
            for lock in _take_locks(item)
        ]
    take = getattr(result, "take_locks", None)
    return list(take()) if take else []


@dataclass
class Backoff:
    """Exponential backoff without jitter; delays are in seconds."""

    base_delay_ms: int = 0
    max_delay_ms: int = 0
    max_attempts: int = 0
    attempts: int = 0

    @classmethod
    def no_backoff(cls) -> "Backoff":
        return cls()

    @classmethod
    def no_jitter_backoff(
        cls, base_delay_ms: int, max_delay_ms: int, max_attempts: int
    ) -> "Backoff":
        return cls(base_delay_ms, max_delay_ms, max_attempts)

    def next_delay_duration(self) -> Optional[float]:
        """The next delay, or None once every attempt is used up."""
        if self.attempts >= self.max_attempts:
            return None
        delay_ms = min(self.base_delay_ms * 2**self.attempts, self.max_delay_ms)
        self.attempts += 1
        return delay_ms / 1000

    def is_none(self) -> bool:
        return self.max_attempts == 0


class Plan(abc.ABC):
    """An executable step; wrappers add retries, merging and processing."""

    @abc.abstractmethod
    async def execute(self) -> Any:
        """Run the plan and return its result."""

    def _clone(self) -> "Plan":
        return copy.copy(self)


@dataclass
class Dispatch(Plan):
    """Send the request to one storage node."""

    request: Any
    kv_client: Optional[KvClient] = None

    async def execute(self) -> Any:
        if self.kv_client is None:
            raise TikvError("Unreachable: kv_client has not been initialised in Dispatch")
        label = getattr(self.request, "label", type(self.request).__name__)
        stats = tikv_stats(label)
        try:
            response = await self.kv_client.dispatch(self.request)
        except BaseException:
            stats.done(False)
            raise
        stats.done(True)
        return response

    def get_keys(self) -> list[bytes]:
        return self.request.get_keys()

    def shards(self, pd_client: PdClient) -> AsyncIterator[tuple[Any, Store]]:
        return self.request.shards(pd_client)

    def apply_shard(self, shard: Any, store: Store) -> None:
        self.kv_client = store.client
        self.request.apply_shard(shard, store)

    def _clone(self) -> "Dispatch":
        return Dispatch(copy.deepcopy(self.request), self.kv_client)


@dataclass
class MultiRegion(Plan):
    """Run the inner plan once per shard.

    The result lists, per shard, either the response or the exception that
    shard ended with. A failure while locating shards ends the list.
    """

    inner: Any
    pd_client: PdClient

    async def execute(self) -> list:
        results: list = []
        try:
            async for shard, store in self.inner.shards(self.pd_client):
                try:
                    clone = self.inner._clone()
                    clone.apply_shard(shard, store)
                    response = await clone.execute()
                    error = _take_error(response)
                    results.append(response if error is None else error)
                except TikvError as error:
                    results.append(error)
        except TikvError as error:
            results.append(error)
        return results

    def _clone(self) -> "MultiRegion":
        return replace(self, inner=self.inner._clone())


def _raise_first(results: list) -> None:
    for item in results:
        if isinstance(item, BaseException):
            raise item


class Collect:
    """Concatenate the pairs of every response."""

    def merge(self, results: list) -> list:
        _raise_first(results)
        return [pair for response in results for pair in response.collect_pairs()]


class CollectError:
    """Raise the first error, otherwise return the responses."""

    def merge(self, results: list) -> list:
        _raise_first(results)
        return list(results)


class CollectAndMatchKey:
    """Pair preserved keys with the values returned for them."""

    def merge(self, results: list) -> list[tuple[bytes, bytes]]:
        _raise_first(results)
        pairs: list[tuple[bytes, bytes]] = []
        for item in results:
            values = list(item.response.values)
            not_founds = list(item.response.not_founds)
            if not not_founds:
                # Legacy servers do not report missing keys; an empty value stands for one.
                values = [value for value in values if not value]
            else:
                if len(values) != len(not_founds):
                    raise ValueError("values and not_founds differ in length")
                values = [v for v, missing in zip(values, not_founds) if not missing]
            pairs.extend(zip(item.keys, values))
        return pairs


@dataclass
class MergeResponse(Plan):
    """Merge the per-shard results of the inner plan."""

    inner: Any
    merge: Any

    async def execute(self) -> Any:
        return self.merge.merge(await self.inner.execute())

    def _clone(self) -> "MergeResponse":
        return replace(self, inner=self.inner._clone())


class DefaultProcessor:
    """Let the response turn itself into its high-level result."""

    def process(self, response: Any) -> Any:
        return response.process()


@dataclass
class ProcessResponse(Plan):
    """Process the result of the inner plan."""

    inner: Any
    processor: Any = field(default_factory=DefaultProcessor)

    async def execute(self) -> Any:
        return self.processor.process(await self.inner.execute())

    def _clone(self) -> "ProcessResponse":
        return replace(self, inner=self.inner._clone())


@dataclass
class RetryRegion(Plan):
    """Retry the inner plan while it reports a region error."""

    inner: Any
    pd_client: PdClient
    backoff: Backoff = field(default_factory=Backoff)

    async def execute(self) -> Any:
        result = await self.inner.execute()
        backoff = copy.copy(self.backoff)
        while (region_error := _take_region_error(result)) is not None:
            delay = backoff.next_delay_duration()
            if delay is None:
                raise region_error
            await asyncio.sleep(delay)
            result = await self.inner.execute()
        return result

    def shards(self, pd_client: PdClient) -> AsyncIterator[tuple[Any, Store]]:
        return self.inner.shards(pd_client)

    def apply_shard(self, shard: Any, store: Store) -> None:
        self.inner.apply_shard(shard, store)

    def _clone(self) -> "RetryRegion":
        return replace(self, inner=self.inner._clone())


@dataclass
class ResolveLock(Plan):
    """Resolve locks reported by the inner plan and retry it."""

    inner: Any
    pd_client: PdClient
    backoff: Backoff = field(default_factory=Backoff)
    resolver: Optional[Callable[[list, PdClient], Awaitable[bool]]] = None

    async def execute(self) -> Any:
        result = await self.inner.execute()
        backoff = copy.copy(self.backoff)
        while True:
            locks = _take_locks(result)
            if not locks:
                return result
            if self.backoff.is_none():
                raise ResolveLockError()
            if self.resolver is not None and await self.resolver(locks, self.pd_client):
                result = await self.inner.execute()
                continue
            delay = backoff.next_delay_duration()
            if delay is None:
                raise ResolveLockError()
            await asyncio.sleep(delay)
            result = await self.inner.execute()

    def get_keys(self) -> list[bytes]:
        return self.inner.get_keys()

    def shards(self, pd_client: PdClient) -> AsyncIterator[tuple[Any, Store]]:
        return self.inner.shards(pd_client)

    def apply_shard(self, shard: Any, store: Store) -> None:
        self.inner.apply_shard(shard, store)

    def _clone(self) -> "ResolveLock":
        return replace(self, inner=self.inner._clone())


@dataclass
class ExtractError(Plan):
    """Raise any error or region error left in the inner plan's result."""

    inner: Any

    async def execute(self) -> Any:
        result = await self.inner.execute()
        error = _take_error(result)
        if error is None:
            error = _take_region_error(result)
        if error is not None:
            raise error
        return result

    def _clone(self) -> "ExtractError":
        return replace(self, inner=self.inner._clone())


@dataclass
class ResponseAndKeys:
    """A response together with the keys of the request that produced it."""

    response: Any
    keys: list[bytes]

    def take_error(self) -> Optional[BaseException]:
        return _take_error(self.response)

    def take_region_error(self) -> Optional[BaseException]:
        return _take_region_error(self.response)

    def take_locks(self) -> list:
        return _take_locks(self.response)


@dataclass
class PreserveKey(Plan):
    """Return the inner result paired with the request's keys."""

    inner: Any

    async def execute(self) -> ResponseAndKeys:
        keys = self.inner.get_keys()
        return ResponseAndKeys(await self.inner.execute(), keys)

    def get_keys(self) -> list[bytes]:
        return self.inner.get_keys()

    def shards(self, pd_client: PdClient) -> AsyncIterator[tuple[Any, Store]]:
        return self.inner.shards(pd_client)

    def apply_shard(self, shard: Any, store: Store) -> None:
        self.inner.apply_shard(shard, store)

    def _clone(self) -> "PreserveKey":
        return replace(self, inner=self.inner._clone())