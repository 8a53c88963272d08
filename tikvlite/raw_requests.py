"""Raw key-value requests, their responses and their constructors."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import islice
from typing import Any, AsyncIterator, ClassVar, Iterable, NamedTuple, Optional, Union

from tikvlite.column_family import ColumnFamily
from tikvlite.errors import TikvError
from tikvlite.region import Context
from tikvlite.shard import KeysShardable, RangeShardable, Shardable
from tikvlite.store import KeyRange, PdClient, Store, store_stream_for_keys, store_stream_for_ranges

KeyLike = Union[str, bytes, bytearray]
RangeLike = Union[KeyRange, tuple]


class KvPair(NamedTuple):
    """A key with its value."""

    key: bytes
    value: bytes = b""


def _to_bytes(value: KeyLike) -> bytes:
    if isinstance(value, str):
        return value.encode()
    return bytes(value)


def _cf_name(cf: Optional[Union[ColumnFamily, str]]) -> str:
    if cf is None:
        return ""
    if isinstance(cf, str):
        cf = ColumnFamily.parse(cf)
    return str(cf)


def _range_keys(key_range: RangeLike) -> tuple[bytes, bytes]:
    """Start and end of a range; an end of None is unbounded."""
    if isinstance(key_range, KeyRange):
        return key_range.start_key, key_range.end_key
    start, end = key_range
    return _to_bytes(start), b"" if end is None else _to_bytes(end)


def _to_pair(pair: Any) -> KvPair:
    key, value = pair
    return KvPair(_to_bytes(key), _to_bytes(value))


@dataclass
class RawResponse:
    """Fields shared by every raw response."""

    region_error: Optional[TikvError] = None
    error: str = ""

    def take_error(self) -> Optional[TikvError]:
        """Remove and return the error reported by the server, if any."""
        message, self.error = self.error, ""
        return TikvError(message) if message else None

    def take_region_error(self) -> Optional[TikvError]:
        """Remove and return the region error, if any."""
        error, self.region_error = self.region_error, None
        return error

    def take_locks(self) -> list:
        """Raw responses never carry locks."""
        return []


@dataclass
class RawGetRequest:
    key: bytes = b""
    cf: str = ""
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_get"


@dataclass
class RawGetResponse(RawResponse):
    value: bytes = b""
    not_found: bool = False

    def process(self) -> Optional[bytes]:
        return None if self.not_found else self.value


@dataclass
class RawBatchGetRequest(KeysShardable):
    keys: list = field(default_factory=list)
    cf: str = ""
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_batch_get"


@dataclass
class RawBatchGetResponse(RawResponse):
    pairs: list = field(default_factory=list)

    def collect_pairs(self) -> list[KvPair]:
        return [_to_pair(pair) for pair in self.pairs]


@dataclass
class RawPutRequest:
    key: bytes = b""
    value: bytes = b""
    cf: str = ""
    for_cas: bool = False
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_put"


@dataclass
class RawPutResponse(RawResponse):
    pass


@dataclass
class RawBatchPutRequest(Shardable):
    pairs: list = field(default_factory=list)
    cf: str = ""
    for_cas: bool = False
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_batch_put"

    async def shards(self, pd_client: PdClient) -> AsyncIterator[tuple[list[KvPair], Store]]:
        pairs = sorted(self.pairs, key=lambda pair: pair.key)
        remaining = iter(pairs)
        async for group, store in store_stream_for_keys(
            [pair.key for pair in pairs], pd_client
        ):
            yield list(islice(remaining, len(group))), store

    def apply_shard(self, shard: list[KvPair], store: Store) -> None:
        self.context = store.region.context()
        self.pairs = list(shard)


@dataclass
class RawBatchPutResponse(RawResponse):
    pass


@dataclass
class RawDeleteRequest:
    key: bytes = b""
    cf: str = ""
    for_cas: bool = False
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_delete"


@dataclass
class RawDeleteResponse(RawResponse):
    pass


@dataclass
class RawBatchDeleteRequest(KeysShardable):
    keys: list = field(default_factory=list)
    cf: str = ""
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_batch_delete"


@dataclass
class RawBatchDeleteResponse(RawResponse):
    pass


@dataclass
class RawDeleteRangeRequest(RangeShardable):
    start_key: bytes = b""
    end_key: bytes = b""
    cf: str = ""
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_delete_range"


@dataclass
class RawDeleteRangeResponse(RawResponse):
    pass


@dataclass
class RawScanRequest(RangeShardable):
    start_key: bytes = b""
    end_key: bytes = b""
    limit: int = 0
    key_only: bool = False
    cf: str = ""
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_scan"


@dataclass
class RawScanResponse(RawResponse):
    kvs: list = field(default_factory=list)

    def collect_pairs(self) -> list[KvPair]:
        return [_to_pair(pair) for pair in self.kvs]


@dataclass
class RawBatchScanRequest(Shardable):
    ranges: list = field(default_factory=list)
    each_limit: int = 0
    key_only: bool = False
    cf: str = ""
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_batch_scan"

    def shards(self, pd_client: PdClient) -> AsyncIterator[tuple[list[KeyRange], Store]]:
        return store_stream_for_ranges(list(self.ranges), pd_client)

    def apply_shard(self, shard: list[KeyRange], store: Store) -> None:
        self.context = store.region.context()
        self.ranges = list(shard)


@dataclass
class RawBatchScanResponse(RawResponse):
    kvs: list = field(default_factory=list)

    def collect_pairs(self) -> list[KvPair]:
        return [_to_pair(pair) for pair in self.kvs]


@dataclass
class RawCasRequest:
    key: bytes = b""
    value: bytes = b""
    previous_value: bytes = b""
    previous_not_exist: bool = False
    cf: str = ""
    context: Optional[Context] = None
    label: ClassVar[str] = "raw_compare_and_swap"


@dataclass
class RawCasResponse(RawResponse):
    previous_value: bytes = b""
    previous_not_exist: bool = False
    succeed: bool = False

    def process(self) -> tuple[Optional[bytes], bool]:
        """The previous value, or None if there was none, and whether it swapped."""
        if self.previous_not_exist:
            return None, self.succeed
        return self.previous_value, self.succeed


def new_raw_get_request(key: KeyLike, cf: Optional[ColumnFamily]) -> RawGetRequest:
    return RawGetRequest(key=_to_bytes(key), cf=_cf_name(cf))


def new_raw_batch_get_request(
    keys: Iterable[KeyLike], cf: Optional[ColumnFamily]
) -> RawBatchGetRequest:
    return RawBatchGetRequest(keys=[_to_bytes(key) for key in keys], cf=_cf_name(cf))


def new_raw_put_request(
    key: KeyLike, value: KeyLike, cf: Optional[ColumnFamily], atomic: bool
) -> RawPutRequest:
    return RawPutRequest(
        key=_to_bytes(key), value=_to_bytes(value), cf=_cf_name(cf), for_cas=atomic
    )


def new_raw_batch_put_request(
    pairs: Iterable[Any], cf: Optional[ColumnFamily], atomic: bool
) -> RawBatchPutRequest:
    return RawBatchPutRequest(
        pairs=[_to_pair(pair) for pair in pairs], cf=_cf_name(cf), for_cas=atomic
    )


def new_raw_delete_request(
    key: KeyLike, cf: Optional[ColumnFamily], atomic: bool
) -> RawDeleteRequest:
    return RawDeleteRequest(key=_to_bytes(key), cf=_cf_name(cf), for_cas=atomic)


def new_raw_batch_delete_request(
    keys: Iterable[KeyLike], cf: Optional[ColumnFamily]
) -> RawBatchDeleteRequest:
    return RawBatchDeleteRequest(keys=[_to_bytes(key) for key in keys], cf=_cf_name(cf))


def new_raw_delete_range_request(
    range: RangeLike, cf: Optional[ColumnFamily]
) -> RawDeleteRangeRequest:
    start_key, end_key = _range_keys(range)
    return RawDeleteRangeRequest(start_key=start_key, end_key=end_key, cf=_cf_name(cf))


def new_raw_scan_request(
    range: RangeLike, limit: int, key_only: bool, cf: Optional[ColumnFamily]
) -> RawScanRequest:
    start_key, end_key = _range_keys(range)
    return RawScanRequest(
        start_key=start_key,
        end_key=end_key,
        limit=limit,
        key_only=key_only,
        cf=_cf_name(cf),
    )


def new_raw_batch_scan_request(
    ranges: Iterable[RangeLike],
    each_limit: int,
    key_only: bool,
    cf: Optional[ColumnFamily],
) -> RawBatchScanRequest:
    return RawBatchScanRequest(
        ranges=[KeyRange(*_range_keys(key_range)) for key_range in ranges],
        each_limit=each_limit,
        key_only=key_only,
        cf=_cf_name(cf),
    )


def new_cas_request(
    key: KeyLike,
    value: KeyLike,
    previous_value: Optional[KeyLike],
    cf: Optional[ColumnFamily],
) -> RawCasRequest:
    request = RawCasRequest(key=_to_bytes(key), value=_to_bytes(value), cf=_cf_name(cf))
    if previous_value is None:
        request.previous_not_exist = True
    else:
        request.previous_value = _to_bytes(previous_value)
    return request