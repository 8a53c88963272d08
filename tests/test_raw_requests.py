import pytest

from tikvlite.column_family import ColumnFamily
from tikvlite.errors import ColumnFamilyError, LeaderNotFoundError, TikvError
from tikvlite.plan import Backoff, Collect
from tikvlite.plan_builder import PlanBuilder
from tikvlite.raw_requests import (
    KvPair,
    RawBatchGetResponse,
    RawBatchPutRequest,
    RawCasResponse,
    RawGetResponse,
    RawResponse,
    RawScanRequest,
    RawScanResponse,
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
from tikvlite.region import Peer, Region, RegionEpoch, RegionMeta
from tikvlite.store import KeyRange, KvClient, PdClient, Store

OPTIMISTIC = Backoff.no_jitter_backoff(2, 500, 10)
REGION = Backoff.no_jitter_backoff(2, 500, 10)


class FakeKv(KvClient):
    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    async def dispatch(self, request):
        self.requests.append(request)
        return self.handler(request)


class FakePd(PdClient):
    def __init__(self, kv, split_keys=(), leader=True):
        bounds = [b"", *split_keys, b""]
        self.stores = {}
        for region_id, (start, end) in enumerate(zip(bounds, bounds[1:]), start=1):
            meta = RegionMeta(
                id=region_id,
                start_key=start,
                end_key=end,
                region_epoch=RegionEpoch(conf_ver=1, version=1),
            )
            peer = Peer(id=region_id * 10, store_id=region_id * 100) if leader else None
            self.stores[region_id] = Store(Region(meta, peer), kv)

    async def store_for_id(self, region_id):
        return self.stores[region_id]

    async def store_for_key(self, key):
        return next(s for s in self.stores.values() if s.region.contains(key))


def scan_handler(request):
    assert request.key_only
    assert request.limit == 10
    return RawScanResponse(
        kvs=[KvPair(bytes([i])) for i in range(request.start_key[0], request.end_key[0])]
    )


@pytest.mark.asyncio
async def test_raw_scan():
    pd = FakePd(FakeKv(scan_handler))
    scan = RawScanRequest(start_key=bytes([1]), end_key=bytes([50]), limit=10, key_only=True)
    plan = (
        PlanBuilder(pd, scan)
        .resolve_lock(OPTIMISTIC)
        .multi_region()
        .retry_region(REGION)
        .merge(Collect())
        .plan()
    )
    result = await plan.execute()
    # The merge step does not apply the limit; the client truncates.
    assert len(result) == 49
    assert [pair.key for pair in result] == [bytes([i]) for i in range(1, 50)]


@pytest.mark.asyncio
async def test_raw_scan_over_two_regions():
    kv = FakeKv(scan_handler)
    pd = FakePd(kv, split_keys=[bytes([20])])
    scan = RawScanRequest(start_key=bytes([1]), end_key=bytes([50]), limit=10, key_only=True)
    plan = PlanBuilder(pd, scan).multi_region().merge(Collect()).plan()
    result = await plan.execute()
    assert len(result) == 49
    assert [(r.start_key, r.end_key) for r in kv.requests] == [
        (bytes([1]), bytes([20])),
        (bytes([20]), bytes([50])),
    ]
    assert [r.context.region_id for r in kv.requests] == [1, 2]


def test_new_raw_get_request():
    request = new_raw_get_request("k", None)
    assert (request.key, request.cf) == (b"k", "")
    assert new_raw_get_request(b"k", ColumnFamily.WRITE).cf == "write"


def test_column_family_name_is_checked():
    assert new_raw_get_request(b"k", "lock").cf == "lock"
    with pytest.raises(ColumnFamilyError):
        new_raw_get_request(b"k", "nope")


def test_new_raw_put_and_delete_requests():
    put = new_raw_put_request("k", "v", ColumnFamily.DEFAULT, True)
    assert (put.key, put.value, put.cf, put.for_cas) == (b"k", b"v", "default", True)
    delete = new_raw_delete_request("k", None, False)
    assert (delete.key, delete.for_cas) == (b"k", False)


def test_new_batch_requests():
    assert new_raw_batch_get_request(["a", b"b"], None).keys == [b"a", b"b"]
    assert new_raw_batch_delete_request(["x"], ColumnFamily.LOCK).cf == "lock"
    put = new_raw_batch_put_request([("k1", "v1"), ("k2", "v2")], None, False)
    assert put.pairs == [KvPair(b"k1", b"v1"), KvPair(b"k2", b"v2")]


def test_new_range_requests():
    delete = new_raw_delete_range_request((b"a", None), None)
    assert (delete.start_key, delete.end_key) == (b"a", b"")
    scan = new_raw_scan_request(("k2", "k5"), 5, True, ColumnFamily.WRITE)
    assert (scan.start_key, scan.end_key, scan.limit, scan.key_only, scan.cf) == (
        b"k2",
        b"k5",
        5,
        True,
        "write",
    )
    batch = new_raw_batch_scan_request([("", "k1"), (b"k1", None)], 2, False, None)
    assert batch.ranges == [KeyRange(b"", b"k1"), KeyRange(b"k1", b"")]
    assert batch.each_limit == 2


def test_new_cas_request():
    absent = new_cas_request("k", "v", None, None)
    assert absent.previous_not_exist is True
    assert absent.previous_value == b""
    present = new_cas_request("k", "v", "old", None)
    assert (present.previous_not_exist, present.previous_value) == (False, b"old")


def test_get_response_process():
    assert RawGetResponse(value=b"v").process() == b"v"
    assert RawGetResponse(value=b"", not_found=True).process() is None


def test_cas_response_process():
    assert RawCasResponse(previous_not_exist=True, succeed=True).process() == (None, True)
    assert RawCasResponse(previous_value=b"p", succeed=False).process() == (b"p", False)


def test_response_errors_are_taken_once():
    response = RawResponse(error="boom")
    error = response.take_error()
    assert isinstance(error, TikvError) and str(error) == "boom"
    assert response.take_error() is None
    region_error = TikvError("region")
    response = RawResponse(region_error=region_error)
    assert response.take_region_error() is region_error
    assert response.take_region_error() is None
    assert response.take_locks() == []


def test_collect_pairs_from_tuples():
    response = RawBatchGetResponse(pairs=[(b"k", b"v")])
    assert response.collect_pairs() == [KvPair(b"k", b"v")]


@pytest.mark.asyncio
async def test_batch_put_shards_sorted_by_region():
    pd = FakePd(FakeKv(lambda _: None), split_keys=[b"k3"])
    request = new_raw_batch_put_request(
        [("k4", "v4"), ("k1", "v1"), ("k3", "v3"), ("k2", "v2")], None, False
    )
    shards = [(pairs, store.region.id()) async for pairs, store in request.shards(pd)]
    assert shards == [
        ([KvPair(b"k1", b"v1"), KvPair(b"k2", b"v2")], 1),
        ([KvPair(b"k3", b"v3"), KvPair(b"k4", b"v4")], 2),
    ]


def test_batch_put_apply_shard():
    pd = FakePd(FakeKv(lambda _: None))
    store = pd.stores[1]
    request = RawBatchPutRequest(pairs=[KvPair(b"a", b"1"), KvPair(b"b", b"2")])
    request.apply_shard([KvPair(b"b", b"2")], store)
    assert request.pairs == [KvPair(b"b", b"2")]
    assert request.context == store.region.context()


def test_apply_shard_without_leader_raises():
    pd = FakePd(FakeKv(lambda _: None), leader=False)
    request = RawBatchPutRequest()
    with pytest.raises(LeaderNotFoundError):
        request.apply_shard([], pd.stores[1])


@pytest.mark.asyncio
async def test_batch_scan_shards_split_ranges():
    pd = FakePd(FakeKv(lambda _: None), split_keys=[b"k3"])
    request = new_raw_batch_scan_request([("k1", "k5")], 4, False, None)
    shards = [(ranges, store.region.id()) async for ranges, store in request.shards(pd)]
    assert shards == [
        ([KeyRange(b"k1", b"k3")], 1),
        ([KeyRange(b"k3", b"k5")], 2),
    ]


@pytest.mark.asyncio
async def test_batch_get_through_plan():
    data = {b"k1": b"v1", b"k2": b"v2", b"k4": b"v4"}

    def handler(request):
        return RawBatchGetResponse(
            pairs=[KvPair(k, data[k]) for k in request.keys if k in data]
        )

    kv = FakeKv(handler)
    pd = FakePd(kv, split_keys=[b"k3"])
    request = new_raw_batch_get_request(["k4", "k1", "k2", "k3"], None)
    plan = PlanBuilder(pd, request).multi_region().retry_region(REGION).merge(Collect()).plan()
    result = await plan.execute()
    assert result == [KvPair(b"k1", b"v1"), KvPair(b"k2", b"v2"), KvPair(b"k4", b"v4")]
    assert len(kv.requests) == 2


@pytest.mark.asyncio
async def test_get_through_single_region_plan():
    pd = FakePd(FakeKv(lambda request: RawGetResponse(value=b"val:" + request.key)))
    builder = await PlanBuilder(pd, new_raw_get_request("k", None)).single_region()
    plan = builder.retry_region(REGION).post_process_default().plan()
    assert await plan.execute() == b"val:k"


@pytest.mark.asyncio
async def test_put_error_is_extracted():
    pd = FakePd(FakeKv(lambda _: RawResponse(error="write failed")))
    builder = await PlanBuilder(pd, new_raw_put_request("k", "v", None, False)).single_region()
    plan = builder.retry_region(REGION).extract_error().plan()
    with pytest.raises(TikvError, match="write failed"):
        await plan.execute()