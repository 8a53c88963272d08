import bisect
from dataclasses import dataclass, field

import pytest

from tikvlite.errors import LeaderNotFoundError
from tikvlite.region import Peer, Region, RegionMeta
from tikvlite.shard import KeysShardable, RangeShardable
from tikvlite.store import KvClient, PdClient, Store


class NullKv(KvClient):
    async def dispatch(self, request):
        return None


class SplitPd(PdClient):
    def __init__(self, splits, leader=Peer(1, 1)):
        bounds = [b""] + list(splits) + [b""]
        self.regions = [
            Region(RegionMeta(id=i + 1, start_key=bounds[i], end_key=bounds[i + 1]), leader)
            for i in range(len(bounds) - 1)
        ]
        self.splits = list(splits)

    async def store_for_id(self, region_id):
        return Store(self.regions[region_id - 1], NullKv())

    async def store_for_key(self, key):
        return Store(self.regions[bisect.bisect_right(self.splits, key)], NullKv())


@dataclass
class KeysReq(KeysShardable):
    keys: list = field(default_factory=list)
    context: object = None


@dataclass
class RangeReq(RangeShardable):
    start_key: bytes = b""
    end_key: bytes = b""
    context: object = None


@pytest.mark.asyncio
async def test_keys_sorted_before_sharding():
    req = KeysReq(keys=[b"k4", b"k1", b"k3"])
    shards = [
        (k, Region.id(s.region))
        async for k, s in KeysShardable.shards(req, SplitPd([b"k3"]))
    ]
    assert shards == [([b"k1"], 1), ([b"k3", b"k4"], 2)]


@pytest.mark.asyncio
async def test_apply_keys_shard_sets_context():
    req = KeysReq(keys=[b"k1", b"k4"])
    items = [x async for x in KeysShardable.shards(req, SplitPd([b"k3"]))]
    shard, store = items[1]
    KeysShardable.apply_shard(req, shard, store)
    assert req.keys == [b"k4"]
    assert req.context.region_id == 2


@pytest.mark.asyncio
async def test_range_apply_shard():
    req = RangeReq(start_key=b"k1", end_key=b"k5")
    items = [x async for x in RangeShardable.shards(req, SplitPd([b"k3"]))]
    RangeShardable.apply_shard(req, *items[0])
    assert (req.start_key, req.end_key) == (b"k1", b"k3")
    assert req.context.region_id == 1


@pytest.mark.asyncio
async def test_apply_shard_without_leader():
    req = KeysReq(keys=[b"k1"])
    items = [x async for x in KeysShardable.shards(req, SplitPd([], leader=None))]
    assert len(items) == 1
    with pytest.raises(LeaderNotFoundError):
        KeysShardable.apply_shard(req, *items[0])