# tikvlite

An asyncio client core for a distributed key-value store. The store splits its
data into key ranges called *regions*. The package offers the raw
(non-transactional) interface: get, put, delete, batch operations, range
deletes, scans and compare-and-swap.

Every call is built as a *plan* (`tikvlite.plan`, assembled with
`tikvlite.plan_builder.PlanBuilder`). A request goes either to the region that
owns its key or is split into one shard per region. Region errors are retried
with a backoff, and the responses from the regions are merged into one result.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

`tikvlite.raw_client.RawClient` needs a placement-driver client. This is an
object that implements the abstract class `PdClient` from `tikvlite.store`.
Its two abstract methods are `store_for_key` and `store_for_id`. Each of them
returns a `Store`, which pairs a `tikvlite.region.Region` with a `KvClient`.
A `KvClient` is an object with an async `dispatch(request)` method that
returns the response. `PdClient` builds `group_keys_by_region`,
`group_ranges_by_region` and `stores_for_range` on top of `store_for_key`.

```python
from tikvlite.raw_client import RawClient
from tikvlite.column_family import ColumnFamily


async def demo(pd_client):
    client = RawClient(pd_client)

    await client.put(b"k1", b"v1")
    await client.batch_put([(b"k2", b"v2"), (b"k3", b"v3")])

    assert await client.get(b"k1") == b"v1"
    pairs = await client.batch_get([b"k1", b"k2", b"missing"])  # list of KvPair

    # Ranges are (start, end) with an exclusive end; None or b"" is unbounded.
    first_two = await client.scan((b"k1", b"k9"), 2)
    keys = await client.scan_keys((b"", None), 10)

    await client.delete(b"k3")
    await client.delete_range((b"k1", b"k3"))

    # Choose a column family, by member or by name.
    write_cf = client.with_cf(ColumnFamily.parse("write"))

    # compare_and_swap works only in atomic mode.
    atomic = client.with_atomic_for_cas()
    previous, swapped = await atomic.compare_and_swap(b"k1", None, b"new")
```

Keys and values may be given as `bytes` or `str`. A `str` is encoded as UTF-8.
Results are always `bytes`. A range may also be given as a
`tikvlite.store.KeyRange`.

### Limits, modes and errors

- A `scan` limit may not exceed 10240, and the same applies to `each_limit` in
  `batch_scan`. A larger value raises
  `tikvlite.errors.MaxScanLimitExceededError`.
- `batch_delete` and `delete_range` raise `UnsupportedModeError` on an atomic
  client.
- `compare_and_swap` raises `UnsupportedModeError` on a client that is not
  atomic.
- `batch_scan` and `batch_scan_keys` apply `each_limit` to each region of each
  range, not to each range as a whole. A range can therefore return more
  entries than the limit.
- Region errors are retried with the client's `region_backoff`. The default is
  `Backoff.no_jitter_backoff(2, 500, 10)`: the delay starts at 2 ms, doubles on
  each retry up to 500 ms, and there are at most 10 retries. After that the
  region error is raised.
- An unknown column family name raises `ColumnFamilyError`. A region without a
  leader raises `LeaderNotFoundError`. All errors derive from
  `tikvlite.errors.TikvError`.

### Timestamps

`tikvlite.timestamp.Timestamp` converts between a timestamp and a 64-bit
version number. The low 18 bits of the version hold the logical part and the
higher bits hold the physical part.

```python
from tikvlite.timestamp import Timestamp

ts = Timestamp.from_version(1 << 18 | 5)
assert (ts.physical, ts.logical) == (1, 5)
assert ts.version() == 1 << 18 | 5
assert Timestamp.try_from_version(0) is None
```

### Metrics

`tikvlite.stats` keeps request counters and duration samples in memory, one
set for storage-node requests (`tikv_stats`) and one for placement-driver
requests (`pd_stats`). Each set is labelled by request type. Every dispatched
request is counted, and its duration is recorded as a success or a failure.

## What this package does not do

- It contains no network transport. No `PdClient` or `KvClient` implementation
  is included, so to reach a real cluster you must supply both.
- It has no transactional interface. Lock resolution in `ResolveLock` happens
  only when a `resolver` callable is passed, and raw responses never carry
  locks.
- Metrics are not exported anywhere. They stay in the process, where they can
  be read from the objects in `tikvlite.stats`.
- There is no command-line tool.