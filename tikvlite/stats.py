"""In-process request metrics: counters and histograms by request type."""

from __future__ import annotations

import threading
import time
from collections import defaultdict


class LabeledCounter:
    """An integer counter per label."""

    def __init__(self, name: str, description: str) -> None:
        self.name = name
        self.description = description
        self._counts: dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def inc(self, label: str) -> None:
        with self._lock:
            self._counts[label] += 1

    def get(self, label: str) -> int:
        with self._lock:
            return self._counts.get(label, 0)


class LabeledHistogram:
    """Observed values kept per label."""

    def __init__(self, name: str, description: str) -> None:
        self.name = name
        self.description = description
        self._samples: dict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def observe(self, label: str, value: float) -> None:
        with self._lock:
            self._samples[label].append(float(value))

    def samples(self, label: str) -> list[float]:
        with self._lock:
            return list(self._samples.get(label, ()))


class Histogram:
    """Observed values without labels."""

    def __init__(self, name: str, description: str) -> None:
        self.name = name
        self.description = description
        self._samples: list[float] = []
        self._lock = threading.Lock()

    def observe(self, value: float) -> None:
        with self._lock:
            self._samples.append(float(value))

    @property
    def values(self) -> tuple[float, ...]:
        with self._lock:
            return tuple(self._samples)

    @property
    def count(self) -> int:
        return len(self.values)

    @property
    def sum(self) -> float:
        return sum(self.values)


class RequestStats:
    """Times one request and records its outcome under its command name."""

    def __init__(
        self,
        cmd: str,
        duration: LabeledHistogram,
        counter: LabeledCounter,
        failed_duration: LabeledHistogram,
        failed_counter: LabeledCounter,
    ) -> None:
        counter.inc(cmd)
        self.cmd = cmd
        self._start = time.perf_counter()
        self._duration = duration
        self._failed_duration = failed_duration
        self._failed_counter = failed_counter

    def done(self, succeeded: bool) -> float:
        """Record the elapsed time as a success or a failure and return it."""
        elapsed = time.perf_counter() - self._start
        if succeeded:
            self._duration.observe(self.cmd, elapsed)
        else:
            self._failed_duration.observe(self.cmd, elapsed)
            self._failed_counter.inc(self.cmd)
        return elapsed


TIKV_REQUEST_DURATION = LabeledHistogram(
    "tikv_request_duration_seconds",
    "Bucketed histogram of TiKV requests duration",
)
TIKV_REQUEST_COUNTER = LabeledCounter(
    "tikv_request_total", "Total number of requests sent to TiKV"
)
TIKV_FAILED_REQUEST_DURATION = LabeledHistogram(
    "tikv_failed_request_duration_seconds",
    "Bucketed histogram of failed TiKV requests duration",
)
TIKV_FAILED_REQUEST_COUNTER = LabeledCounter(
    "tikv_failed_request_total", "Total number of failed requests sent to TiKV"
)
PD_REQUEST_DURATION = LabeledHistogram(
    "pd_request_duration_seconds", "Bucketed histogram of PD requests duration"
)
PD_REQUEST_COUNTER = LabeledCounter(
    "pd_request_total", "Total number of requests sent to PD"
)
PD_FAILED_REQUEST_DURATION = LabeledHistogram(
    "pd_failed_request_duration_seconds",
    "Bucketed histogram of failed PD requests duration",
)
PD_FAILED_REQUEST_COUNTER = LabeledCounter(
    "pd_failed_request_total", "Total number of failed requests sent to PD"
)
PD_TSO_BATCH_SIZE = Histogram(
    "pd_tso_batch_size", "Bucketed histogram of TSO request batch size"
)


def tikv_stats(cmd: str) -> RequestStats:
    """Start timing a request sent to a storage node."""
    return RequestStats(
        cmd,
        TIKV_REQUEST_DURATION,
        TIKV_REQUEST_COUNTER,
        TIKV_FAILED_REQUEST_DURATION,
        TIKV_FAILED_REQUEST_COUNTER,
    )


def pd_stats(cmd: str) -> RequestStats:
    """Start timing a request sent to the placement driver."""
    return RequestStats(
        cmd,
        PD_REQUEST_DURATION,
        PD_REQUEST_COUNTER,
        PD_FAILED_REQUEST_DURATION,
        PD_FAILED_REQUEST_COUNTER,
    )


def observe_tso_batch(batch_size: int) -> None:
    """Record the size of one batch of timestamp requests."""
    PD_TSO_BATCH_SIZE.observe(batch_size)