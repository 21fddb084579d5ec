"""Wave-based batch scheduler for concurrent CWE enrichment.

The records of a sealed ``RecordStore`` are split into windows of at most
``batch_size`` records.  Up to ``concurrency`` windows form a wave; each
window is handed to one worker task holding a ``RangeLease``.  All
workers of a wave are gathered before the next wave starts, so at most
``concurrency`` workers are ever active and wave ``k + 1`` never overlaps
wave ``k``.

Usage from synchronous code::

    from cvecwe.scheduler import enrich_store
    summary = enrich_store(store, cfg)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .async_downloaders import Fetcher, WeaknessFetcher
from .config import RunConfig
from .errors import EnrichmentAborted, FetchError
from .store import RangeLease, RecordStore


class ErrorPolicy(str, Enum):
    """What the scheduler does when a worker reports a ``FetchError``."""

    ABORT = "abort"
    SKIP = "skip"


@dataclass
class WorkerResult:
    """Outcome of one worker over its leased range.

    Attributes:
        start: First index of the range.
        stop: One past the last index.
        enriched: Records successfully enriched.
        failures: Fetch errors met by this worker.
    """

    start: int
    stop: int
    enriched: int = 0
    failures: list[FetchError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class WaveReport:
    """Progress of one completed wave."""

    number: int
    start: int
    stop: int
    enriched: int
    failures: list[FetchError] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.stop - self.start


@dataclass
class EnrichmentSummary:
    """Aggregate result of a full scheduler run."""

    waves: list[WaveReport] = field(default_factory=list)
    workers: int = 0
    enriched: int = 0
    failures: list[FetchError] = field(default_factory=list)


def plan_waves(total: int, batch_size: int, concurrency: int) -> list[list[tuple[int, int]]]:
    """Partition ``[0, total)`` into waves of ``(start, n)`` windows.

    Each window holds ``min(batch_size, remaining)`` records; a wave holds
    at most ``concurrency`` windows.  Windows are contiguous, disjoint and
    cover every index exactly once.

    Args:
        total: Number of records.
        batch_size: Records per window, at least 1.
        concurrency: Windows per wave, at least 1.

    Returns:
        List of waves; empty when ``total`` is 0.

    Raises:
        ValueError: on a negative total or a non-positive size.
    """
    if total < 0:
        raise ValueError(f"total must be >= 0, got {total}")
    if batch_size < 1 or concurrency < 1:
        raise ValueError("batch_size and concurrency must be >= 1")

    waves: list[list[tuple[int, int]]] = []
    remaining = total
    cursor = 0
    while remaining > 0:
        wave: list[tuple[int, int]] = []
        for _ in range(concurrency):
            if remaining <= 0:
                break
            n = min(batch_size, remaining)
            wave.append((cursor, n))
            cursor += n
            remaining -= n
        waves.append(wave)
    return waves


async def enrich_range(lease: RangeLease, fetcher: Fetcher, policy: ErrorPolicy = ErrorPolicy.ABORT) -> WorkerResult:
    """Enrich every record of a lease, one fetch at a time.

    Under ``ABORT`` the worker stops at its first failure; under ``SKIP``
    it leaves the failed record untouched and moves on.  The lease is
    released in every case.
    """
    result = WorkerResult(start=lease.start, stop=lease.stop)
    try:
        for index in lease.indices():
            record = lease.store.get(index)
            try:
                weaknesses = await fetcher(record.id)
            except FetchError as e:
                result.failures.append(e)
                if policy is ErrorPolicy.ABORT:
                    break
                continue
            lease.enrich_at(index, weaknesses)
            result.enriched += 1
    finally:
        lease.store.release(lease)
    return result


def print_wave(report: WaveReport) -> None:
    """Default progress reporter."""
    icon = "✅" if not report.failures else "⚠️"
    print(
        f"  {icon} Wave {report.number}: CVEs {report.start}-{report.stop - 1} "
        f"({report.enriched}/{report.processed} enriched)"
    )
    for e in report.failures:
        print(f"    ❌ {e}")


class BatchScheduler:
    """Drives wave-by-wave enrichment of a ``RecordStore``.

    Attributes:
        concurrency: Maximum workers per wave.
        batch_size: Records per worker.
        policy: Error policy applied after each wave.
        on_wave: Callback invoked with a ``WaveReport`` after each barrier.
    """

    def __init__(
        self,
        concurrency: int = 10,
        batch_size: int = 10,
        policy: ErrorPolicy = ErrorPolicy.ABORT,
        on_wave: Callable[[WaveReport], None] | None = print_wave,
    ):
        if concurrency < 1 or batch_size < 1:
            raise ValueError("concurrency and batch_size must be >= 1")
        self.concurrency = concurrency
        self.batch_size = batch_size
        self.policy = ErrorPolicy(policy)
        self.on_wave = on_wave

    @classmethod
    def from_config(cls, cfg: RunConfig, **kwargs) -> BatchScheduler:
        return cls(
            concurrency=cfg.workers,
            batch_size=cfg.batch_size,
            policy=ErrorPolicy(cfg.on_error),
            **kwargs,
        )

    async def run(self, store: RecordStore, fetcher: Fetcher) -> EnrichmentSummary:
        """Enrich every record of ``store`` in place.

        The store is sealed first so its length cannot change while
        workers hold leases.

        Returns:
            ``EnrichmentSummary`` of all waves.

        Raises:
            EnrichmentAborted: under ``ABORT`` once a wave with failures
                has completed.
        """
        store.seal()
        summary = EnrichmentSummary()

        for number, wave in enumerate(plan_waves(len(store), self.batch_size, self.concurrency), 1):
            leases = [store.lease(start, n) for start, n in wave]
            outcomes = await asyncio.gather(
                *(enrich_range(lease, fetcher, self.policy) for lease in leases),
                return_exceptions=True,
            )
            # Barrier reached: every worker of this wave has returned.
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

            results: list[WorkerResult] = list(outcomes)
            report = WaveReport(
                number=number,
                start=results[0].start,
                stop=results[-1].stop,
                enriched=sum(r.enriched for r in results),
                failures=[e for r in results for e in r.failures],
            )
            summary.waves.append(report)
            summary.workers += len(results)
            summary.enriched += report.enriched
            summary.failures.extend(report.failures)

            if self.on_wave is not None:
                self.on_wave(report)

            if report.failures and self.policy is ErrorPolicy.ABORT:
                raise EnrichmentAborted(summary.failures, completed=summary.enriched)

        return summary


async def _enrich_with_config(store: RecordStore, cfg: RunConfig) -> EnrichmentSummary:
    async with WeaknessFetcher.from_config(cfg) as fetcher:
        return await BatchScheduler.from_config(cfg).run(store, fetcher)


def enrich_store(store: RecordStore, cfg: RunConfig, fetcher: Fetcher | None = None) -> EnrichmentSummary:
    """Synchronous wrapper that runs the scheduler via asyncio.

    Args:
        store: Populated record store.
        cfg: Run configuration.
        fetcher: Optional fetcher; defaults to a ``WeaknessFetcher``
            built from ``cfg``.

    Returns:
        ``EnrichmentSummary`` of the run.
    """
    if fetcher is None:
        return asyncio.run(_enrich_with_config(store, cfg))
    return asyncio.run(BatchScheduler.from_config(cfg).run(store, fetcher))
