"""Record store shared by enrichment workers.

The store is populated once by the search, sealed, and then mutated in
place by workers.  Each worker holds a ``RangeLease`` over a disjoint
index range; overlapping leases are refused, so record data itself needs
no lock.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator

from .errors import RangeOwnershipError, StoreSealedError
from .models import CveRecord, Weakness


@dataclass(frozen=True)
class RangeLease:
    """Exclusive write access to ``[start, stop)`` of a ``RecordStore``.

    Attributes:
        store: The store the lease belongs to.
        start: First owned index.
        stop: One past the last owned index.
    """

    store: "RecordStore"
    start: int
    stop: int

    def __len__(self) -> int:
        return self.stop - self.start

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.start <= index < self.stop

    def indices(self) -> range:
        return range(self.start, self.stop)

    def enrich_at(self, index: int, weaknesses: Iterable[Weakness]) -> None:
        """Append weaknesses to a record this lease owns.

        Raises:
            RangeOwnershipError: if ``index`` is outside the lease or the
                lease has already been released.
        """
        if index not in self:
            raise RangeOwnershipError(f"Index {index} is outside lease [{self.start}, {self.stop})")
        if not self.store.is_leased(self):
            raise RangeOwnershipError(f"Lease [{self.start}, {self.stop}) is no longer active")
        self.store.enrich_at(index, weaknesses)


class RecordStore:
    """Ordered, append-then-mutate collection of ``CveRecord``.

    Attributes:
        sealed: ``True`` once population has finished.
    """

    def __init__(self, records: Iterable[CveRecord] | None = None):
        self._records: list[CveRecord] = []
        self._leases: set[tuple[int, int]] = set()
        self.sealed = False
        for record in records or ():
            self.append(record)

    # ── population ───────────────────────────────────────────────────────

    def append(self, record: CveRecord) -> None:
        if self.sealed:
            raise StoreSealedError(f"Cannot append {record.id}: store is sealed")
        self._records.append(record)

    def seal(self) -> None:
        """End the population phase; the store length is fixed afterwards."""
        self.sealed = True

    # ── read access ──────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[CveRecord]:
        return iter(self._records)

    def get(self, index: int) -> CveRecord:
        return self._records[index]

    def records(self) -> list[CveRecord]:
        """Return a shallow copy of the records in order."""
        return list(self._records)

    # ── enrichment ───────────────────────────────────────────────────────

    def enrich_at(self, index: int, weaknesses: Iterable[Weakness]) -> None:
        """Extend the weakness list of the record at ``index``.

        Before the store is sealed any index may be enriched.  Once sealed,
        ``index`` must fall inside an active lease; workers should go
        through ``RangeLease.enrich_at``, which also checks that the
        caller holds that particular lease.

        Raises:
            RangeOwnershipError: if the store is sealed and no active
                lease covers ``index``.
        """
        if self.sealed and not any(a <= index < b for a, b in self._leases):
            raise RangeOwnershipError(f"Index {index} is not covered by any active lease")
        self._records[index].weaknesses.extend(Weakness(*w) for w in weaknesses)

    def lease(self, start: int, n: int) -> RangeLease:
        """Reserve ``[start, start + n)`` for a single worker.

        Args:
            start: First index of the range.
            n: Number of records, at least 1.

        Returns:
            Active ``RangeLease``.

        Raises:
            RangeOwnershipError: if the range is empty, out of bounds, or
                overlaps a lease that has not been released.
        """
        stop = start + n
        if n < 1 or start < 0 or stop > len(self._records):
            raise RangeOwnershipError(f"Range [{start}, {stop}) is invalid for a store of {len(self._records)} records")
        for a, b in self._leases:
            if start < b and a < stop:
                raise RangeOwnershipError(f"Range [{start}, {stop}) overlaps active lease [{a}, {b})")
        self._leases.add((start, stop))
        return RangeLease(self, start, stop)

    def release(self, lease: RangeLease) -> None:
        self._leases.discard((lease.start, lease.stop))

    def is_leased(self, lease: RangeLease) -> bool:
        return lease.store is self and (lease.start, lease.stop) in self._leases

    @property
    def active_leases(self) -> list[tuple[int, int]]:
        return sorted(self._leases)
