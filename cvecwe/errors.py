"""Exception hierarchy for cvecwe.

Network libraries' own exceptions are converted into these types at the
module boundary so callers only need to handle ``CveCweError``.
"""

from typing import Any


class CveCweError(Exception):
    """Base class for all cvecwe errors."""


class FetchError(CveCweError):
    """A search or weakness fetch failed.

    Attributes:
        kind: One of ``network``, ``http`` or ``parse``.
        identifier: CVE ID (or search keyword) being fetched.
        cause: The underlying exception, if any.
    """

    KINDS = ("network", "http", "parse")

    def __init__(self, kind: str, identifier: str, cause: Any = None):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown fetch error kind: {kind!r}")
        self.kind = kind
        self.identifier = identifier
        self.cause = cause
        super().__init__(f"{kind} error for {identifier}: {cause}")


class EnrichmentAborted(CveCweError):
    """Enrichment stopped after a wave because at least one worker failed.

    Attributes:
        failures: Every ``FetchError`` collected before the abort.
        completed: Number of records enriched before the abort.
    """

    def __init__(self, failures: list[FetchError], completed: int = 0):
        self.failures = failures
        self.completed = completed
        first = failures[0] if failures else None
        super().__init__(f"Enrichment aborted after {len(failures)} failure(s); first: {first}")


class ReportError(CveCweError):
    """The report could not be serialized or written."""


class StoreSealedError(CveCweError):
    """A record was appended after the store was sealed."""


class RangeOwnershipError(CveCweError):
    """A range lease was invalid, overlapping, or used outside its bounds."""
