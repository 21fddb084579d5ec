"""Data model for CVE records and their weaknesses."""

from dataclasses import dataclass, field
from typing import NamedTuple

CWE_NOINFO = "NVD-CWE-noinfo"
CWE_OTHER = "NVD-CWE-Other"

# NVD placeholder codes that carry no classification.
SENTINEL_CODES = frozenset({CWE_NOINFO, CWE_OTHER})


class Weakness(NamedTuple):
    """One CWE entry attached to a CVE.

    Attributes:
        code: CWE identifier (e.g. ``CWE-79``) or an NVD sentinel code.
        description: Human-readable CWE name, may be empty.
    """

    code: str
    description: str = ""

    @property
    def is_sentinel(self) -> bool:
        return self.code in SENTINEL_CODES

    def __str__(self) -> str:
        return f"{self.code}: {self.description}"


@dataclass
class CveRecord:
    """One vulnerability entry.

    Attributes:
        id: CVE identifier, never empty.
        link: Canonical reference URL (may be empty).
        description: CVE summary text (may be empty).
        weaknesses: CWE entries, filled in by enrichment.
    """

    id: str
    link: str = ""
    description: str = ""
    weaknesses: list[Weakness] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.id = (self.id or "").strip()
        if not self.id:
            raise ValueError("CveRecord.id must not be empty")
