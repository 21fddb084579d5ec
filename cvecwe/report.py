"""Report generation: ``.xlsx`` spreadsheet and optional Markdown summary.

The spreadsheet is the primary artifact (one sheet, one row per CVE).
The Markdown summary is rendered from ``templates/report.md.j2`` with
Jinja2.  Both are written to a temporary sibling and renamed into place.
"""

import datetime as dt
from collections import Counter
from pathlib import Path
from typing import Iterable, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from .errors import ReportError
from .models import CveRecord, Weakness

_TEMPLATES_DIR = Path(__file__).parent / "templates"

SHEET_NAME = "Sheet1"


def weakness_text(weaknesses: Iterable[Weakness]) -> str:
    """Join weaknesses as ``code: description`` lines.

    NVD sentinel codes (``NVD-CWE-noinfo``, ``NVD-CWE-Other``) are dropped.
    """
    return "\n".join(str(w) for w in weaknesses if not w.is_sentinel)


def _cell_text(s: str) -> str:
    return ILLEGAL_CHARACTERS_RE.sub("", s)


def build_workbook(records: Sequence[CveRecord]) -> Workbook:
    """Build the report workbook in memory.

    Columns: A row number (1-based), B CVE ID hyperlinked to its
    reference page, C description, D weakness text.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_NAME

    for row, record in enumerate(records, 1):
        ws.cell(row=row, column=1, value=row)
        id_cell = ws.cell(row=row, column=2, value=_cell_text(record.id))
        if record.link:
            id_cell.hyperlink = record.link
            id_cell.style = "Hyperlink"
        ws.cell(row=row, column=3, value=_cell_text(record.description))
        ws.cell(row=row, column=4, value=_cell_text(weakness_text(record.weaknesses)))

    return wb


def write_xlsx_report(records: Sequence[CveRecord], path: Path) -> Path:
    """Write the CVE/CWE spreadsheet.

    Args:
        records: Records in report order.
        path: Output ``.xlsx`` path.

    Returns:
        The written path.

    Raises:
        ReportError: if the workbook cannot be built or saved.
    """
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        wb = build_workbook(records)
        wb.save(tmp)
        tmp.replace(path)
    except (OSError, ValueError) as e:
        if tmp.exists():
            tmp.unlink()
        raise ReportError(f"Could not write {path}: {e}") from e
    return path


def cwe_counts(records: Iterable[CveRecord]) -> list[tuple[str, int]]:
    """Count non-sentinel CWE codes across records, most common first."""
    counts: Counter[str] = Counter()
    for record in records:
        for code in {w.code for w in record.weaknesses if not w.is_sentinel}:
            counts[code] += 1
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))


def _now_utc_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()


def write_markdown_report(
    records: Sequence[CveRecord],
    path: Path,
    keyword: str,
    failures: int = 0,
) -> Path:
    """Write a GitHub-renderable Markdown summary using Jinja2.

    Args:
        records: Records in report order.
        path: Output path for the markdown report.
        keyword: Search keyword, shown in the title.
        failures: Number of records that could not be enriched.

    Returns:
        The written path.

    Raises:
        ReportError: if the file cannot be written.
    """
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(default_for_string=False, default=False),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template("report.md.j2")

    rendered = template.render(
        generated_at=_now_utc_iso(),
        keyword=keyword,
        total=len(records),
        classified=sum(1 for r in records if any(not w.is_sentinel for w in r.weaknesses)),
        failures=failures,
        cwe_counts=cwe_counts(records)[:25],
        records=[
            {
                "id": r.id,
                "link": r.link,
                "description": r.description.replace("|", "\\|"),
                "cwes": ", ".join(w.code for w in r.weaknesses if not w.is_sentinel),
            }
            for r in records
        ],
    )

    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("w", encoding="utf-8") as f:
            f.write(rendered)
        tmp.replace(path)
    except OSError as e:
        if tmp.exists():
            tmp.unlink()
        raise ReportError(f"Could not write {path}: {e}") from e
    return path
