"""Command-line entry point.

Wires the pipeline together: keyword search, concurrent CWE enrichment,
spreadsheet export.  Every ``CveCweError`` is reported and turned into a
non-zero exit status.
"""

import argparse
from pathlib import Path
from typing import Sequence

import requests
import yaml
from pydantic import ValidationError

from .config import RunConfig, find_config, load_config, merge_overrides
from .downloaders import requests_session, search_cves
from .errors import CveCweError, EnrichmentAborted
from .report import write_markdown_report, write_xlsx_report
from .scheduler import enrich_store
from .store import RecordStore


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cvecwe",
        description="Search CVEs by keyword, enrich them with NVD CWE data, and export an .xlsx report.",
    )
    p.add_argument("--keyword", help="Keyword for searching the CVE list (default: usb)")
    p.add_argument("--worker", dest="workers", type=int, help="Maximum number of concurrent workers (default: 10)")
    p.add_argument("--range", dest="batch_size", type=int, help="Number of CVEs handled by each worker (default: 10)")
    p.add_argument("--proxy", help="HTTP(S) proxy URL for all outbound requests")
    p.add_argument(
        "--on-error",
        choices=("abort", "skip"),
        help="abort: stop after the failing wave (default); skip: report failures and keep going",
    )
    p.add_argument("--output-dir", type=Path, help="Directory for the report (default: current directory)")
    p.add_argument("--markdown", type=Path, help="Also write a Markdown summary to this path")
    p.add_argument("--config", type=Path, help="YAML/JSON config file (default: ./cvecwe.yaml if present)")
    return p


def _resolve_config(args: argparse.Namespace) -> RunConfig:
    config_path = args.config or find_config()
    base = load_config(config_path) if config_path else RunConfig()
    return merge_overrides(
        base,
        {
            "keyword": args.keyword,
            "workers": args.workers,
            "batch_size": args.batch_size,
            "proxy": args.proxy,
            "on_error": args.on_error,
            "output_dir": args.output_dir,
            "markdown": args.markdown,
        },
    )


def run(cfg: RunConfig, session: requests.Session | None = None, fetcher=None) -> Path:
    """Run the full pipeline for one configuration.

    Args:
        cfg: Run configuration.
        session: Optional requests session for the search.
        fetcher: Optional weakness fetcher (see ``scheduler.enrich_store``).

    Returns:
        Path of the written spreadsheet.

    Raises:
        CveCweError: on any fatal search, enrichment or report failure.
    """
    session = session or requests_session(cfg.proxy)
    records = search_cves(session, cfg.keyword, cfg.sources.search_url)
    print(f"Get {len(records)} {cfg.keyword} cve infos")

    store = RecordStore(records)
    summary = enrich_store(store, cfg, fetcher=fetcher)
    if summary.failures:
        print(f"  ⚠️ {len(summary.failures)} CVE(s) could not be enriched")

    print("Start write excel")
    path = write_xlsx_report(store.records(), cfg.report_path)
    print(f"Write {path} ok")

    if cfg.markdown:
        md = write_markdown_report(store.records(), cfg.markdown, cfg.keyword, failures=len(summary.failures))
        print(f"Write {md} ok")
    return path


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        cfg = _resolve_config(args)
    except (ValidationError, yaml.YAMLError, OSError, ValueError) as e:
        print(f"Invalid configuration: {e}")
        return 2

    try:
        run(cfg)
    except EnrichmentAborted as e:
        print(f"❌ {e}")
        print(f"   {e.completed} CVE(s) enriched before abort; no report written")
        return 1
    except CveCweError as e:
        print(f"❌ {e}")
        return 1
    return 0
