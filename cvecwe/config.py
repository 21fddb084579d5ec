"""Run configuration using Pydantic.

Configuration is an explicit ``RunConfig`` passed to the search, the
fetcher and the scheduler.  Values come from defaults, an optional YAML
file, and command-line overrides, in that order.
"""

import json
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

MITRE_SEARCH_URL = "https://cve.mitre.org/cgi-bin/cvekey.cgi"
NVD_DETAIL_URL = "https://nvd.nist.gov/vuln/detail/"


class SourcesConfig(BaseModel):
    """Remote endpoints.

    Attributes:
        search_url: CVE keyword search endpoint (``?keyword=`` is appended).
        detail_url: NVD detail page prefix (the CVE ID is appended).
        timeout: Total HTTP timeout in seconds per request.
    """

    search_url: str = MITRE_SEARCH_URL
    detail_url: str = NVD_DETAIL_URL
    timeout: float = Field(default=60.0, gt=0)


class RunConfig(BaseModel):
    """Validated configuration for one run.

    Example YAML::

        keyword: usb
        workers: 10
        batch_size: 10
        proxy: http://127.0.0.1:8080
        on_error: abort
        output_dir: reports
        sources:
          timeout: 30

    Attributes:
        keyword: Search keyword.
        workers: Maximum concurrent workers per wave.
        batch_size: Records per worker invocation.
        proxy: Optional outbound HTTP(S) proxy URL.
        on_error: ``abort`` stops after the failing wave; ``skip`` keeps
            going and reports failures at the end.
        output_dir: Directory for the report files.
        markdown: Optional path for an additional Markdown summary.
    """

    keyword: str = "usb"
    workers: int = Field(default=10, ge=1)
    batch_size: int = Field(default=10, ge=1)
    proxy: str | None = None
    on_error: Literal["abort", "skip"] = "abort"
    output_dir: Path = Path(".")
    markdown: Path | None = None
    sources: SourcesConfig = Field(default_factory=SourcesConfig)

    @field_validator("keyword", mode="before")
    @classmethod
    def _normalize_keyword(cls, v: Any) -> str:
        keyword = " ".join(str(v or "").split())
        if not keyword:
            raise ValueError("keyword must not be empty")
        return keyword

    @field_validator("proxy", mode="before")
    @classmethod
    def _normalize_proxy(cls, v: Any) -> str | None:
        if v is None:
            return None
        proxy = str(v).strip()
        if not proxy:
            return None
        if "://" not in proxy:
            raise ValueError(f"proxy must be a URL with a scheme, got {proxy!r}")
        return proxy

    @property
    def report_path(self) -> Path:
        """Path of the ``<keyword>_cve.xlsx`` report."""
        safe = "_".join(self.keyword.split()).replace("/", "_")
        return self.output_dir / f"{safe}_cve.xlsx"


def load_config(path: Path) -> RunConfig:
    """Load a run configuration from a YAML or JSON file.

    Args:
        path: Path to the config file.

    Returns:
        Validated ``RunConfig`` instance.

    Raises:
        FileNotFoundError: if the file doesn't exist.
        pydantic.ValidationError: if content fails validation.
    """
    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        raw = json.loads(content)
    else:
        raw = yaml.safe_load(content) or {}
    return RunConfig.model_validate(raw)


def merge_overrides(base: RunConfig, overrides: dict[str, Any]) -> RunConfig:
    """Apply non-``None`` overrides (typically CLI flags) on top of a config.

    The result is re-validated so overrides obey the same constraints.
    """
    data = base.model_dump()
    for key, value in overrides.items():
        if value is not None:
            data[key] = value
    return RunConfig.model_validate(data)


def find_config() -> Path | None:
    """Find a config file in the working directory, preferring YAML.

    Returns:
        Path of the first existing config file, or ``None``.
    """
    for name in ("cvecwe.yaml", "cvecwe.yml", "cvecwe.json"):
        if Path(name).exists():
            return Path(name)
    return None
