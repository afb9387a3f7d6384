######## models.py
########

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

MARKUP = "markup"
STYLES = "styles"
SCRIPTS = "scripts"
IMAGES = "images"
VERBATIM = "verbatim"

# Order in which asset classes are processed by a build.
ASSET_CLASSES = (MARKUP, STYLES, SCRIPTS, IMAGES, VERBATIM)

CATEGORY_IDS = ("performance", "accessibility", "best-practices", "seo")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Tagged result of a transform that has a fallback policy."""
    ok: bool
    value: Optional[T] = None
    reason: str = ""

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str) -> "Outcome[T]":
        return cls(ok=False, reason=reason)


@dataclass(frozen=True)
class EmbedConfig:
    page: str
    data_dir: str
    json_file: str
    csv_file: str


@dataclass(frozen=True)
class BundleConfig:
    enabled: bool
    command: tuple[str, ...]
    output: str
    target: str


@dataclass(frozen=True)
class PipelineConfig:
    source_dir: Path
    output_dir: Path

    markup: tuple[str, ...]
    styles: tuple[str, ...]
    scripts: tuple[str, ...]
    images: tuple[str, ...]
    verbatim: tuple[str, ...]
    exclude: tuple[str, ...]

    purge_enabled: bool
    purge_content: tuple[str, ...]
    purge_safelist: tuple[str, ...]

    css_line_break: int
    keep_js_bang_comments: bool

    embed: EmbedConfig
    bundle: BundleConfig

    dev: bool = False

    def patterns_for(self, asset_class: str) -> tuple[str, ...]:
        return getattr(self, asset_class)


@dataclass(frozen=True)
class WatchConfig:
    patterns: tuple[str, ...]
    ignore: tuple[str, ...]
    debounce_seconds: float


@dataclass(frozen=True)
class BuildRun:
    """Files resolved per asset class at the moment a build starts."""
    files: dict[str, list[str]]


@dataclass(frozen=True)
class BuildStats:
    original_bytes: int
    build_bytes: int
    vendor_bytes: int
    file_count: int

    @property
    def effective_bytes(self) -> int:
        return max(self.build_bytes - self.vendor_bytes, 0)

    @property
    def compression_ratio(self) -> float:
        if self.original_bytes <= 0:
            return 0.0
        return (1 - self.effective_bytes / self.original_bytes) * 100


@dataclass(frozen=True)
class AuditPage:
    label: str
    path: str

    @property
    def slug(self) -> str:
        return "-".join(self.label.lower().split())


@dataclass(frozen=True)
class MetricAssertion:
    metric: str
    severity: str               # "warn" | "error"
    threshold: float

    @property
    def is_category(self) -> bool:
        return self.metric.startswith("categories:")

    @property
    def blocking(self) -> bool:
        return self.severity == "error"


@dataclass(frozen=True)
class AuditRunConfig:
    pages: tuple[AuditPage, ...]
    assertions: tuple[MetricAssertion, ...]

    results_dir: Path
    start_port: int = 3000
    settle_seconds: float = 3.0
    probe_timeout_seconds: float = 5.0
    timeout_seconds: int = 90
    cleanup_attempts: int = 3

    lighthouse_command: tuple[str, ...] = ("npx", "lighthouse")
    server_command: tuple[str, ...] = ()
    base_url: str = ""


@dataclass(frozen=True)
class AuditResult:
    label: str
    scores: dict[str, float]    # category id -> 0..100
    metrics: dict[str, float] = field(default_factory=dict)
    report_path: Optional[Path] = None

    @property
    def performance(self) -> float:
        return self.scores["performance"]

    @property
    def accessibility(self) -> float:
        return self.scores["accessibility"]

    @property
    def best_practices(self) -> float:
        return self.scores["best-practices"]

    @property
    def seo(self) -> float:
        return self.scores["seo"]


@dataclass(frozen=True)
class Violation:
    label: str
    assertion: MetricAssertion
    actual: float

    def describe(self) -> str:
        a = self.assertion
        if a.is_category:
            name = a.metric.split(":", 1)[1]
            return f"{name}: {self.actual:.1f}% (target: {a.threshold * 100:.0f}%) [{a.severity}]"
        return f"{a.metric}: {self.actual:g} (max: {a.threshold:g}) [{a.severity}]"


@dataclass(frozen=True)
class AuditSummary:
    results: tuple[AuditResult, ...]
    violations: tuple[Violation, ...]
    exit_code: int
