########## ini_config.py

from __future__ import annotations

import os
import re
import shlex
from configparser import ConfigParser
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from sitebuild.domain.models import (
    AuditPage,
    AuditRunConfig,
    BundleConfig,
    EmbedConfig,
    MetricAssertion,
    PipelineConfig,
    WatchConfig,
)

INI_DEFAULT_NAME = "sitebuild.ini"
INI_ENV_VAR = "SITEBUILD_INI"

SEVERITIES = ("warn", "error")


@dataclass(frozen=True)
class AppSettings:
    pipeline: PipelineConfig
    watch: WatchConfig
    audit: AuditRunConfig

    def for_dev(self) -> "AppSettings":
        return replace(self, pipeline=replace(self.pipeline, dev=True))


def _split_list(raw: str) -> tuple[str, ...]:
    # commas inside {a,b} belong to the glob
    return tuple(p.strip() for p in re.split(r"\n|,(?![^{]*\})", raw or "") if p.strip())


def _split_command(raw: str) -> tuple[str, ...]:
    return tuple(shlex.split((raw or "").strip()))


class IniConfig:
    """
    Adapter around ConfigParser and filesystem resolution.
    Keeps INI handling out of the build and audit services.
    """

    def __init__(self, ini_path: Path):
        self._ini_path = ini_path
        # Metric names contain ":" so only "=" separates keys from values.
        self._cfg = ConfigParser(delimiters=("=",), interpolation=None)
        self._cfg.optionxform = str
        read_ok = self._cfg.read(str(ini_path), encoding="utf-8-sig")
        if not read_ok:
            raise FileNotFoundError(f"INI file not found or unreadable: {ini_path}")

    @property
    def ini_path(self) -> Path:
        return self._ini_path

    @staticmethod
    def from_env_or_default(explicit: Optional[str] = None) -> "IniConfig":
        ini_raw = (explicit or os.getenv(INI_ENV_VAR) or "").strip()
        # Fall back to the site directory we are invoked from
        ini_path = Path(ini_raw) if ini_raw else (Path.cwd() / INI_DEFAULT_NAME)
        return IniConfig(ini_path)

    def _get(self, section: str, key: str, fallback: str = "") -> str:
        return (self._cfg.get(section, key, fallback=fallback) or "").strip()

    def _list(self, section: str, key: str, fallback: str = "") -> tuple[str, ...]:
        return _split_list(self._cfg.get(section, key, fallback=fallback))

    def _cfg_path(self, key: str, fallback: str) -> Path:
        """
        Reads a filesystem path from [paths] and resolves it relative to the INI file.
        """
        raw = self._get("paths", key) or fallback
        raw = os.path.expandvars(os.path.expanduser(raw))
        p = Path(raw)
        if not p.is_absolute():
            p = self._ini_path.resolve().parent / p
        return p.resolve()

    def load_pipeline(self) -> PipelineConfig:
        source_dir = self._cfg_path("source_dir", ".")
        output_dir = self._cfg_path("output_dir", "dist")

        embed = EmbedConfig(
            page=self._get("embed", "page"),
            data_dir=self._get("embed", "data_dir", "data") or "data",
            json_file=self._get("embed", "json_file"),
            csv_file=self._get("embed", "csv_file"),
        )

        bundle = BundleConfig(
            enabled=self._cfg.getboolean("bundle", "enabled", fallback=False),
            command=_split_command(self._get("bundle", "command", "npx esbuild")),
            output=self._get("bundle", "output", "vendor/chart.min.js") or "vendor/chart.min.js",
            target=self._get("bundle", "target", "es2018") or "es2018",
        )

        return PipelineConfig(
            source_dir=source_dir,
            output_dir=output_dir,
            markup=self._list("build", "markup", "*.html"),
            styles=self._list("build", "styles", "css/**/*.css"),
            scripts=self._list("build", "scripts", "js/**/*.js"),
            images=self._list("build", "images"),
            verbatim=self._list("build", "copy"),
            exclude=self._list("build", "exclude"),
            purge_enabled=self._cfg.getboolean("purge", "enabled", fallback=True),
            purge_content=self._list("purge", "content", "*.html, js/**/*.js"),
            purge_safelist=self._list("purge", "safelist"),
            css_line_break=self._cfg.getint("minify", "css_line_break", fallback=0),
            keep_js_bang_comments=self._cfg.getboolean("minify", "keep_js_bang_comments", fallback=False),
            embed=embed,
            bundle=bundle,
        )

    def load_watch(self) -> WatchConfig:
        debounce_ms = self._cfg.getint("watch", "debounce_ms", fallback=600)
        return WatchConfig(
            patterns=self._list("watch", "patterns", "*.html, css/**/*.css, js/**/*.js, img/**/*"),
            ignore=self._list("watch", "ignore"),
            debounce_seconds=debounce_ms / 1000.0,
        )

    def _load_pages(self) -> tuple[AuditPage, ...]:
        if not self._cfg.has_section("audit.pages"):
            return ()
        return tuple(
            AuditPage(label=label.strip(), path=(path or "").strip().lstrip("/"))
            for label, path in self._cfg.items("audit.pages")
        )

    def _load_assertions(self) -> tuple[MetricAssertion, ...]:
        if not self._cfg.has_section("audit.assertions"):
            return ()
        out: list[MetricAssertion] = []
        for metric, raw in self._cfg.items("audit.assertions"):
            parts = _split_list(raw)
            if len(parts) != 2:
                raise ValueError(f"Assertion for {metric} must be 'severity, threshold', got: {raw!r}")
            severity = parts[0].lower()
            if severity not in SEVERITIES:
                raise ValueError(f"Unknown severity {parts[0]!r} for {metric}; expected one of {SEVERITIES}")
            out.append(MetricAssertion(metric=metric.strip(), severity=severity, threshold=float(parts[1])))
        return tuple(out)

    def load_audit(self) -> AuditRunConfig:
        return AuditRunConfig(
            pages=self._load_pages(),
            assertions=self._load_assertions(),
            results_dir=self._cfg_path("results_dir", "lighthouse-results"),
            start_port=self._cfg.getint("audit", "start_port", fallback=3000),
            settle_seconds=self._cfg.getfloat("audit", "settle_seconds", fallback=3.0),
            probe_timeout_seconds=self._cfg.getfloat("audit", "probe_timeout_seconds", fallback=5.0),
            timeout_seconds=self._cfg.getint("audit", "timeout_seconds", fallback=90),
            cleanup_attempts=self._cfg.getint("audit", "cleanup_attempts", fallback=3),
            lighthouse_command=_split_command(self._get("audit", "lighthouse_command", "npx lighthouse")),
            server_command=_split_command(self._get("audit", "server_command")),
            base_url=self._get("audit", "base_url"),
        )

    def load_settings(self) -> AppSettings:
        return AppSettings(
            pipeline=self.load_pipeline(),
            watch=self.load_watch(),
            audit=self.load_audit(),
        )
