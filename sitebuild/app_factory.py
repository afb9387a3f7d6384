from __future__ import annotations

from sitebuild.adapters.lighthouse_cli import LighthouseRunner
from sitebuild.adapters.server_process import StaticServerLauncher
from sitebuild.config.ini_config import AppSettings
from sitebuild.domain.models import PipelineConfig
from sitebuild.repositories.output_repository import OutputRepository
from sitebuild.repositories.report_repository import ReportRepository
from sitebuild.repositories.source_repository import SourceRepository
from sitebuild.services.audit_service import AuditHarness
from sitebuild.services.build_service import WebsiteBuilder
from sitebuild.services.chart_bundle import ChartBundler
from sitebuild.services.data_embedding import DataEmbedder
from sitebuild.services.watch_service import WatchService


def _output_exclusion(cfg: PipelineConfig) -> tuple[str, ...]:
    """The output tree is never an input, even when it lives inside the source tree."""
    try:
        rel = cfg.output_dir.relative_to(cfg.source_dir).as_posix()
    except ValueError:
        return ()
    if rel in ("", "."):
        return ()
    return (f"{rel}/**",)


def create_builder(settings: AppSettings) -> WebsiteBuilder:
    cfg = settings.pipeline

    sources = SourceRepository(
        source_dir=cfg.source_dir,
        exclude=cfg.exclude + _output_exclusion(cfg),
    )
    output = OutputRepository(output_dir=cfg.output_dir)
    embedder = DataEmbedder(config=cfg.embed, sources=sources)
    bundler = ChartBundler(
        config=cfg.bundle,
        project_dir=cfg.source_dir,
        output_dir=cfg.output_dir,
    )

    return WebsiteBuilder(
        config=cfg,
        sources=sources,
        output=output,
        embedder=embedder,
        bundler=bundler,
    )


def create_watch_service(settings: AppSettings, builder: WebsiteBuilder) -> WatchService:
    return WatchService(
        config=settings.watch,
        source_dir=settings.pipeline.source_dir,
        build=builder.build,
        extra_ignore=_output_exclusion(settings.pipeline),
    )


def create_harness(settings: AppSettings) -> AuditHarness:
    audit = settings.audit
    return AuditHarness(
        config=audit,
        output_dir=settings.pipeline.output_dir,
        launcher=StaticServerLauncher(command=audit.server_command),
        runner=LighthouseRunner(command=audit.lighthouse_command, timeout_seconds=audit.timeout_seconds),
        reports=ReportRepository(results_base=audit.results_dir),
    )
