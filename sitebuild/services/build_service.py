from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sitebuild.domain.models import (
    ASSET_CLASSES,
    IMAGES,
    MARKUP,
    SCRIPTS,
    STYLES,
    VERBATIM,
    BuildRun,
    BuildStats,
    Outcome,
    PipelineConfig,
)
from sitebuild.repositories.output_repository import OutputRepository
from sitebuild.repositories.source_repository import SourceRepository
from sitebuild.services.chart_bundle import ChartBundler
from sitebuild.services.css_purge import CssPurger
from sitebuild.services.data_embedding import DataEmbedder
from sitebuild.services.transforms import minify_markup, minify_script, minify_styles, purge_styles

logger = logging.getLogger(__name__)


def _kb(n: int) -> str:
    return f"{n / 1024:.2f} KB"


@dataclass
class WebsiteBuilder:
    """
    Service layer: runs the fixed asset pipeline from the source tree into the output tree.
    Markup errors abort the build; the other classes degrade per file.
    """
    config: PipelineConfig
    sources: SourceRepository
    output: OutputRepository
    embedder: DataEmbedder
    bundler: Optional[ChartBundler] = None

    def resolve(self) -> BuildRun:
        return BuildRun(files={c: self.sources.resolve(self.config.patterns_for(c)) for c in ASSET_CLASSES})

    def build(self) -> Optional[BuildStats]:
        logger.info("Starting build process...")
        run = self.resolve()

        logger.info("Cleaning output directory...")
        self.output.reset()

        self.process_markup(run.files[MARKUP])
        self.process_styles(run.files[STYLES])
        self.process_scripts(run.files[SCRIPTS])
        self.bundle_chart()
        self.copy_files(run.files[IMAGES], "Copying images...")
        self.copy_files(run.files[VERBATIM], "Copying static files...")

        stats = self.show_statistics(run)
        logger.info("Build completed successfully!")
        return stats

    def clean(self) -> None:
        logger.info("Cleaning output directory %s...", self.output.output_dir)
        self.output.remove()

    def process_markup(self, files: list[str]) -> None:
        logger.info("Processing HTML files...")
        for rel in files:
            content = self.sources.read_text(rel)
            content = self.embedder.preprocess(rel, content)
            self.output.write_text(rel, minify_markup(rel, content, dev=self.config.dev))
            logger.info("  Minified: %s", rel)

    def _make_purger(self) -> Optional[CssPurger]:
        if self.config.dev or not self.config.purge_enabled:
            return None
        scanned = self.sources.resolve(self.config.purge_content)
        return CssPurger.from_content(
            # only tokens are extracted, so a stray non-UTF-8 byte is harmless
            (self.sources.read_text(rel, errors="replace") for rel in scanned),
            self.config.purge_safelist,
        )

    def process_styles(self, files: list[str]) -> None:
        logger.info("Processing CSS files...")
        purger = self._make_purger() if files else None
        for rel in files:
            css = self.sources.read_text(rel)
            if purger is not None:
                purged = purge_styles(css, purger)
                if purged.ok:
                    css = purged.value
                else:
                    logger.warning("  Keeping unpurged %s: %s", rel, purged.reason)
            self.output.write_text(rel, minify_styles(css, line_break=self.config.css_line_break))
            logger.info("  %s: %s", "Minified" if purger is None else "Purged and minified", rel)

    def process_scripts(self, files: list[str]) -> None:
        logger.info("Processing JavaScript files...")
        for rel in files:
            try:
                source = self.sources.read_text(rel)
            except UnicodeDecodeError as e:
                result = Outcome.failure(f"not valid UTF-8: {e}")
            else:
                result = minify_script(source, keep_bang_comments=self.config.keep_js_bang_comments)
            if result.ok:
                self.output.write_text(rel, result.value)
                logger.info("  Minified: %s", rel)
            else:
                logger.warning("  Could not minify %s: %s", rel, result.reason)
                self.output.copy_from(self.sources.path_of(rel), rel)

    def bundle_chart(self) -> None:
        if self.bundler is None or not self.config.bundle.enabled:
            logger.debug("Chart bundle disabled")
            return
        outcome = self.bundler.bundle(minify=not self.config.dev)
        if outcome.ok:
            logger.info("  Built minimal Chart.js bundle")
        else:
            logger.warning("  Could not build minimal Chart.js bundle: %s", outcome.reason)

    def copy_files(self, files: list[str], banner: str) -> None:
        logger.info(banner)
        for rel in files:
            self.output.copy_from(self.sources.path_of(rel), rel)
            logger.info("  Copied: %s", rel)

    def _vendor_prefix(self) -> str:
        head = self.config.bundle.output.replace("\\", "/").split("/", 1)[0]
        return head + "/"

    def compute_statistics(self, run: BuildRun) -> BuildStats:
        sources = [rel for files in run.files.values() for rel in files]
        built = self.output.list_files()
        vendor = [rel for rel in built if rel.startswith(self._vendor_prefix())]
        return BuildStats(
            original_bytes=self.sources.total_size(sources),
            build_bytes=self.output.total_size(built),
            vendor_bytes=self.output.total_size(vendor),
            file_count=len(built),
        )

    def show_statistics(self, run: BuildRun) -> Optional[BuildStats]:
        logger.info("Build Statistics:")
        try:
            stats = self.compute_statistics(run)
        except OSError as e:
            logger.warning("  Could not calculate build statistics: %s", e)
            return None

        logger.info("  Original size: %s", _kb(stats.original_bytes))
        logger.info("  Build size: %s", _kb(stats.build_bytes))
        logger.info("  Build size (excluding vendor): %s", _kb(stats.effective_bytes))
        logger.info("  Vendor bytes shipped: %s", _kb(stats.vendor_bytes))
        logger.info("  Compression (excluding vendor): %.2f%%", stats.compression_ratio)
        logger.info("  Files processed: %d", stats.file_count)
        return stats
