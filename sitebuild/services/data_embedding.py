"""
Embeds the company data files into one markup page as inert data blocks,
so the markup minifier treats them as static content.
"""
from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from sitebuild.domain.models import EmbedConfig
from sitebuild.repositories.source_repository import SourceRepository

logger = logging.getLogger(__name__)

Cell = Union[str, int, float]


def _coerce_cell(raw: str) -> Cell:
    if raw == "" or "_" in raw:
        return raw
    try:
        num = float(raw)
    except ValueError:
        return raw
    if not math.isfinite(num):
        return raw
    return int(num) if num.is_integer() else num


def csv_to_rows(csv_text: Optional[str]) -> list[dict[str, Cell]]:
    """Header line gives the keys; numeric-looking cells become numbers, blanks stay ""."""
    if not csv_text:
        return []
    lines = [ln for ln in re.split(r"\n+", csv_text.replace("\r", "\n")) if ln]
    if not lines:
        return []
    headers = [h.strip() for h in lines[0].split(",")]
    rows: list[dict[str, Cell]] = []
    for line in lines[1:]:
        cols = line.split(",")
        if not cols[0]:
            continue
        row: dict[str, Cell] = {}
        for j, key in enumerate(headers):
            raw = cols[j].strip() if j < len(cols) else ""
            row[key] = _coerce_cell(raw)
        rows.append(row)
    return rows


@dataclass
class DataEmbedder:
    config: EmbedConfig
    sources: SourceRepository

    def applies_to(self, rel_path: str) -> bool:
        return bool(self.config.page) and Path(rel_path).name == self.config.page

    def _read_optional(self, name: str) -> Optional[str]:
        """Contents of one data file, or None when it is unset, excluded or unreadable."""
        if not name:
            return None
        rel = PurePosixPath(self.config.data_dir, name).as_posix()
        if self.sources.is_excluded(rel):
            logger.debug("Embedded data excluded: %s", rel)
            return None
        try:
            return self.sources.read_text(rel)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Embedded data not available (%s): %s", rel, e)
            return None

    def preprocess(self, rel_path: str, html: str) -> str:
        if not self.applies_to(rel_path):
            return html

        details = self._read_optional(self.config.json_file)
        csv_text = self._read_optional(self.config.csv_file)

        if not details and not csv_text:
            return html

        rows_json = json.dumps(csv_to_rows(csv_text), separators=(",", ":"), ensure_ascii=False)

        parts = []
        if details:
            parts.append(f'<script type="application/json" id="company-details-json">{details}</script>')
        parts.append(f'<script type="application/json" id="company-rows-json">{rows_json}</script>')
        if csv_text:
            parts.append(f'<script type="text/csv" id="company-rows-csv">{csv_text}</script>')
        injection = "\n".join(parts)

        if "</head>" in html:
            return html.replace("</head>", f"{injection}\n</head>", 1)
        return injection + html
