from __future__ import annotations

import json
from pathlib import Path

import pytest

from sitebuild.domain.models import EmbedConfig
from sitebuild.repositories.source_repository import SourceRepository
from sitebuild.services.data_embedding import DataEmbedder, csv_to_rows

PAGE = "engineering_responsibilities.html"


def _embedder(root: Path, exclude: tuple[str, ...] = ()) -> DataEmbedder:
    return DataEmbedder(
        config=EmbedConfig(page=PAGE, data_dir="data", json_file="company_details.json", csv_file="rows.csv"),
        sources=SourceRepository(source_dir=root, exclude=exclude),
    )


def _write(root: Path, rel: str, text: str) -> None:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


def test_csv_rows_match_compact_json():
    rows = csv_to_rows("name,score\nAlpha,42\n")
    assert rows == [{"name": "Alpha", "score": 42}]
    assert json.dumps(rows, separators=(",", ":")) == '[{"name":"Alpha","score":42}]'


@pytest.mark.parametrize(
    "csv_text, expected",
    [
        ("a,b\n1.5, x \n", [{"a": 1.5, "b": "x"}]),
        ("a,b\r\n7,\r\n", [{"a": 7, "b": ""}]),                 # blank cell stays ""
        ("a,b,c\n1\n", [{"a": 1, "b": "", "c": ""}]),           # missing columns
        ("a,b\n,skipped\nkept,2\n", [{"a": "kept", "b": 2}]),   # empty first cell drops the row
        ("a\ninf\n", [{"a": "inf"}]),                           # non-finite stays text
        ("a\n-3\n", [{"a": -3}]),
        ("", []),
        ("only,headers\n", []),
    ],
)
def test_csv_coercion(csv_text, expected):
    assert csv_to_rows(csv_text) == expected


def test_injects_before_head(tmp_path: Path):
    _write(tmp_path, "data/company_details.json", '{"name":"ACME"}')
    _write(tmp_path, "data/rows.csv", "name,score\nAlpha,42\n")

    html = "<html><head><title>t</title></head><body></body></html>"
    out = _embedder(tmp_path).preprocess(PAGE, html)

    head_end = out.index("</head>")
    assert out.index('id="company-details-json">{"name":"ACME"}</script>') < head_end
    assert out.index('id="company-rows-json">[{"name":"Alpha","score":42}]</script>') < head_end
    assert out.index('<script type="text/csv" id="company-rows-csv">name,score') < head_end
    assert out.count("</head>") == 1


def test_prepends_when_no_head(tmp_path: Path):
    _write(tmp_path, "data/rows.csv", "name,score\nAlpha,42\n")
    out = _embedder(tmp_path).preprocess(PAGE, "<p>body only</p>")
    assert out.startswith('<script type="application/json" id="company-rows-json">')
    assert out.endswith("<p>body only</p>")
    assert "company-details-json" not in out


def test_json_only_still_embeds_empty_rows(tmp_path: Path):
    _write(tmp_path, "data/company_details.json", "{}")
    out = _embedder(tmp_path).preprocess(PAGE, "<head></head>")
    assert 'id="company-rows-json">[]</script>' in out
    assert "company-rows-csv" not in out


def test_passthrough_without_data_files(tmp_path: Path):
    html = "<head></head><body>x</body>"
    assert _embedder(tmp_path).preprocess(PAGE, html) == html


def test_other_pages_untouched(tmp_path: Path):
    _write(tmp_path, "data/rows.csv", "name,score\nAlpha,42\n")
    html = "<head></head>"
    assert _embedder(tmp_path).preprocess("index.html", html) == html


def test_unreadable_file_counts_as_absent(tmp_path: Path):
    # a directory where the JSON file should be cannot be read as text
    (tmp_path / "data" / "company_details.json").mkdir(parents=True)
    html = "<head></head>"
    assert _embedder(tmp_path).preprocess(PAGE, html) == html


def test_excluded_data_file_is_never_embedded(tmp_path: Path):
    _write(tmp_path, "data/company_details.json", '{"name":"ACME"}')
    _write(tmp_path, "data/rows.csv", "name,score\nAlpha,42\n")

    out = _embedder(tmp_path, exclude=("data/rows.csv",)).preprocess(PAGE, "<head></head>")

    assert '{"name":"ACME"}' in out
    assert "Alpha" not in out
    assert 'id="company-rows-json">[]</script>' in out
    assert "company-rows-csv" not in out


def test_all_data_excluded_passes_markup_through(tmp_path: Path):
    _write(tmp_path, "data/company_details.json", '{"name":"ACME"}')
    _write(tmp_path, "data/rows.csv", "name,score\nAlpha,42\n")
    html = "<head></head>"

    assert _embedder(tmp_path, exclude=("data/**",)).preprocess(PAGE, html) == html
