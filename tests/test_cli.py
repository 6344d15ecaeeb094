import json
from pathlib import Path

from typer.testing import CliRunner

from ad_segmenter.cli import app
from tests.utils import ADS_DIR, PRODUCTS_DIR

runner = CliRunner()
RULES = str(PRODUCTS_DIR / "HA.json")


def test_cli_segment_outputs_documents():
    """segment emits one JSON summary per .txt document, sorted by id."""
    result = runner.invoke(app, ["segment", "--input-path", str(ADS_DIR), "--rules", RULES])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    doc_ids = [doc["doc_id"] for doc in payload["documents"]]
    assert doc_ids == ["hyaluronic_patch.txt", "medicated_gel.txt", "plain_copy.txt"]
    first = payload["documents"][0]
    assert first["segments"][0]["id"] == "seg_001"
    assert first["segments"][0]["text"] == "【目元の乾燥小ジワに】"
    assert first["coverage"] >= 0.95
    assert "debug" not in first


def test_cli_segment_resolves_product_id(tmp_path: Path):
    """--product-id looks up <rules-dir>/<ID>.json and --output-path writes the file."""
    output = tmp_path / "out" / "segments.json"
    result = runner.invoke(
        app,
        [
            "segment",
            "--input-path",
            str(ADS_DIR / "medicated_gel.txt"),
            "--product-id",
            "HA",
            "--rules-dir",
            str(PRODUCTS_DIR),
            "--debug",
            "--output-path",
            str(output),
        ],
    )
    assert result.exit_code == 0
    assert "Wrote 1 segmented documents" in result.stdout
    payload = json.loads(output.read_text(encoding="utf-8"))
    (document,) = payload["documents"]
    assert document["doc_id"] == "medicated_gel.txt"
    assert document["debug"]["tokens"]
    assert any(c["source"] == "keyword:殺菌" for c in document["debug"]["candidates"])
    tagged = next(
        c for c in document["debug"]["candidates"] if c["source"] == "keyword:殺菌"
    )
    assert tagged["keywords"] == ["殺菌"]


def test_cli_segment_requires_rules():
    """Running without any rule source is a usage error."""
    result = runner.invoke(app, ["segment", "--input-path", str(ADS_DIR)])
    assert result.exit_code == 2


def test_cli_segment_rejects_unknown_product():
    result = runner.invoke(
        app,
        [
            "segment",
            "--input-path",
            str(ADS_DIR),
            "--product-id",
            "CA",
            "--rules-dir",
            str(PRODUCTS_DIR),
        ],
    )
    assert result.exit_code == 2


def test_cli_segment_with_config(tmp_path: Path):
    config = tmp_path / "config.yaml"
    config.write_text("debug: true\n", encoding="utf-8")
    result = runner.invoke(
        app,
        [
            "segment",
            "--input-path",
            str(ADS_DIR / "plain_copy.txt"),
            "--rules",
            RULES,
            "--config",
            str(config),
        ],
    )
    assert result.exit_code == 0
    assert "debug" in json.loads(result.stdout)["documents"][0]


def test_cli_segment_rejects_malformed_config(tmp_path: Path):
    config = tmp_path / "config.yaml"
    config.write_text("debug: [unclosed\n", encoding="utf-8")
    result = runner.invoke(
        app,
        [
            "segment",
            "--input-path",
            str(ADS_DIR / "plain_copy.txt"),
            "--rules",
            RULES,
            "--config",
            str(config),
        ],
    )
    assert result.exit_code == 2


def test_cli_benchmark_prints_stats():
    result = runner.invoke(
        app,
        [
            "benchmark",
            "--input-path",
            str(ADS_DIR / "plain_copy.txt"),
            "--rules",
            RULES,
            "--iterations",
            "3",
        ],
    )
    assert result.exit_code == 0
    stats = json.loads(result.stdout)
    assert stats["iterations"] == 3
    assert {"avg", "min", "max", "p50", "p95", "p99", "chars"} <= set(stats)


def test_cli_print_config():
    """print-config command dumps the current configuration values."""
    result = runner.invoke(app, ["print-config"])
    assert result.exit_code == 0
    assert "overlap_threshold" in result.stdout
