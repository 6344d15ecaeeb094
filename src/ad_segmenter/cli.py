from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, TypedDict

import typer
import yaml

from .config import SegmenterConfig, load_config
from .errors import ConfigError, ProductRulesError
from .models import SegmentationResult
from .pipeline import Segmenter
from .rules import ProductRules, load_product_rules, load_product_rules_for

app = typer.Typer(help="Rule-based ad copy segmenter CLI.", no_args_is_help=True)

# File types the CLI knows how to expand into documents.
SUPPORTED_INPUT_EXTENSIONS = {".txt"}


class DocumentSummary(TypedDict, total=False):
    doc_id: str
    segments: List[Dict[str, Any]]
    token_count: int
    coverage: float
    processing_time_ms: float
    debug: Dict[str, Any]


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging on stderr."
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def segment(
    input_path: Path = typer.Option(
        ..., exists=True, readable=True, dir_okay=True, file_okay=True
    ),
    rules: Path | None = typer.Option(
        None, "--rules", "-r", help="Product rule file (JSON or YAML)."
    ),
    product_id: str | None = typer.Option(
        None, "--product-id", "-p", help="Resolve <rules-dir>/<ID>.json instead."
    ),
    rules_dir: Path | None = typer.Option(
        None, "--rules-dir", help="Override the configured rules directory."
    ),
    config: Path | None = typer.Option(None, "--config", "-c"),
    debug: bool | None = typer.Option(
        None,
        "--debug/--no-debug",
        help="Include tokens and candidates (defaults to the config value).",
    ),
    output_path: Path | None = typer.Option(
        None, "--output-path", "-o", dir_okay=False, help="Write JSON here."
    ),
) -> None:
    """Segment ad copy and emit a JSON summary."""
    cfg = _load_config_or_fail(config)
    segmenter = _build_segmenter(cfg, _resolve_rules(cfg, rules, product_id, rules_dir))
    documents = _load_documents(input_path)
    summary = [
        _document_summary(doc_id, segmenter.segment(text, debug=debug))
        for doc_id, text in documents
    ]
    payload = json.dumps({"documents": summary}, ensure_ascii=False, indent=2)
    if output_path is None:
        typer.echo(payload)
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(payload, encoding="utf-8")
    typer.echo(f"Wrote {len(summary)} segmented documents to {output_path}")


@app.command()
def benchmark(
    input_path: Path = typer.Option(
        ..., exists=True, readable=True, dir_okay=False, file_okay=True
    ),
    rules: Path | None = typer.Option(None, "--rules", "-r"),
    product_id: str | None = typer.Option(None, "--product-id", "-p"),
    rules_dir: Path | None = typer.Option(None, "--rules-dir"),
    config: Path | None = typer.Option(None, "--config", "-c"),
    iterations: int = typer.Option(100, min=1, help="Number of timed runs."),
) -> None:
    """Time repeated segmentation of one file and print latency stats (ms)."""
    cfg = _load_config_or_fail(config)
    segmenter = _build_segmenter(cfg, _resolve_rules(cfg, rules, product_id, rules_dir))
    text = input_path.read_text(encoding="utf-8")
    stats = segmenter.benchmark(text, iterations=iterations)
    typer.echo(json.dumps({"chars": len(text), **stats.to_dict()}, indent=2))


@app.command("print-config")
def print_config() -> None:
    """Print the default configuration as YAML."""
    cfg = SegmenterConfig()
    typer.echo(yaml.safe_dump(cfg.to_dict(), sort_keys=False))


def main() -> None:
    app()


def _load_config_or_fail(path: Path | None) -> SegmenterConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _resolve_rules(
    config: SegmenterConfig,
    rules_path: Path | None,
    product_id: str | None,
    rules_dir: Path | None,
) -> ProductRules:
    """Resolve the product rule table before any text is segmented."""
    if rules_path is None and not product_id:
        raise typer.BadParameter(
            "Provide either --rules or --product-id.", param_hint="--rules"
        )
    try:
        if rules_path is not None:
            return load_product_rules(rules_path)
        return load_product_rules_for(product_id, rules_dir or config.rules_dir)
    except ProductRulesError as exc:
        raise typer.BadParameter(str(exc), param_hint="--rules") from exc


def _build_segmenter(config: SegmenterConfig, rules: ProductRules) -> Segmenter:
    try:
        return Segmenter(rules, config)
    except ProductRulesError as exc:
        # Only a bad pattern catalog can fail here; rules are already resolved.
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _load_documents(input_path: Path) -> List[Tuple[str, str]]:
    """Expand the input path into (doc_id, text) pairs."""
    if input_path.is_file():
        return [(input_path.name, input_path.read_text(encoding="utf-8"))]
    files = sorted(
        p
        for p in input_path.rglob("*")
        if p.is_file() and p.suffix.lower() in SUPPORTED_INPUT_EXTENSIONS
    )
    # Relative paths keep doc ids stable across machines.
    return [
        (str(file.relative_to(input_path)), file.read_text(encoding="utf-8"))
        for file in files
    ]


def _document_summary(doc_id: str, result: SegmentationResult) -> DocumentSummary:
    summary: DocumentSummary = {
        "doc_id": doc_id,
        "segments": [segment.to_dict() for segment in result.segments],
        "token_count": result.token_count,
        "coverage": round(result.coverage, 4),
        "processing_time_ms": round(result.processing_time_ms, 3),
    }
    if result.debug is not None:
        summary["debug"] = {
            "tokens": [
                {
                    "kind": token.kind,
                    "text": token.text,
                    "start": token.start,
                    "end": token.end,
                    "line": token.line,
                    "annotation_number": token.annotation_number,
                }
                for token in result.debug.tokens
            ],
            "candidates": [
                {
                    "type": candidate.type,
                    "priority": candidate.priority,
                    "source": candidate.source,
                    "start": candidate.start,
                    "end": candidate.end,
                    "merged": candidate.merged,
                    "annotation_markers": list(candidate.annotation_markers),
                    "keywords": sorted(
                        {t.keyword for t in candidate.tokens if t.keyword}
                    ),
                }
                for candidate in result.debug.candidates
            ],
        }
    return summary


if __name__ == "__main__":
    main()
