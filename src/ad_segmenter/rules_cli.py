from __future__ import annotations

from pathlib import Path
from typing import Tuple

import click

from .errors import ProductRulesError
from .rules import load_product_rules_for, read_rule_file, validate_product_rules


@click.group(name="rules")
def rules_group() -> None:
    """Commands for checking product rule tables."""


@rules_group.command("validate")
@click.argument(
    "paths", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False)
)
def rules_validate(paths: Tuple[str, ...]) -> None:
    """Validate product rule files and report errors and warnings."""
    failed = False
    for raw_path in paths:
        path = Path(raw_path)
        try:
            data = read_rule_file(path)
        except ProductRulesError as exc:
            click.echo(f"{path}: ERROR {exc}")
            failed = True
            continue
        result = validate_product_rules(data)
        for error in result.errors:
            click.echo(f"{path}: ERROR {error}")
        for warning in result.warnings:
            click.echo(f"{path}: WARNING {warning}")
        if result.valid:
            click.echo(f"{path}: OK")
        else:
            failed = True
    if failed:
        raise SystemExit(1)


@rules_group.command("show")
@click.argument("product_id")
@click.option(
    "--rules-dir",
    type=click.Path(file_okay=False),
    default="config/products",
    show_default=True,
    help="Directory holding <ID>.json rule files.",
)
def rules_show(product_id: str, rules_dir: str) -> None:
    """Print the keywords a product requires annotations for."""
    try:
        rules = load_product_rules_for(product_id, rules_dir)
    except ProductRulesError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"{rules.id}: {rules.name} ({rules.category})")
    for keyword in rules.required_keywords():
        rule = rules.annotation_rules[keyword]
        click.echo(f"  {keyword}\t{rule.severity}\t{rule.template}")

