"""screener CLI: moderate text from the command line."""

import asyncio
import json
import logging

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from screener import __version__
from screener.config import load_config
from screener.moderation.models import ModerationResult, RiskLevel
from screener.moderation.service import ContentModerationService

console = Console()

_RISK_STYLE = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "red",
    RiskLevel.CRITICAL: "bold red",
}


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="YAML moderation config")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """screener: multi-stage content moderation.

    Runs text through basic checks, sensitive-word lookup, an optional
    remote AI classifier and trust-weighted rules.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e
    ctx.obj = ContentModerationService.from_config(config)


def _print_result(result: ModerationResult, title: str) -> None:
    style = _RISK_STYLE[result.risk_level]
    verdict = "[green]APPROVED[/]" if result.approved else f"[{style}]{result.suggested_action.value.upper()}[/]"
    lines = [
        f"Verdict:     {verdict}",
        f"Confidence:  {result.confidence:.2f}",
        f"Risk level:  [{style}]{result.risk_level.value}[/]",
        f"Reason:      {escape(result.reason or '-')}",
        f"Time:        {result.processing_time_ms}ms",
    ]
    for issue in result.issues:
        lines.append(f"  [yellow]![/] {issue.type} ({issue.severity:.1f}): {issue.description}")
    for detection in result.sensitive_word_detections:
        lines.append(f"  [red]x[/] {escape(detection.word)} ({detection.category}, {detection.severity:.1f})")
    console.print(Panel("\n".join(lines), title=title))


# ── Moderate ─────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
@click.option("--author", "-a", default=None, help="Author UUID (default: unknown author)")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_obj
def moderate(service: ContentModerationService, text: str, author: str | None, as_json: bool):
    """Moderate a single TEXT."""
    try:
        result = asyncio.run(service.moderate_comment(text, author))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--author") from e

    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return
    _print_result(result, "Moderation Result")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print results as a JSON list")
@click.pass_obj
def batch(service: ContentModerationService, path: str, as_json: bool):
    """Moderate every non-empty line of the file at PATH."""
    with open(path, encoding="utf-8") as f:
        texts = [line.rstrip("\n") for line in f if line.strip()]

    if not texts:
        console.print("[yellow]No texts to moderate.[/]")
        return

    results = asyncio.run(service.moderate_batch(texts))

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
        return

    table = Table(title=f"Moderation Results ({len(results)} texts)")
    table.add_column("#", style="dim", width=4)
    table.add_column("Text", style="cyan")
    table.add_column("Action")
    table.add_column("Risk")
    table.add_column("Confidence", justify="right")

    for i, (text, result) in enumerate(zip(texts, results)):
        style = _RISK_STYLE[result.risk_level]
        table.add_row(
            str(i + 1),
            escape(text[:50]),
            result.suggested_action.value,
            f"[{style}]{result.risk_level.value}[/]",
            f"{result.confidence:.2f}",
        )

    console.print(table)


# ── Queries ──────────────────────────────────────────────────────────


@main.command(name="check-words")
@click.argument("text")
@click.option("--mask", is_flag=True, help="Show the text with sensitive words masked")
@click.pass_obj
def check_words(service: ContentModerationService, text: str, mask: bool):
    """List the sensitive words found in TEXT."""
    result = asyncio.run(service.check_sensitive_words(text, replace_with_mask=mask))

    if not result.contains_sensitive_words:
        console.print("[green]No sensitive words found.[/]")
        return

    for label, words in (
        ("high", result.high_risk_words),
        ("medium", result.medium_risk_words),
        ("low", result.low_risk_words),
    ):
        for word in words:
            console.print(f"  [red]x[/] {escape(word)} ({label})")
    if mask:
        console.print(f"\n{escape(result.filtered_content)}")


@main.command()
@click.argument("text")
@click.pass_obj
def risk(service: ContentModerationService, text: str):
    """Print the risk level of TEXT."""
    level = asyncio.run(service.get_risk_level(text))
    click.echo(level.value)


@main.command()
@click.argument("text")
@click.pass_obj
def review(service: ContentModerationService, text: str):
    """Say whether TEXT needs a human moderator."""
    needed = asyncio.run(service.requires_human_review(text))
    click.echo("review" if needed else "no-review")


if __name__ == "__main__":
    main()
