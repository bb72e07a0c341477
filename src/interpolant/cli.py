"""Interpolant CLI Entry Point

Usage:
    interpolant render query.sql.tmpl                      # render to stdout
    interpolant render t.tmpl -c ctx.yaml -p partials.yaml # with context and partials
    interpolant render t.tmpl -p partials.yaml --path reports/q.sql
    interpolant render t.tmpl --restricted -o out.txt      # lookups/partial calls only
    interpolant partials partials.yaml --path reports/q.sql
    interpolant --version
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
import yaml
from rich.table import Table

from interpolant._version import __version__
from interpolant.config import IDENT_RX, EngineConfig, load_config
from interpolant.console import console, setup_logging
from interpolant.engine import (
    ContextBuilder,
    InterpolationEngine,
    InterpolationResult,
    RestrictedInterpolationEngine,
)
from interpolant.exceptions import InterpolantError
from interpolant.partials import PartialCollection, RenderResult, load_partials

log = logging.getLogger(__name__)

app = typer.Typer(help="Render ${...} templates with partials and shared context.")


def _fail(message: str) -> NoReturn:
    typer.secho(f"Error: {message}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _report_issue(message: str, source: str, error: Any) -> None:
    log.warning(f"{message} ({error})")


def _load_context(path: Optional[Path]) -> dict[str, Any]:
    if path is None:
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InterpolantError(f"Context file {path} must contain a mapping")
    return data


def _context_builder(data: dict[str, Any], ctx_name: str) -> ContextBuilder:
    """Bind *data* as the shared context and spread its identifier keys as locals."""
    spread = {
        key: value
        for key, value in data.items()
        if isinstance(key, str) and IDENT_RX.fullmatch(key) and key != ctx_name
    }
    skipped = [str(key) for key in data if key not in spread]
    if skipped:
        log.debug(f"Context keys only reachable through {ctx_name}: {', '.join(skipped)}")

    def interp_ctx(purpose: str, **_: Any) -> dict[str, Any]:
        return data if purpose == "default" else spread

    return interp_ctx


def _load_engine_config(path: Optional[Path]) -> EngineConfig:
    base = load_config(path) if path is not None else None
    return EngineConfig.from_env(base)


def _load_collection(path: Optional[Path], config: EngineConfig) -> PartialCollection:
    collection = PartialCollection()
    if path is not None:
        load_partials(path, collection, config.on_duplicate, _report_issue)
    return collection


async def _render(
    source: str,
    engine: InterpolationEngine,
    path: Optional[str],
) -> InterpolationResult:
    composed = await engine.partials.compose(
        RenderResult(content=source, interpolate=True), path
    )
    if not composed.interpolate:
        return InterpolationResult(
            status=False, source=composed.content, error=InterpolantError(composed.content)
        )
    return await engine.interpolate_unsafely({"source": composed.content})


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"interpolant {__version__}")
        raise typer.Exit()


@app.callback()
def cli(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Execution-time text interpolation."""


@app.command()
def render(
    template: Path = typer.Argument(..., help="Template file to render."),
    context: Optional[Path] = typer.Option(
        None, "-c", "--context", help="YAML mapping bound as shared context and locals."
    ),
    partials_file: Optional[Path] = typer.Option(
        None, "-p", "--partials", help="YAML file declaring partials."
    ),
    path: Optional[str] = typer.Option(
        None, "--path", help="Artifact path used to select an injectable wrapper."
    ),
    restricted: bool = typer.Option(
        False, "--restricted", help="Only allow lookups and partial calls."
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="Engine config YAML."
    ),
    output: Optional[Path] = typer.Option(
        None, "-o", "--output", help="Write the result to a file instead of stdout."
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging."),
) -> None:
    """Render a template file."""
    setup_logging(verbose)

    try:
        config = _load_engine_config(config_file)
        data = _load_context(context)
        collection = _load_collection(partials_file, config)
        source = template.read_text(encoding="utf-8")
    except (InterpolantError, OSError, yaml.YAMLError) as e:
        _fail(str(e))

    engine_class = RestrictedInterpolationEngine if restricted else InterpolationEngine
    engine = engine_class(
        partials=collection,
        interp_ctx=_context_builder(data, config.ctx_name),
        config=config,
    )
    result = asyncio.run(_render(source, engine, path))

    if result.status is False:
        _fail(str(result.error) if result.error else result.source)
    log.info(f"{template}: {result.status}")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.source, encoding="utf-8")
        typer.echo(f"Wrote {output}")
    else:
        typer.echo(result.source, nl=False)


@app.command("partials")
def list_partials(
    file: Path = typer.Argument(..., help="YAML file declaring partials."),
    path: Optional[str] = typer.Option(
        None, "--path", help="Show which injectable would wrap this path."
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging."),
) -> None:
    """List declared partials."""
    setup_logging(verbose)

    try:
        collection = _load_collection(file, EngineConfig.from_env())
    except (InterpolantError, OSError) as e:
        _fail(str(e))

    if not len(collection):
        console.print("[yellow]No partials declared[/yellow]")
        return

    table = Table()
    table.add_column("Identity", style="cyan")
    table.add_column("Inject")
    table.add_column("Mode")
    table.add_column("Schema")

    for fragment in collection:
        injection = fragment.injection
        table.add_row(
            fragment.identity,
            ", ".join(injection.globs) if injection else "-",
            injection.mode if injection else "-",
            "yes" if fragment.locals_model is not None else "-",
        )
    console.print(table)

    if path:
        chosen = collection.find_injectable_for_path(path)
        if chosen is None:
            console.print(f"No injectable for [bold]{path}[/bold]")
        else:
            console.print(
                f"Injectable for [bold]{path}[/bold]: [cyan]{chosen.identity}[/cyan]"
            )


def main() -> None:
    """Entry point for the installed ``interpolant`` script."""
    app()


if __name__ == "__main__":
    main()
