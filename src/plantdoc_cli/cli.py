"""plantdoc CLI entry point.

Renders plantUml tag bodies outside a documentation run, e.g. to preview a
diagram or to check the engine setup.
"""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path
from typing import Callable

import typer
from rich.console import Console
from rich.table import Table

import plantdoc
from plantdoc.config import RenderConfig, load_config
from plantdoc.elements import AnnotatedElement
from plantdoc.engine import FileFormat, PlantUmlEngine
from plantdoc.errors import TagletError
from plantdoc.logging import configure_logging
from plantdoc.output import FileOutputManager

app = typer.Typer(
    name="plantdoc",
    help="plantdoc - render plantUml documentation tags to diagram files.",
    add_completion=False,
    no_args_is_help=True,
)

# Console for stderr output (stdout carries the generated markup)
_stderr_console = Console(stderr=True)


class Location(str, Enum):
    """Element kinds a plantUml tag may be attached to."""

    overview = "overview"
    package = "package"
    type = "type"
    method = "method"


def version_callback(name: str, version: str) -> Callable[[bool], None]:
    """Create an eager --version callback printing ``name version``."""

    def _callback(value: bool) -> None:
        if value:
            print(f"{name} {version}")
            raise typer.Exit()

    return _callback


def _build_element(
    kind: Location, name: str | None, package: str | None, method: str | None
) -> AnnotatedElement:
    if kind is Location.overview:
        return AnnotatedElement.overview()
    if not name:
        raise typer.BadParameter(f"--name is required for {kind.value} elements")
    if kind is Location.package:
        return AnnotatedElement.for_package(name)
    if kind is Location.type:
        return AnnotatedElement.for_type(name, package)
    if not method:
        raise typer.BadParameter("--method is required for method elements")
    return AnnotatedElement.for_method(name, method, package)


@app.callback()
def main(
    _version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback("plantdoc", plantdoc.__version__),
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Render plantUml documentation tags to diagram files."""


@app.command("render")
def render(
    body: str | None = typer.Argument(
        None,
        help="Tag body: '<name> <diagram source>'. Read from --file or stdin if omitted.",
    ),
    body_file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        help="Read the tag body from this file.",
        exists=True,
        readable=True,
        dir_okay=False,
    ),
    kind: Location = typer.Option(
        Location.type, "--kind", "-k", help="Kind of the annotated element."
    ),
    name: str | None = typer.Option(
        None,
        "--name",
        "-n",
        help="Qualified name of the package or type (the declaring type for methods).",
    ),
    package: str | None = typer.Option(
        None, "--package", "-p", help="Enclosing package (default: derived from --name)."
    ),
    method: str | None = typer.Option(
        None, "--method", "-m", help="Method name for method elements."
    ),
    output: Path = typer.Option(
        Path("docs"), "--output", "-o", help="Documentation output directory."
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to plantdoc.yaml configuration file.",
        exists=True,
        readable=True,
    ),
) -> None:
    """Render one tag body and print the resulting markup.

    Examples:
        plantdoc render "seq.svg Alice -> Bob" -n com.example.Foo
        plantdoc render -k method -n com.example.Foo -m run -o build/docs
    """
    if body is None:
        body = body_file.read_text(encoding="utf-8") if body_file else sys.stdin.read()

    element = _build_element(kind, name, package, method)

    try:
        settings = load_config(config)
        configure_logging(settings.log_level)

        from plantdoc.taglet import PlantUmlTaglet

        taglet = PlantUmlTaglet(FileOutputManager(output), settings)
        markup = taglet.process_tag(body, element)
    except TagletError as e:
        _stderr_console.print(f"[red]Error:[/red] {e}", highlight=False)
        raise typer.Exit(1) from e

    print(markup)


@app.command("formats")
def formats() -> None:
    """List the output formats and their file suffixes."""
    console = Console()
    table = Table(title="PlantUML output formats")
    table.add_column("Format", style="cyan")
    table.add_column("Suffix")
    table.add_column("Option")
    table.add_column("Server", justify="center")

    for file_format in FileFormat:
        table.add_row(
            file_format.name,
            file_format.suffix,
            f"-t{file_format.option}",
            "✓" if file_format.server_path else "-",
        )

    console.print(table)


@app.command("check")
def check(
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to plantdoc.yaml configuration file.",
        exists=True,
        readable=True,
    ),
) -> None:
    """Validate the configuration and report how diagrams will be rendered."""
    from loguru import logger

    # Suppress DEBUG logs from config loader
    logger.remove()

    console = Console(stderr=True)
    try:
        settings = load_config(config)
        render_config = RenderConfig.load(settings.get_plantuml_config_path())
    except TagletError as e:
        console.print(f"[red]✗ {e}[/red]", highlight=False)
        raise typer.Exit(1) from e

    engine = PlantUmlEngine(settings.engine, settings.get_jar_path())
    jar = engine.available_jar()

    console.print("[green]Configuration valid[/green]")
    console.print(f"  Sequence base path: {settings.get_sequence_basepath()}")
    console.print(f"  Sequence extension: .sequence.{settings.sequence_extension}")
    console.print(f"  Output format:      {settings.output_suffix()}")
    if render_config:
        console.print(f"  PlantUML config:    {render_config.source}")
    else:
        console.print("  PlantUML config:    [dim](engine defaults)[/dim]")
    console.print(f"  Engine preference:  {settings.engine.prefer}")
    console.print(f"  Local JAR:          {jar or '[dim](not available)[/dim]'}")
    console.print(f"  Server:             {settings.engine.server_url}")

    if settings.engine.prefer == "jar" and jar is None:
        console.print("\n[red]✗ prefer=jar but no usable JAR[/red]")
        raise typer.Exit(1)


def cli() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    cli()
