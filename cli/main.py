#!/usr/bin/env python3
"""
Clipchat CLI - run media operations locally without the HTTP server
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import Tuple

import click
from rich.console import Console
from rich.table import Table

from api.config import settings
from media.errors import MediaError
from media.formats import extension_for_mime
from media.pipeline import MediaInput, MediaPipeline

console = Console()


def _load_input(path: Path) -> MediaInput:
    return MediaInput(data=path.read_bytes(), filename=path.name)


def _pipeline() -> MediaPipeline:
    return MediaPipeline(settings.media_settings())


@click.group()
@click.version_option(settings.VERSION, prog_name="clipchat")
def cli():
    """Clipchat media operations."""


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print the table as JSON')
def operations(as_json: bool):
    """List every supported operation."""
    table_data = _pipeline().dispatch
    specs = sorted(table_data, key=lambda s: s.name)

    if as_json:
        click.echo(json.dumps([spec.describe() for spec in specs], indent=2))
        return

    table = Table(title="Operations")
    table.add_column("Operation", style="cyan")
    table.add_column("Mode")
    table.add_column("Arguments")
    table.add_column("Description")
    for spec in specs:
        fields = ", ".join(spec.params.model_fields) or "-"
        table.add_row(spec.name, spec.mode.value, fields, spec.description)
    console.print(table)

    aliases = table_data.aliases
    if aliases:
        console.print(f"[dim]Aliases: {', '.join(f'{a} -> {t}' for a, t in sorted(aliases.items()))}[/dim]")


@cli.command()
@click.argument('operation')
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('output_path', type=click.Path(dir_okay=False, path_type=Path))
@click.option('--args', 'args_json', default='{}', help='Operation arguments as a JSON object')
@click.option('--extra', 'extras', multiple=True, type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Additional input (audio track or further clips); repeatable')
def run(operation: str, input_path: Path, output_path: Path, args_json: str, extras: Tuple[Path, ...]):
    """Run OPERATION on INPUT_PATH and write the result to OUTPUT_PATH."""
    try:
        raw_args = json.loads(args_json)
    except json.JSONDecodeError as e:
        console.print(f"[red]--args is not valid JSON: {e.msg}[/red]")
        sys.exit(2)

    pipeline = _pipeline()
    try:
        result = asyncio.run(pipeline.run(
            operation,
            raw_args,
            _load_input(input_path),
            [_load_input(path) for path in extras],
        ))
    except MediaError as e:
        console.print(f"[red]{e.code}: {e.message}[/red]")
        sys.exit(1)

    if result.is_metadata:
        output_path.write_text(json.dumps(result.metadata, indent=2))
    else:
        output_path.write_bytes(result.content)

    expected = extension_for_mime(result.content_type, default=output_path.suffix.lstrip('.'))
    if output_path.suffix.lstrip('.') != expected:
        console.print(f"[yellow]Note: output is {result.content_type}; consider a .{expected} extension[/yellow]")
    console.print(
        f"[green]✓ {result.operation} finished in {result.elapsed:.2f}s -> {output_path}[/green]"
    )


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def probe(input_path: Path):
    """Print metadata for INPUT_PATH as JSON."""
    try:
        metadata = asyncio.run(_pipeline().probe(_load_input(input_path)))
    except MediaError as e:
        console.print(f"[red]{e.code}: {e.message}[/red]")
        sys.exit(1)
    metadata.pop('streams', None)
    console.print_json(json.dumps(metadata))


def main():
    """Main entry point for Clipchat CLI."""
    cli()


if __name__ == "__main__":
    main()
