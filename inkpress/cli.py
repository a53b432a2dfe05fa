"""Command-line interface for inkpress.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build every document of the project in the current directory.
- check: Run the pipeline on a single file and print a page summary.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .log import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="inkpress")
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr")
def cli(verbose: bool):
    """inkpress static site content pipeline."""
    configure_logging(logging.DEBUG if verbose else None)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include unpublished pages")
@click.option("--fail-fast", is_flag=True, help="Stop at the first failed document")
def build(drafts: bool, fail_fast: bool):
    """Build every document into the output directory."""
    project_root = Path.cwd()
    from .build import BuildError, build_site

    try:
        report = build_site(project_root, include_drafts=drafts, fail_fast=fail_fast or None)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None
    except BuildError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {_relative(exc.source_path, project_root)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    for page in report.pages:
        click.echo(f"  {click.style('ok', fg='green')}    {_relative(Path(page.source_path), project_root)} -> {page.url}")
    for failure in report.failures:
        click.echo(
            f"  {click.style('fail', fg='red')}  {_relative(failure.source_path, project_root)}: {failure.message}",
            err=True,
        )
    summary = f"Built {len(report.pages)} pages into {report.output_dir}"
    if report.skipped:
        summary += f" ({len(report.skipped)} drafts skipped)"
    click.echo(summary)
    if not report.ok:
        click.echo(click.style(f"{len(report.failures)} documents failed", fg="red", bold=True), err=True)
        raise SystemExit(1)


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
def check(path: Path):
    """Run the pipeline on one file and print the page summary."""
    from .build import load_config
    from .content import ContentPipeline
    from .errors import PipelineError

    pipeline = ContentPipeline.from_config(load_config(Path.cwd()))
    try:
        page = pipeline.process(path)
    except PipelineError as exc:
        raise click.ClickException(f"{type(exc).__name__}: {exc}") from None

    click.echo(f"Title:      {page.title}")
    click.echo(f"Date:       {page.date.isoformat(sep=' ')}")
    click.echo(f"Layout:     {page.layout}")
    click.echo(f"URL:        {page.url}")
    click.echo(f"Categories: {', '.join(page.categories)}")
    click.echo(f"Tags:       {', '.join(page.tags)}")
    click.echo(f"Blocks:     {len(page.blocks)}")
    click.echo(f"Links:      {len(page.links)}")


def _relative(path: Path, root: Path) -> Path:
    try:
        return path.relative_to(root)
    except ValueError:
        return path


def main():
    """Entry point for the CLI application."""
    cli()
