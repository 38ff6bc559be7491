"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from avastscan import __version__


@click.group()
@click.version_option(version=__version__, prog_name="avast-scan")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """avast-scan — check source code against AVAST security rules."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _register_commands() -> None:
    from avastscan.cli.rules import rules  # noqa: F811
    from avastscan.cli.scan import scan  # noqa: F811

    main.add_command(scan)
    main.add_command(rules)


_register_commands()
