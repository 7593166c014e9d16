"""CLI entrypoint for mobuild."""

import logging
from pathlib import Path

import rich_click as click

from mobuild import __version__
from mobuild.context import TRACE
from mobuild.controllers import BuildCliController, BuildCommand, ListTasksCommand

click.rich_click.USE_MARKDOWN = True
CONTROLLER = BuildCliController()

_LOG_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@click.group()
@click.version_option(version=__version__, prog_name="mobuild")
@click.option(
    "--log-level",
    type=click.Choice(list(_LOG_LEVELS), case_sensitive=False),
    default="info",
    show_default=True,
    help="Minimum level of log lines to print.",
)
def mobuild(log_level: str) -> None:
    """Fetch, patch and build dependencies."""

    logging.basicConfig(
        level=_LOG_LEVELS[log_level.lower()],
        format="%(asctime)s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )


@mobuild.command("list")
@click.argument("patterns", nargs=-1)
def list_tasks(patterns: tuple[str, ...]) -> None:
    """List tasks matching the given names or globs (all tasks by default)."""

    result = CONTROLLER.list_tasks(ListTasksCommand(patterns=patterns))
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("No tasks selected.")


@mobuild.command("build")
@click.argument("patterns", nargs=-1)
@click.option(
    "--clean/--no-clean",
    default=None,
    help="Run the clean phase. Defaults to MOBUILD_CLEAN.",
)
@click.option(
    "--fetch/--no-fetch",
    default=None,
    help="Run the fetch phase. Defaults to MOBUILD_FETCH.",
)
@click.option(
    "--build/--no-build",
    "build_phase",
    default=None,
    help="Run the build phase. Defaults to MOBUILD_BUILD.",
)
@click.option("--redownload", is_flag=True, help="Clean: download sources again.")
@click.option("--reextract", is_flag=True, help="Clean: extract sources again.")
@click.option("--reconfigure", is_flag=True, help="Clean: configure again.")
@click.option("--rebuild", is_flag=True, help="Clean: rebuild from scratch.")
@click.option("--no-pull", is_flag=True, help="Never pull existing checkouts, only clone.")
@click.option("--parallel", is_flag=True, help="Run the selected tasks concurrently.")
@click.option("--build-dir", type=click.Path(path_type=Path), default=None, help="Build root.")
@click.option(
    "--patches-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory holding <task>/*.patch files.",
)
def build(  # noqa: PLR0913
    patterns: tuple[str, ...],
    clean: bool | None,
    fetch: bool | None,
    build_phase: bool | None,
    redownload: bool,
    reextract: bool,
    reconfigure: bool,
    rebuild: bool,
    no_pull: bool,
    parallel: bool,
    build_dir: Path | None,
    patches_dir: Path | None,
) -> None:
    """Run tasks matching the given names or globs (all tasks by default).

    Globs use `*` as a wildcard; dashes and underscores are equivalent.
    """

    result = CONTROLLER.build(
        BuildCommand(
            patterns=patterns,
            clean=clean,
            fetch=fetch,
            build=build_phase,
            redownload=redownload,
            reextract=reextract,
            reconfigure=reconfigure,
            rebuild=rebuild,
            no_pull=no_pull,
            parallel=parallel,
            build_dir=build_dir,
            patches_dir=patches_dir,
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Build failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    mobuild()
