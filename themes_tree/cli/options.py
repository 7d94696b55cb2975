"""Standardized CLI option definitions for consistent shorthand mappings."""

import typer

SAVE_OPTION = typer.Option(
    False, "--save", "-s", help="Save the refreshed tree to the cache"
)

FORCE_OPTION = typer.Option(
    True,
    "--force/--use-cache",
    help="Ignore the cached snapshot in development mode",
)

KIND_OPTION = typer.Option(
    None,
    "--kind",
    "-k",
    help="Only show nodes of these kinds (theme, epic, user-story, issue)",
)

INCLUDE_CLOSED_OPTION = typer.Option(
    True,
    "--include-closed/--exclude-closed",
    help="Show closed nodes",
)

DEPTH_OPTION = typer.Option(
    None, "--depth", "-d", help="Maximum depth to render (roots are depth 1)"
)

CACHE_DIR_OPTION = typer.Option(
    None, "--cache-dir", help="Cache directory (default: THEMES_CACHE_DIR or data/cache)"
)

VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Log debug output")

LOG_FILE_OPTION = typer.Option(
    None, "--log-file", help="Also write debug logs to this file"
)
