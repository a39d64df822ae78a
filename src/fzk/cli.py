"""CLI entry point for fzk."""

from pathlib import Path

import click

from fzk import __version__
from fzk.models import DEFAULT_INTERVAL, DEFAULT_NUM_MATCHES, DEFAULT_THRESHOLD
from fzk.source import FORMAT_NAMES


@click.command(context_settings={"auto_envvar_prefix": "FZK"})
@click.version_option(__version__, prog_name="fzk")
@click.option(
    "--threshold",
    "-t",
    type=float,
    default=DEFAULT_THRESHOLD,
    show_default=True,
    help="The similarity threshold for matching",
)
@click.option(
    "--update-interval",
    "-i",
    type=float,
    default=DEFAULT_INTERVAL,
    show_default=True,
    help="The update interval for processes in seconds",
)
@click.option(
    "--num-matches",
    "-n",
    type=int,
    default=DEFAULT_NUM_MATCHES,
    show_default=True,
    help="The maximum number of matches from fuzzy matcher",
)
@click.option(
    "--source",
    "-s",
    type=click.Choice(FORMAT_NAMES),
    default="auto",
    show_default=True,
    help="How to list processes",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write JSON logs here instead of the default state directory",
)
@click.option("--no-log", is_flag=True, help="Disable log output")
def main(
    threshold: float,
    update_interval: float,
    num_matches: int,
    source: str,
    log_file: Path | None,
    no_log: bool,
) -> None:
    """A TUI app to fuzzy find and kill pesky processes.

    Type to search by command name, or start with a digit to search by PID.
    """
    from fzk.app import FzkApp
    from fzk.logging import DEFAULT_LOG_PATH, configure
    from fzk.models import MonitorConfig
    from fzk.source import select_listing_format

    configure(None if no_log else (log_file or DEFAULT_LOG_PATH))

    config = MonitorConfig(
        interval=update_interval,
        threshold=threshold,
        num_matches=num_matches,
    )
    app = FzkApp(config=config, listing_format=select_listing_format(source))
    try:
        app.run()
    finally:
        app.poller.stop()
