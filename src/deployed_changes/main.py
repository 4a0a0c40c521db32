"""
Main CLI entry point for deployed change reports.
"""

import asyncio
from pathlib import Path
from typing import TextIO

import click
from dotenv import load_dotenv

from ..shared_utilities import (
    RepositoryConfigManager,
    configure_logging,
    get_logging_manager,
)
from ..shared_utilities.telemetry import trace_function
from .config import ChangesConfig
from .data_models import InputReadError
from .input_reader import read_requests
from .output_formatter import ChangeReportFormatter
from .scheduler import aggregate_changes

# Load environment variables from .env file
load_dotenv()


@click.command()
@click.argument("input_file", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--services",
    "services_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Service to repository table (default: bundled services.json)",
)
@click.option(
    "--repo-root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the repository checkouts "
    "(or set DEPLOYED_CHANGES_REPO_ROOT)",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    help="Maximum parallel history queries [default: 4]",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Per-query timeout in seconds [default: 10]",
)
@click.option(
    "--upstream",
    help="Integration branch to compare against [default: master]",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
    show_default=True,
)
@click.option(
    "-o",
    "--output",
    "output_file",
    type=click.Path(dir_okay=False),
    help="Output file (default: stdout)",
)
@click.option("-q", "--quiet", is_flag=True, help="Only log errors")
@click.option("--verbose", is_flag=True, help="Enable verbose logging")
@click.option(
    "--list-services",
    is_flag=True,
    help="List services in the service table and exit",
)
@trace_function("deployed_changes_main")
def main(
    input_file: TextIO,
    services_file: Path | None,
    repo_root: Path | None,
    concurrency: int | None,
    timeout: float | None,
    upstream: str | None,
    output_format: str,
    output_file: str | None,
    quiet: bool,
    verbose: bool,
    list_services: bool,
) -> None:
    """
    Report the commits landed upstream since each service's deployed version.

    INPUT holds one "<service> <version>" pair per line, where version looks
    like BRANCH-BUILDDATE-gHASH. Reads stdin when INPUT is omitted or "-".

    Examples:

        # Report from a file of deployed versions
        deployed-changes versions.txt --repo-root ~/src

        # Pipe from a fleet query, JSON output
        fleet-versions | deployed-changes --format json -o changes.json

        # List known services
        deployed-changes --list-services
    """
    if verbose:
        configure_logging(level="DEBUG", force=True)
    elif quiet:
        configure_logging(level="ERROR", force=True)
    else:
        configure_logging()

    logging_manager = get_logging_manager()

    try:
        services = RepositoryConfigManager(services_file)

        if list_services:
            names = services.list_services()
            if names:
                click.echo("Configured services:")
                for name in sorted(names):
                    click.echo(f"  {name} -> {services.get_repository(name)}")
            else:
                click.echo("No services configured.")
            return

        config = ChangesConfig.from_env(
            load_env_file=False,
            repo_root=repo_root,
            concurrency=concurrency,
            query_timeout=timeout,
            upstream_branch=upstream,
        )

        try:
            read_result = read_requests(input_file, services, config.repo_root)
        except InputReadError as e:
            click.echo(f"Error: {e}", err=True)
            raise click.Abort() from e

        outcomes = asyncio.run(aggregate_changes(read_result.requests, config))

        formatter = ChangeReportFormatter()
        if output_file:
            formatter.save_to_file(
                outcomes, output_file, output_format, read_result.skipped
            )
            click.echo(f"Output saved to {output_file}")
        elif output_format == "json":
            click.echo(formatter.format_json_output(outcomes, read_result.skipped))
        else:
            click.echo(formatter.format_table_output(outcomes, read_result.skipped))

    except click.Abort:
        raise
    except Exception as e:
        logging_manager.log_operation_error("deployed_changes_main", e)
        click.echo(f"Error: {e}", err=True)
        raise click.Abort() from e


if __name__ == "__main__":
    main()
