#!/usr/bin/env python3

import click

from housekeep.commands.run import run_cmd
from housekeep.commands.scan import scan_cmd
from housekeep.commands.config import config_cmd


@click.group()
@click.version_option(package_name="housekeep")
def cli():
    """housekeep - Batch housekeeping for git repositories.

    Moves each repository onto the right branch, bumps project versions
    that match their latest tag, applies replacement rules and structural
    edits, and runs a verification build, many repositories at a time.
    """
    pass


cli.add_command(run_cmd)
cli.add_command(scan_cmd)
cli.add_command(config_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
