"""
Scan command for housekeep.

Read-only health snapshot of every repository under a root, plus the
reports of any scanners configured under `scan.scanners`.
"""

from typing import Optional

import click

from ..cli_utils import add_common_options, handle_errors
from ..config import configure_logging, load_config
from ..exit_codes import NoReposFoundError
from ..render import render_json, render_plain, render_pretty
from ..services.orchestrator import Orchestrator
from ..services.repository_service import RepositoryService
from ..services.scan_service import ScanService
from .run import check_results


@click.command('scan')
@click.argument('root', default='.', type=click.Path(exists=True, file_okay=False))
@click.option('--single', is_flag=True, help='Treat ROOT as one repository')
@add_common_options('parallel', 'exclude', 'json', 'pretty', 'debug')
@handle_errors
def scan_cmd(
    root: str,
    single: bool,
    parallel: Optional[int],
    exclude,
    json_output: bool,
    pretty: bool,
    debug: bool
):
    """Scan the repositories under ROOT without changing them.

    \b
    Examples:
        housekeep scan ~/work
        housekeep scan ~/work --json | jq 'select(.type == "item_result")'
    """
    config = load_config()
    configure_logging(config, debug=debug)

    excluded = list(config.get('general', {}).get('exclude_directories', [])) + list(exclude)
    paths = RepositoryService().discover(root, excluded=excluded, single=single)
    if not paths:
        raise NoReposFoundError(f"No git repositories found under {root}")

    workers = parallel or int(config.get('general', {}).get('parallel', 4))
    service = ScanService(config=config)
    events = Orchestrator(workers=workers).run(paths, service.scan_repo)

    if json_output:
        results = render_json(events)
    elif pretty:
        results = render_pretty(events, "Repository Scan")
    else:
        results = render_plain(events)

    check_results(results, action="scanned")
