"""
Run command for housekeep.

Runs the mutation pipeline over every repository under a root:
branch preparation, version reconciliation, replacement rules,
structural edits and the verification build.
"""

import json
from pathlib import Path
from typing import List, Optional

import click
import yaml

from ..cli_utils import add_common_options, handle_errors
from ..config import configure_logging, load_config
from ..domain.work import (
    BumpStrategy,
    ReplacementRule,
    ReplacementScope,
    WorkOptions,
    rules_from_config,
)
from ..exit_codes import CommandError, ConfigError, NoReposFoundError, PartialSuccessError
from ..render import render_json, render_plain, render_pretty
from ..services.orchestrator import Orchestrator
from ..services.pipeline_service import PipelineService, build_items
from ..services.repository_service import RepositoryService


def load_rules_file(path: str) -> List[ReplacementRule]:
    """
    Load replacement rules from a YAML or JSON file.

    The file holds a list of {search, replace} mappings, or a mapping with
    such a list under `rules`.
    """
    file = Path(path)
    try:
        with open(file, 'r', encoding='utf-8') as f:
            if file.suffix.lower() == '.json':
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read rules file {path}: {e}")

    if isinstance(data, dict):
        data = data.get('rules', [])
    if not isinstance(data, list) or not all(isinstance(e, dict) for e in data):
        raise ConfigError(f"Rules file {path} must contain a list of search/replace mappings")
    return rules_from_config(data)


def parse_replacements(values) -> List[ReplacementRule]:
    """Parse repeated --replace 'SEARCH=>REPLACE' values."""
    rules = []
    for value in values:
        try:
            rules.append(ReplacementRule.parse(value))
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="'--replace'")
    return rules


def check_results(results, action: str = "processed") -> None:
    """Raise the command error matching how many repositories failed."""
    failed = sum(1 for r in results if not r.success)
    if not failed:
        return
    succeeded = len(results) - failed
    if succeeded == 0:
        raise CommandError(f"All {failed} repositories failed")
    raise PartialSuccessError(
        f"{failed} of {len(results)} repositories failed to be {action}",
        succeeded=succeeded,
        failed=failed,
    )


@click.command('run')
@click.argument('root', default='.', type=click.Path(exists=True, file_okay=False))
@click.option('--replace', 'replacements', multiple=True, metavar='SEARCH=>REPLACE',
              help='Whitespace-tolerant replacement rule (repeatable)')
@click.option('--rules', 'rules_file', type=click.Path(exists=True, dir_okay=False),
              help='YAML or JSON file with replacement rules')
@click.option('--scope', type=click.Choice([s.value for s in ReplacementScope]),
              help='Where replacement rules are applied')
@click.option('--branch', help='Branch to work on (the maintenance branch name enables staleness eviction)')
@click.option('--bump', type=click.Choice([s.value for s in BumpStrategy]),
              help='Version component bumped when the version equals the latest tag')
@click.option('--parent-version', help='Target version for the parent reference')
@click.option('--verify', is_flag=True, help='Always run the verification build')
@click.option('--no-warnings', is_flag=True, help='Skip the warnings-only build')
@click.option('--single', is_flag=True, help='Treat ROOT as one repository')
@add_common_options('parallel', 'exclude', 'json', 'pretty', 'debug')
@handle_errors
def run_cmd(
    root: str,
    replacements,
    rules_file: Optional[str],
    scope: Optional[str],
    branch: Optional[str],
    bump: Optional[str],
    parent_version: Optional[str],
    verify: bool,
    no_warnings: bool,
    single: bool,
    parallel: Optional[int],
    exclude,
    json_output: bool,
    pretty: bool,
    debug: bool
):
    """Run housekeeping over the repositories under ROOT.

    \b
    Examples:
        # Bump versions that match their latest tag, on the default branch
        housekeep run ~/work
        # Work on the maintenance branch and replace a dependency version
        housekeep run ~/work --branch housekeeping --replace "<junit.version>4.12=><junit.version>4.13.2"
        # Stream JSONL events
        housekeep run ~/work --rules rules.yaml --json
    """
    config = load_config()
    configure_logging(config, debug=debug)

    rules = rules_from_config(config.get('replacements', {}).get('rules', []))
    if rules_file:
        rules.extend(load_rules_file(rules_file))
    rules.extend(parse_replacements(replacements))

    options = WorkOptions.from_config(
        config,
        rules=tuple(rules),
        scope=ReplacementScope(scope) if scope else None,
        bump_strategy=BumpStrategy.parse(bump) if bump else None,
        target_branch=branch,
        parent_version=parent_version,
        verify=verify or None,
        check_warnings=False if no_warnings else None,
    )

    excluded = list(config.get('general', {}).get('exclude_directories', [])) + list(exclude)
    paths = RepositoryService().discover(root, excluded=excluded, single=single)
    if not paths:
        raise NoReposFoundError(f"No git repositories found under {root}")

    workers = parallel or int(config.get('general', {}).get('parallel', 4))
    pipeline = PipelineService(config=config)
    events = Orchestrator(workers=workers).run(build_items(paths, options), pipeline.process)

    if json_output:
        results = render_json(events)
    elif pretty:
        results = render_pretty(events, "Housekeeping")
    else:
        results = render_plain(events)

    check_results(results)
