"""
CLI tests for housekeep commands using click's CliRunner.

Discovery and the per-repository units are patched; the orchestrator and
renderers run for real.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from housekeep.cli import cli
from housekeep.config import get_default_config
from housekeep.domain.work import ReplacementRule, WorkResult
from housekeep.exit_codes import (
    CONFIG_ERROR,
    GENERAL_ERROR,
    INTERRUPTED,
    NO_REPOS_FOUND,
    PARTIAL_SUCCESS,
    CommandError,
    ConfigError,
    NoReposFoundError,
    PartialSuccessError,
    exit_code_for,
)


@pytest.fixture
def runner():
    return CliRunner()


def json_lines(output):
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


def outcome(failing=()):
    def process(item):
        return WorkResult(item.repo_path, item.repo_name, item.repo_name not in failing)
    return process


@pytest.fixture
def run_env():
    """Patch config, discovery and the pipeline used by the run command."""
    with patch('housekeep.commands.run.load_config', side_effect=get_default_config), \
            patch('housekeep.commands.run.RepositoryService') as repos, \
            patch('housekeep.commands.run.PipelineService') as pipeline:
        repos.return_value.discover.return_value = ["/repos/a", "/repos/b"]
        pipeline.return_value.process.side_effect = outcome()
        yield repos, pipeline


class TestRunCommand:
    """Tests for `housekeep run`."""

    def test_json_events(self, runner, run_env, tmp_path):
        result = runner.invoke(cli, ['run', str(tmp_path), '--json', '-p', '2'])

        assert result.exit_code == 0, result.output
        events = json_lines(result.output)
        types = [e['type'] for e in events]
        assert types[0] == "init"
        assert types[-1] == "done"
        assert types.count("item_result") == 2
        assert types.count("update") == 2
        assert sorted(e['name'] for e in events if e['type'] == "item_result") == ["a", "b"]

    def test_options_reach_work_items(self, runner, run_env, tmp_path):
        _, pipeline = run_env
        seen = []

        def process(item):
            seen.append(item)
            return WorkResult(item.repo_path, item.repo_name, True)

        pipeline.return_value.process.side_effect = process
        result = runner.invoke(cli, [
            'run', str(tmp_path),
            '--replace', '<v>1</v>=><v>2</v>',
            '--branch', 'housekeeping',
            '--bump', 'minor',
            '--no-warnings',
        ])

        assert result.exit_code == 0, result.output
        options = seen[0].options
        assert options.rules == (ReplacementRule("<v>1</v>", "<v>2</v>"),)
        assert options.target_branch == "housekeeping"
        assert options.bump_strategy.value == "minor"
        assert not options.check_warnings

    def test_rules_file(self, runner, run_env, tmp_path):
        _, pipeline = run_env
        seen = []
        pipeline.return_value.process.side_effect = lambda item: (
            seen.append(item) or WorkResult(item.repo_path, item.repo_name, True)
        )
        rules = tmp_path / "rules.yaml"
        rules.write_text("rules:\n  - search: old\n    replace: new\n")

        result = runner.invoke(cli, ['run', str(tmp_path), '--rules', str(rules)])

        assert result.exit_code == 0, result.output
        assert seen[0].options.rules == (ReplacementRule("old", "new"),)

    def test_bad_rules_file(self, runner, run_env, tmp_path):
        rules = tmp_path / "rules.yaml"
        rules.write_text("just a string\n")
        result = runner.invoke(cli, ['run', str(tmp_path), '--rules', str(rules)])
        assert result.exit_code == CONFIG_ERROR

    def test_malformed_replace_is_usage_error(self, runner, run_env, tmp_path):
        result = runner.invoke(cli, ['run', str(tmp_path), '--replace', 'no separator'])
        assert result.exit_code == 2

    def test_no_repositories(self, runner, run_env, tmp_path):
        repos, _ = run_env
        repos.return_value.discover.return_value = []
        result = runner.invoke(cli, ['run', str(tmp_path)])
        assert result.exit_code == NO_REPOS_FOUND

    def test_partial_failure(self, runner, run_env, tmp_path):
        _, pipeline = run_env
        pipeline.return_value.process.side_effect = outcome(failing=("b",))

        result = runner.invoke(cli, ['run', str(tmp_path), '--json'])

        assert result.exit_code == PARTIAL_SUCCESS
        error = [e for e in json_lines(result.output) if 'error' in e][0]
        assert error['succeeded'] == 1
        assert error['failed'] == 1

    def test_all_failed(self, runner, run_env, tmp_path):
        _, pipeline = run_env
        pipeline.return_value.process.side_effect = outcome(failing=("a", "b"))
        result = runner.invoke(cli, ['run', str(tmp_path)])
        assert result.exit_code == 1

    def test_pipeline_exception_becomes_failed_result(self, runner, run_env, tmp_path):
        _, pipeline = run_env

        def process(item):
            if item.repo_name == "a":
                raise RuntimeError("disk full")
            return WorkResult(item.repo_path, item.repo_name, True)

        pipeline.return_value.process.side_effect = process
        result = runner.invoke(cli, ['run', str(tmp_path), '--json'])

        assert result.exit_code == PARTIAL_SUCCESS
        failed = [e for e in json_lines(result.output)
                  if e.get('type') == "item_result" and not e['success']]
        assert failed[0]['lines'] == ["[ERROR] Unexpected error: disk full"]


class TestScanCommand:

    def test_scan(self, runner, tmp_path):
        with patch('housekeep.commands.scan.load_config', side_effect=get_default_config), \
                patch('housekeep.commands.scan.RepositoryService') as repos, \
                patch('housekeep.commands.scan.ScanService') as scans:
            repos.return_value.discover.return_value = ["/repos/a"]
            scans.return_value.scan_repo.side_effect = lambda path: WorkResult(
                path, "a", True, details={'todo_count': 3}
            )
            result = runner.invoke(cli, ['scan', str(tmp_path), '--json'])

        assert result.exit_code == 0, result.output
        item = [e for e in json_lines(result.output) if e['type'] == "item_result"][0]
        assert item['details'] == {'todo_count': 3}


class TestConfigCommand:
    """Tests for `housekeep config`."""

    @pytest.fixture
    def home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.delenv("HOUSEKEEP_CONFIG", raising=False)
        return tmp_path

    def test_show(self, runner):
        with patch('housekeep.commands.config.load_config', side_effect=get_default_config):
            result = runner.invoke(cli, ['config', 'show'])
        assert result.exit_code == 0
        assert json.loads(result.output)['general']['parallel'] == 4

    def test_path(self, runner, home):
        result = runner.invoke(cli, ['config', 'path'])
        data = json.loads(result.output)
        assert data['config_path'] == str(home / ".housekeep" / "config.json")
        assert data['exists'] is False

    def test_init_then_refuse_overwrite(self, runner, home):
        first = runner.invoke(cli, ['config', 'init', '--format', 'yaml'])
        assert first.exit_code == 0, first.output
        assert (home / ".housekeep" / "config.yaml").exists()

        second = runner.invoke(cli, ['config', 'init', '--format', 'yaml'])
        assert second.exit_code == CONFIG_ERROR

        forced = runner.invoke(cli, ['config', 'init', '--format', 'yaml', '--force'])
        assert forced.exit_code == 0


class TestExitCodes:

    @pytest.mark.parametrize("exc,expected", [
        (CommandError("boom"), GENERAL_ERROR),
        (CommandError("boom", exit_code=3), 3),
        (NoReposFoundError(), NO_REPOS_FOUND),
        (ConfigError("bad rules"), CONFIG_ERROR),
        (PartialSuccessError("1 of 2 failed", succeeded=1, failed=1), PARTIAL_SUCCESS),
        (KeyboardInterrupt(), INTERRUPTED),
        (RuntimeError("boom"), GENERAL_ERROR),
        (ValueError("boom"), GENERAL_ERROR),
    ])
    def test_exit_code_for(self, exc, expected):
        assert exit_code_for(exc) == expected

    def test_unexpected_error_exits_with_general_error(self, runner, run_env, tmp_path):
        repos, _ = run_env
        repos.return_value.discover.side_effect = PermissionError("denied")

        result = runner.invoke(cli, ['run', str(tmp_path), '--json'])

        assert result.exit_code == GENERAL_ERROR
        error = json_lines(result.output)[-1]
        assert error == {"error": "denied", "type": "PermissionError"}
