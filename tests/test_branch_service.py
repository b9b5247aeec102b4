"""Tests for the branch state machine."""

import os
import shutil
import subprocess
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from housekeep.domain.work import WorkOptions
from housekeep.infra.git_client import GitClient
from housekeep.services.branch_service import BranchService, first_day_of_previous_month
from housekeep.sink import LogSink

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestFirstDayOfPreviousMonth:

    def test_mid_year(self):
        assert first_day_of_previous_month(NOW) == datetime(2026, 9, 1, tzinfo=timezone.utc)

    def test_january_wraps_to_december(self):
        now = datetime(2026, 1, 15, 8, 30)
        assert first_day_of_previous_month(now) == datetime(2025, 12, 1)

    def test_end_of_month(self):
        now = datetime(2026, 3, 31, 23, 59)
        assert first_day_of_previous_month(now) == datetime(2026, 2, 1)


@pytest.fixture
def git():
    client = MagicMock(spec=GitClient)
    client.default_branch.return_value = "main"
    client.checkout.return_value = ("", None)
    client.fetch.return_value = ("", None)
    client.pull.return_value = ("", None)
    client.create_branch.return_value = ("", None)
    client.delete_branch.return_value = ("", None)
    client.branch_exists.return_value = False
    client.has_upstream.return_value = False
    return client


@pytest.fixture
def service(git):
    return BranchService(git, now=lambda: NOW)


class TestDefaultBranch:
    """Transitions on the default branch."""

    def test_stays_on_default_without_target(self, service, git):
        sink = LogSink("repo")
        assert service.prepare("/repo", WorkOptions(), sink)

        git.checkout.assert_called_once_with("/repo", "main")
        git.fetch.assert_called_once_with("/repo", prune=True)
        git.pull.assert_called_once_with("/repo")
        git.create_branch.assert_not_called()
        assert sink.lines()[-1] == "[INFO] Staying on default branch 'main'."

    def test_checkout_failure_is_fatal(self, service, git):
        git.checkout.return_value = ("", "exit status 1: error")
        sink = LogSink("repo")

        assert not service.prepare("/repo", WorkOptions(target_branch="feature"), sink)
        git.pull.assert_not_called()
        git.create_branch.assert_not_called()
        assert sink.has_errors

    def test_fetch_failure_is_a_warning(self, service, git):
        git.fetch.return_value = ("", "exit status 128: no remote")
        sink = LogSink("repo")

        assert service.prepare("/repo", WorkOptions(), sink)
        assert sink.lines()[0].startswith("[WARNING] Fetch failed")
        assert not sink.has_errors

    def test_pull_failure_is_fatal(self, service, git):
        git.pull.return_value = ("", "exit status 1: conflict")
        sink = LogSink("repo")

        assert not service.prepare("/repo", WorkOptions(target_branch="feature"), sink)
        git.create_branch.assert_not_called()

    def test_unknown_default_branch_is_fatal(self, service, git):
        git.default_branch.return_value = None
        assert not service.prepare("/repo", WorkOptions(), LogSink("repo"))
        git.checkout.assert_not_called()


class TestMaintenanceBranch:
    """Staleness eviction of the maintenance branch."""

    def options(self):
        return WorkOptions(target_branch="housekeeping", maintenance_branch="housekeeping")

    def test_stale_branch_is_deleted_and_recreated(self, service, git):
        git.branch_exists.side_effect = [True, False]
        git.last_commit_date.return_value = datetime(2026, 8, 31, 23, 0, tzinfo=timezone.utc)
        sink = LogSink("repo")

        assert service.prepare("/repo", self.options(), sink)
        git.delete_branch.assert_called_once_with("/repo", "housekeeping")
        git.create_branch.assert_called_once_with("/repo", "housekeeping")
        assert any("deleted" in line for line in sink.lines())

    def test_recent_branch_is_reused(self, service, git):
        git.branch_exists.return_value = True
        git.last_commit_date.return_value = NOW - timedelta(days=1)

        assert service.prepare("/repo", self.options(), LogSink("repo"))
        git.delete_branch.assert_not_called()
        git.create_branch.assert_not_called()
        git.checkout.assert_called_with("/repo", "housekeeping")

    def test_commit_on_threshold_is_kept(self, service, git):
        git.branch_exists.return_value = True
        git.last_commit_date.return_value = datetime(2026, 9, 1, tzinfo=timezone.utc)

        assert service.prepare("/repo", self.options(), LogSink("repo"))
        git.delete_branch.assert_not_called()

    def test_unreadable_date_keeps_branch(self, service, git):
        git.branch_exists.return_value = True
        git.last_commit_date.return_value = None
        sink = LogSink("repo")

        assert service.prepare("/repo", self.options(), sink)
        git.delete_branch.assert_not_called()
        assert any(line.startswith("[WARNING] Could not read") for line in sink.lines())

    def test_missing_branch_is_created(self, service, git):
        assert service.prepare("/repo", self.options(), LogSink("repo"))
        git.last_commit_date.assert_not_called()
        git.create_branch.assert_called_once_with("/repo", "housekeeping")


class TestNamedBranch:
    """Named branches are reused or created, never evicted."""

    def test_existing_branch_fast_forward_failure_is_informational(self, service, git):
        git.branch_exists.return_value = True
        git.has_upstream.return_value = True
        git.pull.side_effect = [("", None), ("", "exit status 128: Not possible to fast-forward")]
        sink = LogSink("repo")

        assert service.prepare("/repo", WorkOptions(target_branch="feature"), sink)
        git.pull.assert_called_with("/repo", ff_only=True)
        assert sink.lines()[-1].startswith("[INFO] Could not fast-forward 'feature'")
        assert not sink.has_errors
        git.last_commit_date.assert_not_called()

    def test_local_only_branch_skips_pull(self, service, git):
        git.branch_exists.return_value = True
        sink = LogSink("repo")

        assert service.prepare("/repo", WorkOptions(target_branch="feature"), sink)
        assert git.pull.call_count == 1
        assert "no upstream" in sink.lines()[-1]

    def test_checkout_of_existing_branch_failure_is_fatal(self, service, git):
        git.branch_exists.return_value = True
        git.checkout.side_effect = [("", None), ("", "exit status 1: local changes")]

        assert not service.prepare("/repo", WorkOptions(target_branch="feature"), LogSink("repo"))

    def test_creation_failure_is_fatal(self, service, git):
        git.create_branch.return_value = ("", "exit status 128: invalid ref")
        sink = LogSink("repo")

        assert not service.prepare("/repo", WorkOptions(target_branch="bad..name"), sink)
        assert sink.has_errors


def _git(cwd, *args, date=None):
    env = dict(os.environ)
    env.update({
        'GIT_AUTHOR_NAME': 'Test',
        'GIT_AUTHOR_EMAIL': 'test@example.com',
        'GIT_COMMITTER_NAME': 'Test',
        'GIT_COMMITTER_EMAIL': 'test@example.com',
    })
    if date:
        env['GIT_AUTHOR_DATE'] = date
        env['GIT_COMMITTER_DATE'] = date
    subprocess.run(['git', *args], cwd=cwd, env=env, check=True, capture_output=True)


@pytest.mark.integration
@pytest.mark.skipif(shutil.which('git') is None, reason="git not installed")
class TestRealRepository:
    """Staleness eviction against a real repository with an origin."""

    @pytest.fixture
    def work(self, tmp_path):
        origin = tmp_path / "origin.git"
        work = tmp_path / "work"
        _git(tmp_path, 'init', '--bare', str(origin))
        _git(tmp_path, 'init', str(work))
        _git(work, 'symbolic-ref', 'HEAD', 'refs/heads/main')
        (work / "README.md").write_text("demo\n")
        _git(work, 'add', 'README.md')
        _git(work, 'commit', '-m', 'Initial commit')
        _git(work, 'remote', 'add', 'origin', str(origin))
        _git(work, 'push', '-u', 'origin', 'main')
        return work

    def _add_branch(self, work, date):
        _git(work, 'checkout', '-b', 'housekeeping')
        (work / "CHANGES.md").write_text("change\n")
        _git(work, 'add', 'CHANGES.md')
        _git(work, 'commit', '-m', 'Housekeeping', date=date)
        _git(work, 'checkout', 'main')

    def test_stale_branch_recreated_from_default_tip(self, work):
        self._add_branch(work, "2020-01-01T00:00:00+00:00")
        client = GitClient()
        options = WorkOptions(target_branch="housekeeping", maintenance_branch="housekeeping")

        assert BranchService(client).prepare(str(work), options, LogSink("work"))
        assert client.current_branch(str(work)) == "housekeeping"
        assert not (work / "CHANGES.md").exists()
        main_head = client._query(str(work), "rev-parse", "main")
        assert client.head_commit(str(work)) == main_head

    def test_recent_branch_reused_unchanged(self, work):
        yesterday = (datetime.now().astimezone() - timedelta(days=1)).replace(microsecond=0).isoformat()
        self._add_branch(work, yesterday)
        client = GitClient()
        before = client._query(str(work), "rev-parse", "housekeeping")
        options = WorkOptions(target_branch="housekeeping", maintenance_branch="housekeeping")

        assert BranchService(client).prepare(str(work), options, LogSink("work"))
        assert client.current_branch(str(work)) == "housekeeping"
        assert client.head_commit(str(work)) == before
        assert (work / "CHANGES.md").exists()
