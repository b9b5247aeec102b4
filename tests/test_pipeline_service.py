"""Tests for the per-repository mutation pipeline."""

from unittest.mock import MagicMock

import pytest

from housekeep.config import get_default_config
from housekeep.domain.work import (
    ReplacementRule,
    ReplacementScope,
    StructuralEdit,
    WorkItem,
    WorkOptions,
)
from housekeep.infra.build_client import BuildClient, BuildOutput
from housekeep.infra.git_client import GitClient
from housekeep.services.branch_service import BranchService
from housekeep.services.orchestrator import RetryPolicy
from housekeep.services.pipeline_service import PipelineService, build_items

POM = """<project>
    <parent>
        <version>1.0.0</version>
    </parent>
    <version>2.3.0</version>
    <properties>
        <lib.version>OLD</lib.version>
    </properties>
</project>
"""

BUILD_LOG = """[INFO] Scanning for projects...
[WARNING] Foo.java uses or overrides a deprecated API.
[WARNING] Foo.java uses or overrides a deprecated API.
[INFO] BUILD SUCCESS
"""


@pytest.fixture
def repo(tmp_path):
    path = tmp_path / "demo"
    path.mkdir()
    (path / "pom.xml").write_text(POM)
    return path


@pytest.fixture
def git():
    client = MagicMock(spec=GitClient)
    client.latest_tag.return_value = "v2.3.0"
    client.add.return_value = ("", None)
    client.commit.return_value = ("", None)
    return client


@pytest.fixture
def build():
    client = MagicMock(spec=BuildClient)
    client.build.return_value = BuildOutput(BUILD_LOG, 0)
    client.check_warnings.return_value = BuildOutput(BUILD_LOG, 0)
    return client


@pytest.fixture
def branches():
    service = MagicMock(spec=BranchService)
    service.prepare.return_value = True
    return service


@pytest.fixture
def pipeline(git, build, branches):
    return PipelineService(
        config=get_default_config(),
        git_client=git,
        build_client=build,
        retry=RetryPolicy(attempts=2, sleep=MagicMock()),
        branch_service=branches,
    )


def commit_messages(git):
    return [c.args[1] for c in git.commit.call_args_list]


class TestVersionFile:
    """Step 2: version file reconciliation."""

    def test_bumps_and_commits_version(self, pipeline, repo, git):
        result = pipeline.process(WorkItem(str(repo), WorkOptions(check_warnings=False)))

        assert result.success
        assert "<version>2.3.1</version>" in (repo / "pom.xml").read_text()
        assert "<version>1.0.0</version>" in (repo / "pom.xml").read_text()
        assert commit_messages(git) == ["Update pom.xml"]
        assert "[INFO] Version in pom.xml updated (patch): 2.3.0 -> 2.3.1" in result.lines

    def test_no_tags_skips_bump(self, pipeline, repo, git):
        git.latest_tag.return_value = None
        result = pipeline.process(WorkItem(str(repo), WorkOptions(check_warnings=False)))

        assert (repo / "pom.xml").read_text() == POM
        git.commit.assert_not_called()
        assert "[INFO] No tags found, skipping version reconciliation." in result.lines

    def test_parent_version_and_rules_share_one_commit(self, pipeline, repo, git):
        options = WorkOptions(
            parent_version="1.1.0",
            rules=(ReplacementRule("<lib.version>OLD</lib.version>",
                                   "<lib.version>NEW</lib.version>"),),
            scope=ReplacementScope.VERSION_FILE_ONLY,
            check_warnings=False,
        )
        pipeline.process(WorkItem(str(repo), options))

        content = (repo / "pom.xml").read_text()
        assert "<version>1.1.0</version>" in content
        assert "<lib.version>NEW</lib.version>" in content
        assert commit_messages(git) == ["Update pom.xml"]

    def test_rules_run_before_parent_version(self, pipeline, repo, git):
        git.latest_tag.return_value = None
        options = WorkOptions(
            parent_version="1.1.0",
            rules=(ReplacementRule("<version>1.0.0</version>", "<version>1.0.5</version>"),),
            scope=ReplacementScope.VERSION_FILE_ONLY,
            check_warnings=False,
        )
        result = pipeline.process(WorkItem(str(repo), options))

        assert "[INFO] Parent version updated: 1.0.5 -> 1.1.0" in result.lines
        assert "<version>1.1.0</version>" in (repo / "pom.xml").read_text()

    def test_crlf_line_endings_are_preserved(self, pipeline, repo, git):
        git.latest_tag.return_value = "v1.2.3"
        (repo / "pom.xml").write_bytes(
            b"<project>\r\n  <version>1.2.3</version>\r\n  <name>x</name>\r\n</project>\r\n"
        )
        pipeline.process(WorkItem(str(repo), WorkOptions(check_warnings=False)))

        assert (repo / "pom.xml").read_bytes() == (
            b"<project>\r\n  <version>1.2.4</version>\r\n  <name>x</name>\r\n</project>\r\n"
        )

    def test_undecodable_version_file_does_not_stop_later_steps(self, pipeline, repo, git, build):
        (repo / "pom.xml").write_bytes("<project><name>Müller</name></project>".encode("latin-1"))
        (repo / "README.md").write_text("some old text here\n")
        options = WorkOptions(rules=(ReplacementRule("old text", "new text"),))

        result = pipeline.process(WorkItem(str(repo), options))

        assert not result.success
        assert any(line.startswith("[ERROR] Could not read pom.xml") for line in result.lines)
        assert (repo / "README.md").read_text() == "some new text here\n"
        assert commit_messages(git) == ["Update README.md via project-wide replacement"]
        build.build.assert_called_once_with(str(repo))

    def test_missing_version_file(self, pipeline, tmp_path, git):
        result = pipeline.process(WorkItem(str(tmp_path), WorkOptions(check_warnings=False)))
        assert result.success
        assert "[INFO] No pom.xml found, skipping version update." in result.lines
        git.latest_tag.assert_not_called()


class TestCiSettings:
    """Step 3: CI settings structural edits."""

    def test_edit_is_committed(self, pipeline, repo, git):
        (repo / "ci-settings.xml").write_text("<server><id>old-repo</id></server>")
        git.latest_tag.return_value = None
        options = WorkOptions(
            ci_settings_edits=(StructuralEdit("<id>old-repo</id>", "<id>new-repo</id>"),),
            check_warnings=False,
        )
        pipeline.process(WorkItem(str(repo), options))

        assert (repo / "ci-settings.xml").read_text() == "<server><id>new-repo</id></server>"
        assert commit_messages(git) == ["Update ci-settings.xml"]

    def test_crlf_line_endings_are_preserved(self, pipeline, repo, git):
        (repo / "ci-settings.xml").write_bytes(b"<server>\r\n<id>old-repo</id>\r\n</server>\r\n")
        git.latest_tag.return_value = None
        options = WorkOptions(
            ci_settings_edits=(StructuralEdit("<id>old-repo</id>", "<id>new-repo</id>"),),
            check_warnings=False,
        )
        pipeline.process(WorkItem(str(repo), options))

        assert (repo / "ci-settings.xml").read_bytes() == (
            b"<server>\r\n<id>new-repo</id>\r\n</server>\r\n"
        )

    def test_unchanged_file_is_not_committed(self, pipeline, repo, git):
        (repo / "ci-settings.xml").write_text("<server><id>new-repo</id></server>")
        git.latest_tag.return_value = None
        options = WorkOptions(
            ci_settings_edits=(StructuralEdit("<id>old-repo</id>", "<id>new-repo</id>"),),
            check_warnings=False,
        )
        pipeline.process(WorkItem(str(repo), options))
        git.commit.assert_not_called()


class TestTreeAndBuild:
    """Steps 4-6: tree-wide rules, verification build, warnings."""

    def test_tree_change_triggers_build(self, pipeline, repo, git, build):
        (repo / "app.properties").write_text("lib.version=OLD\n")
        options = WorkOptions(rules=(ReplacementRule("OLD", "NEW"),))

        result = pipeline.process(WorkItem(str(repo), options))

        assert result.success
        assert commit_messages(git) == [
            "Update pom.xml",
            "Update app.properties via project-wide replacement",
        ]
        build.build.assert_called_once_with(str(repo))
        build.check_warnings.assert_not_called()
        assert result.diagnostics == "[WARNING] Foo.java uses or overrides a deprecated API."

    def test_version_file_excluded_from_tree_scope(self, pipeline, repo, git):
        git.latest_tag.return_value = None
        options = WorkOptions(
            rules=(ReplacementRule("OLD", "NEW"),),
            scope=ReplacementScope.EXCLUDE_VERSION_FILE,
            check_warnings=False,
        )
        pipeline.process(WorkItem(str(repo), options))

        assert (repo / "pom.xml").read_text() == POM
        git.commit.assert_not_called()

    def test_failed_build_is_retried_then_fails_item(self, pipeline, repo, build):
        build.build.return_value = BuildOutput("[ERROR] COMPILATION ERROR", 1)
        result = pipeline.process(WorkItem(str(repo), WorkOptions(verify=True)))

        assert not result.success
        assert build.build.call_count == 2
        assert any(line.startswith("[ERROR] Verification build failed") for line in result.lines)

    def test_flaky_build_recovers(self, pipeline, repo, build):
        build.build.side_effect = [BuildOutput("cold cache", 1), BuildOutput(BUILD_LOG, 0)]
        result = pipeline.process(WorkItem(str(repo), WorkOptions(verify=True)))

        assert result.success
        assert build.build.call_count == 2

    def test_warnings_only_build_when_nothing_changed(self, pipeline, repo, build):
        result = pipeline.process(WorkItem(str(repo), WorkOptions()))

        build.build.assert_not_called()
        build.check_warnings.assert_called_once_with(str(repo))
        assert "deprecated API" in result.diagnostics

    def test_no_build_at_all(self, pipeline, repo, build):
        result = pipeline.process(WorkItem(str(repo), WorkOptions(check_warnings=False)))

        build.build.assert_not_called()
        build.check_warnings.assert_not_called()
        assert result.diagnostics == ""


class TestFailures:

    def test_branch_failure_short_circuits(self, pipeline, repo, git, build, branches):
        def fail(path, options, sink):
            sink.error("Checkout of 'main' failed")
            return False
        branches.prepare.side_effect = fail

        result = pipeline.process(WorkItem(str(repo), WorkOptions(verify=True)))

        assert not result.success
        assert result.lines == ("[ERROR] Checkout of 'main' failed",)
        git.latest_tag.assert_not_called()
        build.build.assert_not_called()

    def test_unexpected_exception_is_captured(self, pipeline, repo, branches):
        branches.prepare.side_effect = RuntimeError("disk on fire")

        result = pipeline.process(WorkItem(str(repo)))

        assert not result.success
        assert result.lines[-1] == "[ERROR] Unexpected error: disk on fire"
        assert result.repo_name == "demo"

    def test_duration_is_measured(self, git, build, branches, repo):
        ticks = iter([10.0, 12.5])
        pipeline = PipelineService(
            config=get_default_config(), git_client=git, build_client=build,
            retry=RetryPolicy(sleep=MagicMock()), branch_service=branches,
            clock=lambda: next(ticks),
        )
        result = pipeline.process(WorkItem(str(repo), WorkOptions(check_warnings=False)))
        assert result.duration == 2.5


def test_build_items_resolves_paths(tmp_path):
    options = WorkOptions(verify=True)
    items = build_items([str(tmp_path / "a"), str(tmp_path / "b")], options)
    assert [i.repo_name for i in items] == ["a", "b"]
    assert all(i.options is options for i in items)
