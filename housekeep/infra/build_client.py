"""
Build tool infrastructure for housekeep.

Runs the verification build (Maven by default) with deprecation reporting
enabled and hands back the combined output. Output is only ever scanned
line by line for warning keywords; no structured build output is parsed.
"""

import shutil
import subprocess
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)

DEFAULT_BUILD_COMMAND = (
    "mvn", "clean", "install", "-DskipTests", "-Dmaven.compiler.showDeprecation=true",
)
DEFAULT_WARNINGS_COMMAND = (
    "mvn", "clean", "compile", "-Dmaven.compiler.showDeprecation=true",
)
DEFAULT_WARNING_KEYWORDS = ("deprecation", "deprecated", "warning")
MAX_WARNING_LINES = 100


@dataclass(frozen=True)
class BuildOutput:
    """Combined output and exit status of one build run."""
    output: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class BuildClient:
    """
    Abstraction over the verification build tool.

    Example:
        client = BuildClient()
        result = client.build("/path/to/repo")
        if not result.ok:
            print(result.output)
    """

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        warnings_command: Optional[Sequence[str]] = None,
        timeout: Optional[int] = None
    ):
        """
        Initialize BuildClient.

        Args:
            command: Full verification build command
            warnings_command: Cheaper build used only to collect warnings
            timeout: Seconds before a build is abandoned (None = no limit)
        """
        self.command = list(command or DEFAULT_BUILD_COMMAND)
        self.warnings_command = list(warnings_command or DEFAULT_WARNINGS_COMMAND)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: dict) -> "BuildClient":
        build = config.get('build', {})
        return cls(
            command=build.get('command'),
            warnings_command=build.get('warnings_command'),
        )

    def _execute(self, cmd: List[str], path: str) -> BuildOutput:
        # Resolve through PATH so wrapper scripts such as mvn.cmd are found
        executable = shutil.which(cmd[0]) or cmd[0]
        try:
            result = subprocess.run(
                [executable, *cmd[1:]],
                cwd=path,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors='replace',
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired as e:
            logger.warning(f"Build timed out in {path}: {' '.join(cmd)}")
            output = e.output if isinstance(e.output, str) else ""
            return BuildOutput(output=output + f"\nBuild timed out after {self.timeout}s", returncode=-1)
        except OSError as e:
            logger.error(f"Build could not start in {path}: {' '.join(cmd)} - {e}")
            return BuildOutput(output=str(e), returncode=-1)
        return BuildOutput(output=result.stdout or "", returncode=result.returncode)

    def build(self, path: str) -> BuildOutput:
        """Run the full verification build."""
        return self._execute(self.command, path)

    def check_warnings(self, path: str) -> BuildOutput:
        """Run the warnings-only build."""
        return self._execute(self.warnings_command, path)


def extract_warnings(
    output: str,
    keywords: Iterable[str] = DEFAULT_WARNING_KEYWORDS,
    limit: int = MAX_WARNING_LINES
) -> List[str]:
    """
    Pick warning and deprecation lines out of build output.

    Matching is a case-insensitive substring test against the keywords.
    Lines are stripped, empty lines dropped, duplicates dropped keeping the
    first occurrence, and at most `limit` lines are returned.
    """
    keywords = [k.lower() for k in keywords]
    warnings: List[str] = []
    seen = set()

    for line in output.splitlines():
        lower = line.lower()
        if not any(k in lower for k in keywords):
            continue
        line = line.strip()
        if not line or line in seen:
            continue
        seen.add(line)
        warnings.append(line)
        if len(warnings) >= limit:
            break

    return warnings
