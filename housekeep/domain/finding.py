"""
Scanner finding domain objects for housekeep.

Vulnerability scanners are external collaborators. Whatever their native
output looks like, an adapter normalizes it into Findings before it reaches
the core.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Finding:
    """A single normalized scanner finding."""
    id: str
    severity: str = "unknown"
    package: str = ""
    version: str = ""
    fixed_version: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Finding":
        """Build from the normalized mapping (camelCase fixedVersion accepted)."""
        return cls(
            id=str(data.get('id', '')),
            severity=str(data.get('severity', 'unknown')).lower(),
            package=str(data.get('package', '')),
            version=str(data.get('version', '')),
            fixed_version=str(data.get('fixedVersion', data.get('fixed_version', '')) or ''),
            description=str(data.get('description', '')),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            'id': self.id,
            'severity': self.severity,
            'package': self.package,
            'version': self.version,
            'fixedVersion': self.fixed_version,
            'description': self.description,
        }


@dataclass(frozen=True)
class ScanReport:
    """Findings from one scanner run against one repository."""
    scanner: str
    findings: List[Finding] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def severity_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for finding in self.findings:
            counts[finding.severity] = counts.get(finding.severity, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            'scanner': self.scanner,
            'findings': [f.to_dict() for f in self.findings],
        }
        if self.error:
            result['error'] = self.error
        return result
