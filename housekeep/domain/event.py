"""
Progress event domain object for housekeep.

The orchestrator emits a stream of ProgressEvents for one run:
- init: total number of work items
- item_result: one repository finished (completion order)
- update: completed/total counts and an estimated time remaining
- done: total elapsed time, always the last event

Events serialize to single-line JSON for streaming output.
"""

from dataclasses import dataclass, field
from typing import Any, Dict
import json

from .work import WorkResult

INIT = "init"
UPDATE = "update"
ITEM_RESULT = "item_result"
DONE = "done"

EVENT_TYPES = (INIT, UPDATE, ITEM_RESULT, DONE)


@dataclass(frozen=True)
class ProgressEvent:
    """
    One event in a run's progress stream.

    Attributes:
        type: One of init, update, item_result, done
        data: Type-specific payload
    """

    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def init(cls, total: int) -> "ProgressEvent":
        return cls(INIT, {'total': total})

    @classmethod
    def update(cls, completed: int, total: int, eta_seconds: float) -> "ProgressEvent":
        return cls(UPDATE, {
            'completed': completed,
            'total': total,
            'eta_seconds': round(eta_seconds, 1),
        })

    @classmethod
    def item_result(cls, result: WorkResult) -> "ProgressEvent":
        return cls(ITEM_RESULT, {'result': result})

    @classmethod
    def done(cls, elapsed_seconds: float) -> "ProgressEvent":
        return cls(DONE, {'elapsed_seconds': round(elapsed_seconds, 1)})

    @property
    def result(self) -> WorkResult:
        """The WorkResult carried by an item_result event."""
        return self.data['result']

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        if self.type == ITEM_RESULT:
            return {'type': self.type, **self.result.to_dict()}
        return {'type': self.type, **self.data}

    def to_jsonl(self) -> str:
        """Convert to single-line JSON for streaming output."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def __str__(self) -> str:
        if self.type == ITEM_RESULT:
            status = "ok" if self.result.success else "failed"
            return f"{self.type}: {self.result.repo_name} ({status}, {self.result.duration:.1f}s)"
        return f"{self.type}: {self.data}"
