"""
Operation result domain objects for autodeploy.

Provides standardized result types for the mutating steps of the pipeline
(propagating versions, tagging) and for a batch over several packagers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple

from .tag import TagState


class OperationStatus(Enum):
    """Status of an individual operation."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    DRY_RUN = "dry_run"


@dataclass
class OperationDetail:
    """
    Details of a single operation on one repository.

    Used to track what happened to each packager during a batch.
    """
    project: str
    branch: str
    status: OperationStatus
    action: str  # e.g., "updated", "unchanged", "would_update", "tagged"
    message: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'project': self.project,
            'branch': self.branch,
            'status': self.status.value,
            'action': self.action,
        }
        if self.message:
            result['message'] = self.message
        if self.error:
            result['error'] = self.error
        if self.metadata:
            result.update(self.metadata)
        return result


@dataclass
class PropagationResult(OperationDetail):
    """Result of committing a version map to a packager."""
    commit: Optional[str] = None
    changed_keys: List[str] = field(default_factory=list)

    @property
    def advanced(self) -> bool:
        """True if a commit landed on the branch."""
        return self.status == OperationStatus.SUCCESS and self.commit is not None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.commit:
            result['commit'] = self.commit
        if self.changed_keys:
            result['changed_keys'] = self.changed_keys
        return result


@dataclass
class TaggingResult(OperationDetail):
    """Result of running the tagging state machine."""
    state: TagState = TagState.UNCHANGED
    tag_name: Optional[str] = None
    target: Optional[str] = None
    transitions: Tuple[TagState, ...] = ()  # states passed through, first to last

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['state'] = self.state.value
        if self.transitions:
            result['transitions'] = [state.value for state in self.transitions]
        if self.tag_name:
            result['tag'] = self.tag_name
        if self.target:
            result['target'] = self.target
        return result


@dataclass
class PipelineResult(OperationDetail):
    """Outcome of resolve -> detect -> propagate -> tag for one packager."""
    propagation: Optional[PropagationResult] = None
    tagging: Optional[TaggingResult] = None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.propagation:
            result['propagation'] = self.propagation.to_dict()
        if self.tagging:
            result['tagging'] = self.tagging.to_dict()
        return result


@dataclass
class OperationSummary:
    """
    Summary of a batch across multiple packagers.

    Collects statistics and details from each packager's pipeline.
    """
    operation: str  # e.g., "auto_deploy", "create_branches"
    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    dry_run: bool = False
    details: List[OperationDetail] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0

    @property
    def partial(self) -> bool:
        """True if some packagers failed and others did not."""
        return self.failed > 0 and (self.successful + self.skipped) > 0

    def add_detail(self, detail: OperationDetail) -> None:
        """Add an operation detail and update counts."""
        self.details.append(detail)
        self.total += 1

        if detail.status == OperationStatus.SUCCESS:
            self.successful += 1
        elif detail.status == OperationStatus.SKIPPED:
            self.skipped += 1
        elif detail.status == OperationStatus.FAILED:
            self.failed += 1
            if detail.error:
                self.errors.append(f"{detail.project}: {detail.error}")
        elif detail.status == OperationStatus.DRY_RUN:
            self.successful += 1  # Count dry-run as successful

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'operation': self.operation,
            'total': self.total,
            'successful': self.successful,
            'skipped': self.skipped,
            'failed': self.failed,
            'dry_run': self.dry_run,
            'errors': self.errors,
        }
