"""
Auto-deploy branch and tag domain objects for autodeploy.

Tag names are a pure function of the branch, the branch head's commit time
and the refs being released:

    <major>.<minor>.<YYYYMMDDHHmm>+<upstream-ref:11>[.<packager-ref:11>]

The commit time (not wall-clock time) keeps the name stable when a step is
re-run against the same commit before its tag exists.
"""

import re
from dataclasses import dataclass
from datetime import datetime, date
from enum import Enum
from typing import Mapping, Optional, Union

from .version import Version


BRANCH_FORMAT = '{major}-{minor}-auto-deploy-{date}'
BRANCH_REGEX = re.compile(r'\A(?:security/)?\d+-\d+-auto-deploy-\d+\Z')

TIMESTAMP_FORMAT = '%Y%m%d%H%M'

# Refs are truncated to this length in tag names
REF_LENGTH = 11


@dataclass(frozen=True)
class AutoDeployBranch:
    """
    A time-boxed branch advanced to the latest qualifying upstream commit.

    Examples:
        AutoDeployBranch.parse("12-9-auto-deploy-20200226")
            -> AutoDeployBranch(name="12-9-auto-deploy-20200226", major=12, minor=9)
    """

    name: str
    major: int
    minor: int

    @classmethod
    def parse(cls, name: str) -> 'AutoDeployBranch':
        """
        Extract the version prefix from a branch name.

        Raises:
            ValueError: If the name does not start with two numeric segments
        """
        parts = name.split('-', 2)
        if len(parts) < 3 or not parts[0].isdigit() or not parts[1].isdigit():
            raise ValueError(f"Unable to determine version from {name}")

        return cls(name=name, major=int(parts[0]), minor=int(parts[1]))

    @classmethod
    def name_for(cls, version: Version, on: Optional[date] = None) -> 'AutoDeployBranch':
        """Build the branch for a milestone version, dated today by default."""
        on = on or datetime.now()
        name = BRANCH_FORMAT.format(
            major=version.major,
            minor=version.minor,
            date=on.strftime('%Y%m%d'),
        )
        return cls(name=name, major=version.major, minor=version.minor)

    @property
    def version(self) -> Version:
        return Version(self.major, self.minor)

    @property
    def is_auto_deploy(self) -> bool:
        return BRANCH_REGEX.match(self.name) is not None

    def __str__(self) -> str:
        return self.name


def tag_timestamp(committed_at: Union[str, datetime]) -> str:
    """Render a commit time as YYYYMMDDHHmm, keeping its own UTC offset."""
    if isinstance(committed_at, str):
        committed_at = datetime.fromisoformat(committed_at)
    return committed_at.strftime(TIMESTAMP_FORMAT)


def build_tag_name(
    branch: AutoDeployBranch,
    committed_at: Union[str, datetime],
    upstream_ref: str,
    packager_ref: Optional[str] = None,
) -> str:
    """Derive the deterministic tag name for a packager release."""
    name = (
        f"{branch.major}.{branch.minor}.{tag_timestamp(committed_at)}"
        f"+{upstream_ref[:REF_LENGTH]}"
    )
    if packager_ref:
        name += f".{packager_ref[:REF_LENGTH]}"
    return name


def build_tag_message(label: str, tag_name: str, versions: Mapping[str, str]) -> str:
    """First line names the tag, then one `component: version` line per entry."""
    lines = [f"Auto-deploy {label} {tag_name}", ""]
    lines.extend(f"{component}: {version}" for component, version in versions.items())
    return "\n".join(lines)


class TagState(Enum):
    """States of the tagging state machine."""
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    PENDING_TAG = "pending_tag"
    TAG_CREATED = "tag_created"
    DEPENDENT_TAG_CREATED = "dependent_tag_created"
    DEPENDENT_TAG_FAILED = "dependent_tag_failed"
    DRY_RUN = "dry_run"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def tagged(self) -> bool:
        """True once the primary tag stands."""
        return self in (
            TagState.TAG_CREATED,
            TagState.DEPENDENT_TAG_CREATED,
            TagState.DEPENDENT_TAG_FAILED,
        )


TERMINAL_STATES = frozenset({
    TagState.SKIPPED,
    TagState.TAG_CREATED,
    TagState.DEPENDENT_TAG_CREATED,
    TagState.DEPENDENT_TAG_FAILED,
    TagState.DRY_RUN,
    TagState.FAILED,
})


@dataclass(frozen=True)
class TagSpec:
    """A tag about to be created."""
    name: str
    message: str
    target: str

    def to_dict(self) -> dict:
        return {'name': self.name, 'message': self.message, 'target': self.target}
