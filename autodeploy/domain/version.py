"""
Version value object for autodeploy.

A Version is parsed once from any of its string views and never mutated:

    Version.parse("8.3.5-rc2-ee")      # standard grammar
    Version.parse("8.3.5+rc2.ee.0")    # packager grammar
    Version.parse("v8.3.5")            # tag view
    Version.parse("8.3.5-rc2.ee.0")    # container view

Equality and hashing ignore the edition: ``8.3.5`` equals ``8.3.5-ee``.
Routing code that cares about the edition must compare ``edition`` itself.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from functools import total_ordering
from typing import Callable, Optional, Tuple

from ..errors import VersionParseError


class Edition(Enum):
    """Product edition encoded in a version string."""
    COMMUNITY = "ce"
    ENTERPRISE = "ee"


STANDARD_REGEX = re.compile(
    r"""
    \Av?(?P<major>\d+)
    \.(?P<minor>\d+)
    (?:\.(?P<patch>\d+))?
    (?:-rc(?P<rc>\d+))?
    (?P<ee>-ee)?\Z
    """,
    re.VERBOSE,
)

# `+` in the packager view, `-` in the container view
PACKAGER_REGEX = re.compile(
    r"""
    \A(?P<major>\d+)
    \.(?P<minor>\d+)
    \.(?P<patch>\d+)
    [+-]
    (?:rc(?P<rc>\d+)\.)?
    (?P<edition>ce|ee)
    (?:\.(?P<build>\d+))?\Z
    """,
    re.VERBOSE,
)

STABLE_BRANCH_REGEX = re.compile(r"\A(?P<major>\d+)-(?P<minor>\d+)-stable(?P<ee>-ee)?\Z")

# Returns the version preceding the given one when it can't be derived
# arithmetically (e.g. the last minor of the previous major).
HistoryLookup = Callable[['Version'], Optional['Version']]


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """
    Parsed product version.

    Attributes:
        major: Major version number
        minor: Minor version number
        patch: Patch number, 0 when the input had none
        rc: Release candidate number, None for a finalized version
        edition: Community (default) or Enterprise
    """

    major: int
    minor: int
    patch: int = 0
    rc: Optional[int] = None
    edition: Edition = Edition.COMMUNITY

    def __post_init__(self):
        for name in ('major', 'minor', 'patch'):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if self.rc is not None and (not isinstance(self.rc, int) or self.rc < 0):
            raise ValueError(f"rc must be a non-negative integer, got {self.rc!r}")

    @classmethod
    def parse(cls, raw: str) -> 'Version':
        """
        Parse a version string in the standard or packager grammar.

        Input without a patch digit is normalized to patch 0. A non-RC input
        normalized this way loses its ``-ee`` suffix (``"8.3-ee"`` becomes
        ``8.3.0``), while an RC keeps it (``"8.3-rc1-ee"`` becomes
        ``8.3.0-rc1-ee``).

        Raises:
            VersionParseError: If raw matches neither grammar
        """
        if not isinstance(raw, str):
            raise VersionParseError(repr(raw))

        text = raw.strip()

        match = STANDARD_REGEX.match(text)
        if match:
            rc = int(match.group('rc')) if match.group('rc') is not None else None
            edition = Edition.ENTERPRISE if match.group('ee') else Edition.COMMUNITY
            patch = match.group('patch')

            if patch is None and rc is None:
                edition = Edition.COMMUNITY

            return cls(
                major=int(match.group('major')),
                minor=int(match.group('minor')),
                patch=int(patch) if patch is not None else 0,
                rc=rc,
                edition=edition,
            )

        match = PACKAGER_REGEX.match(text)
        if match:
            return cls(
                major=int(match.group('major')),
                minor=int(match.group('minor')),
                patch=int(match.group('patch')),
                rc=int(match.group('rc')) if match.group('rc') is not None else None,
                edition=Edition(match.group('edition')),
            )

        raise VersionParseError(raw)

    @classmethod
    def is_valid(cls, raw: str) -> bool:
        """Check whether raw parses, without raising."""
        try:
            cls.parse(raw)
        except VersionParseError:
            return False
        return True

    @classmethod
    def from_stable_branch(cls, name: str) -> 'Version':
        """Build the .0 version of a stable branch such as ``8-3-stable-ee``."""
        match = STABLE_BRANCH_REGEX.match(name.strip())
        if not match:
            raise VersionParseError(name)

        return cls(
            major=int(match.group('major')),
            minor=int(match.group('minor')),
            edition=Edition.ENTERPRISE if match.group('ee') else Edition.COMMUNITY,
        )

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    def _key(self) -> Tuple[int, int, int, bool, int]:
        # A finalized version sorts after every RC of the same patch
        return (self.major, self.minor, self.patch, self.rc is None, self.rc or 0)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    # -------------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------------

    @property
    def is_rc(self) -> bool:
        return self.rc is not None

    @property
    def is_ee(self) -> bool:
        return self.edition is Edition.ENTERPRISE

    @property
    def is_monthly(self) -> bool:
        """A monthly release is the .0 patch of a minor, not an RC."""
        return self.patch == 0 and not self.is_rc

    @property
    def is_patch(self) -> bool:
        return self.patch > 0

    @property
    def is_release(self) -> bool:
        """A finalized community version."""
        return not self.is_rc and not self.is_ee

    @property
    def milestone_name(self) -> str:
        return self.to_minor()

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def __str__(self) -> str:
        text = self.to_patch()
        if self.is_rc:
            text += f"-rc{self.rc}"
        if self.is_ee:
            text += "-ee"
        return text

    def to_minor(self) -> str:
        return f"{self.major}.{self.minor}"

    def to_patch(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def to_release_candidate(self, number: int = 1) -> str:
        text = f"{self.to_patch()}-rc{number}"
        if self.is_ee:
            text += "-ee"
        return text

    def to_stable_branch(self, ee: bool = False) -> str:
        prefix = self.to_minor().replace('.', '-')
        if ee or self.is_ee:
            return f"{prefix}-stable-ee"
        return f"{prefix}-stable"

    def to_tag(self, ee: bool = False) -> str:
        version = self.to_ee() if ee else self
        return f"v{version}"

    def previous_tag(self, ee: bool = False) -> Optional[str]:
        """Tag of the preceding patch release, or None for .0 and RC versions."""
        if not self.is_patch or self.is_rc:
            return None
        return self.previous_patch().to_tag(ee=ee)

    def to_packager_version(self, ee: bool = False) -> str:
        """Installer-package version, e.g. ``8.3.5+rc2.ee.0``."""
        text = f"{self.to_patch()}+"
        if self.is_rc:
            text += f"rc{self.rc}."
        text += 'ee' if (ee or self.is_ee) else 'ce'
        return text + '.0'

    def to_container_version(self, ee: bool = False) -> str:
        """Image tag variant of the packager version (``+`` is not allowed)."""
        return self.to_packager_version(ee=ee).replace('+', '-')

    # -------------------------------------------------------------------------
    # Derivation
    # -------------------------------------------------------------------------

    def with_edition(self, edition: Edition) -> 'Version':
        return replace(self, edition=edition)

    def to_ce(self) -> 'Version':
        return self.with_edition(Edition.COMMUNITY)

    def to_ee(self) -> 'Version':
        return self.with_edition(Edition.ENTERPRISE)

    def next_major(self) -> 'Version':
        return Version(self.major + 1, 0, 0, edition=self.edition)

    def next_minor(self) -> 'Version':
        return Version(self.major, self.minor + 1, 0, edition=self.edition)

    def next_patch(self) -> 'Version':
        return Version(self.major, self.minor, self.patch + 1, edition=self.edition)

    def previous_patch(self, lookup: Optional[HistoryLookup] = None) -> 'Version':
        """
        Return the preceding patch release.

        Raises:
            ValueError: If patch is 0 and no lookup is given (or it finds nothing)
        """
        if self.is_patch:
            return Version(self.major, self.minor, self.patch - 1, edition=self.edition)

        previous = lookup(self) if lookup else None
        if previous is None:
            raise ValueError(f"The patch release before {self} could not be found")
        return previous

    def previous_minor(self, lookup: Optional[HistoryLookup] = None) -> 'Version':
        """
        Return the .0 release of the preceding minor.

        For a new major there is no arithmetic answer; the last minor of the
        previous major must come from lookup.
        """
        if self.minor > 0:
            return Version(self.major, self.minor - 1, 0, edition=self.edition)

        previous = lookup(self) if lookup else None
        if previous is None:
            raise ValueError(f"The last version before {self} could not be found")
        return previous
