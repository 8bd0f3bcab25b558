"""
Change detection for autodeploy.

Compares the versions committed on a packager branch with the versions that
should be there. The two packager formats store the same information in
incompatible shapes, so each has its own reader:

- omnibus: one file per component at the repository root
- cng: one YAML document with a top-level `variables` mapping

An unreachable packager counts as changed; it must never abort detection for
the others.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..config import ReleaseConfig
from ..domain.project import ReleaseProfile, VARIABLES_FILE, VersionFormat
from ..errors import RemoteError, RemoteNotFound
from ..infra.gitlab_client import GitLabClient

logger = logging.getLogger(__name__)


def chomp(value: Optional[str]) -> Optional[str]:
    """Drop a single trailing newline, as version files carry one."""
    if value is None:
        return None
    if value.endswith('\r\n'):
        return value[:-2]
    if value.endswith('\n') or value.endswith('\r'):
        return value[:-1]
    return value


@dataclass(frozen=True)
class Change:
    """One component whose committed value differs from the desired one."""
    key: str
    current: Optional[str]
    desired: str
    exists: bool = True


class ChangeDetector:
    """
    Decides whether a packager branch needs new component versions.

    Example:
        detector = ChangeDetector(config, client)
        if detector.has_changes(OMNIBUS_PROFILE, branch, versions):
            ...
    """

    def __init__(
        self,
        config: Optional[ReleaseConfig] = None,
        client: Optional[GitLabClient] = None,
    ):
        self.config = config or ReleaseConfig.load()
        self.client = client or GitLabClient.for_environment(self.config, self.config.upstream_environment)

    def has_changes(self, profile: ReleaseProfile, branch: str, desired: Mapping[str, str]) -> bool:
        """True if any desired value is missing or different on the branch."""
        return bool(self.diff(profile, branch, desired))

    def diff(self, profile: ReleaseProfile, branch: str, desired: Mapping[str, str]) -> List[Change]:
        """List every key whose committed value differs, in desired-map order."""
        if profile.version_format is VersionFormat.CNG:
            return self.cng_changes(profile, branch, desired)
        return self.omnibus_changes(profile, branch, desired)

    def omnibus_changes(self, profile: ReleaseProfile, branch: str, desired: Mapping[str, str]) -> List[Change]:
        changes = []

        for key, value in desired.items():
            try:
                current = self.client.file_contents(profile.project, key, branch)
                exists = True
            except RemoteNotFound:
                logger.warning(
                    f"Version file not found, assuming changed: "
                    f"project={profile.project} branch={branch} file={key}"
                )
                current, exists = None, False
            except RemoteError as e:
                logger.warning(
                    f"Unable to read version file, assuming changed: "
                    f"project={profile.project} branch={branch} file={key} error={e}"
                )
                current, exists = None, False

            if chomp(current) != chomp(value):
                changes.append(Change(key=key, current=chomp(current), desired=value, exists=exists))

        self._log_result(profile, branch, changes)
        return changes

    def cng_changes(self, profile: ReleaseProfile, branch: str, desired: Mapping[str, str]) -> List[Change]:
        variables = self.current_variables(profile, branch)
        changes = []

        for key, value in desired.items():
            if variables is None or key not in variables:
                changes.append(Change(key=key, current=None, desired=value, exists=False))
                continue

            current = chomp(str(variables[key]))
            if current != chomp(value):
                changes.append(Change(key=key, current=current, desired=value))

        self._log_result(profile, branch, changes)
        return changes

    def current_variables(self, profile: ReleaseProfile, branch: str) -> Optional[Dict[str, Any]]:
        """
        Read the `variables` mapping of the merged document.

        Returns None when the document is absent, unreachable or unreadable.
        """
        try:
            contents = self.client.file_contents(profile.project, VARIABLES_FILE, branch)
        except RemoteError as e:
            logger.warning(
                f"Unable to read {VARIABLES_FILE}, assuming changed: "
                f"project={profile.project} branch={branch} error={e}"
            )
            return None

        try:
            document = yaml.safe_load(contents) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Invalid YAML in {VARIABLES_FILE}, assuming changed: project={profile.project} error={e}")
            return None

        variables = document.get('variables') if isinstance(document, dict) else None
        return variables if isinstance(variables, dict) else None

    @staticmethod
    def _log_result(profile: ReleaseProfile, branch: str, changes: List[Change]) -> None:
        if changes:
            logger.info(
                f"Component versions changed: project={profile.project} branch={branch} "
                f"keys={[change.key for change in changes]}"
            )
        else:
            logger.info(f"Component versions unchanged: project={profile.project} branch={branch}")
