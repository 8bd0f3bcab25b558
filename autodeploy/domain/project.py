"""
Repository descriptors and release profiles for autodeploy.

Every repository the pipeline touches is a member of the closed Project
enum. Its per-environment paths are data, resolved against the endpoint a
client talks to. A ReleaseProfile composes what a packager needs: which
project, which storage format, which component keys, and how its tags are
named.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .component import UPSTREAM_KEY, VERSION_FILE_COMPONENTS, MANIFEST_COMPONENTS


class Environment(Enum):
    """GitLab instance an API client talks to."""
    PRODUCTION = "production"
    DEV = "dev"
    OPS = "ops"


class Project(Enum):
    """Repositories known to the release pipeline."""

    GITLAB_EE = ('gitlab-ee', 'gitlab-org/gitlab', 'gitlab/gitlab-ee', 'gitlab-org/security/gitlab')
    OMNIBUS_GITLAB = (
        'omnibus-gitlab-ee',
        'gitlab-org/omnibus-gitlab',
        'gitlab/omnibus-gitlab',
        'gitlab-org/security/omnibus-gitlab',
    )
    CNG_IMAGE = (
        'cng-ee',
        'gitlab-org/build/CNG',
        'gitlab/charts/components/images',
        'gitlab-org/security/charts/components/images',
    )
    DEPLOYER = ('deployer', 'gitlab-com/gl-infra/deployer', None, None)
    RELEASE_TOOLS = ('release-tools', 'gitlab-org/release/tools', None, None)
    RELEASE_METADATA = ('release-metadata', 'gitlab-org/release/metadata', None, None)

    def __init__(
        self,
        project_name: str,
        canonical_path: str,
        dev_path: Optional[str],
        security_path: Optional[str],
    ):
        self.project_name = project_name
        self.canonical_path = canonical_path
        self.dev_path = dev_path
        self.security_path = security_path

    @property
    def path(self) -> str:
        return self.canonical_path

    def path_for(self, environment: Environment, security_release: bool = False) -> str:
        """
        Resolve the `namespace/name` path of this project on an instance.

        Dev paths win on the dev instance; on production a security release
        uses the security mirror. Projects without a variant fall back to
        the canonical path.
        """
        if environment is Environment.DEV:
            return self.dev_path or self.canonical_path
        if environment is Environment.PRODUCTION and security_release:
            return self.security_path or self.canonical_path
        return self.canonical_path

    def __str__(self) -> str:
        return self.canonical_path


class VersionFormat(Enum):
    """How a packager stores component versions."""
    OMNIBUS = "omnibus"  # one file per component at the repository root
    CNG = "cng"          # one YAML document with a `variables` mapping


VARIABLES_FILE = 'ci_files/variables.yml'


@dataclass(frozen=True)
class ReleaseProfile:
    """
    Everything the pipeline needs to release one packager.

    Attributes:
        name: Short name, also the release-metadata category
        project: Packager repository
        version_format: Storage format of component versions
        component_keys: Keys the packager expects after sanitizing
        upstream_ref_key: Key holding the upstream commit in the sanitized map
        label: Word used in tag messages ("Auto-deploy <label> <tag>")
        include_packager_ref: Append the packager head sha to tag names
        dependent_project: Repository receiving a mirror tag, if any
        dependent_ref: Ref the mirror tag points at
    """
    name: str
    project: Project
    version_format: VersionFormat
    component_keys: Tuple[str, ...]
    upstream_ref_key: str
    label: str
    include_packager_ref: bool = False
    dependent_project: Optional[Project] = None
    dependent_ref: str = 'master'


OMNIBUS_PROFILE = ReleaseProfile(
    name='omnibus',
    project=Project.OMNIBUS_GITLAB,
    version_format=VersionFormat.OMNIBUS,
    component_keys=(UPSTREAM_KEY,) + tuple(c.version_file for c in VERSION_FILE_COMPONENTS),
    upstream_ref_key=UPSTREAM_KEY,
    label='Omnibus',
    include_packager_ref=True,
    dependent_project=Project.DEPLOYER,
)

CNG_PROFILE = ReleaseProfile(
    name='cng',
    project=Project.CNG_IMAGE,
    version_format=VersionFormat.CNG,
    component_keys=(
        ('GITLAB_VERSION', 'GITLAB_ASSETS_TAG', 'GITLAB_REF_SLUG')
        + tuple(c.container_variable for c in VERSION_FILE_COMPONENTS)
        + tuple(c.variable for c in MANIFEST_COMPONENTS)
    ),
    upstream_ref_key='GITLAB_VERSION',
    label='CNG',
)

PROFILES: Dict[str, ReleaseProfile] = {
    OMNIBUS_PROFILE.name: OMNIBUS_PROFILE,
    CNG_PROFILE.name: CNG_PROFILE,
}


def get_profile(name: str) -> ReleaseProfile:
    """Look up a release profile by name."""
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown packager: {name} (expected one of {', '.join(PROFILES)})") from None
