"""
Component definitions for autodeploy.

Components are separately versioned subsystems whose version is tracked
inside the upstream repository, either in a version file at the repository
root or pinned in the dependency lockfile. The lists below are data; adding
a component never requires new code.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional


# Component identifier -> version string. Insertion order is preserved and
# is the order used in tag messages.
ComponentVersionMap = Dict[str, str]

# Synthetic entry holding the upstream commit itself
UPSTREAM_KEY = 'VERSION'

# Lockfile holding pinned dependency versions in the upstream repository
LOCKFILE = 'Gemfile.lock'


@dataclass(frozen=True)
class VersionFileComponent:
    """
    A component whose version lives in a file at the upstream repository root.

    Attributes:
        name: Project name used in release metadata (e.g. "gitaly")
        version_file: File name, also the key in the resolved map
        container_variable: Variable name used by the container packager
    """
    name: str
    version_file: str
    container_variable: str


@dataclass(frozen=True)
class ManifestComponent:
    """
    A component pinned in the upstream dependency lockfile.

    The package is located by exact name first, then by pattern, so that
    historical renames of the package keep resolving.
    """
    name: str
    package: str
    pattern: str
    variable: str

    def matches(self, identifier: str) -> bool:
        return identifier == self.package or re.match(self.pattern, identifier) is not None


GITALY = VersionFileComponent('gitaly', 'GITALY_SERVER_VERSION', 'GITALY_VERSION')
ELASTICSEARCH_INDEXER = VersionFileComponent(
    'gitlab-elasticsearch-indexer',
    'GITLAB_ELASTICSEARCH_INDEXER_VERSION',
    'GITLAB_ELASTICSEARCH_INDEXER_VERSION',
)
PAGES = VersionFileComponent('gitlab-pages', 'GITLAB_PAGES_VERSION', 'GITLAB_PAGES_VERSION')
SHELL = VersionFileComponent('gitlab-shell', 'GITLAB_SHELL_VERSION', 'GITLAB_SHELL_VERSION')
WORKHORSE = VersionFileComponent('gitlab-workhorse', 'GITLAB_WORKHORSE_VERSION', 'GITLAB_WORKHORSE_VERSION')

MAILROOM = ManifestComponent(
    name='mailroom',
    package='mail_room',
    pattern=r'\A(gitlab-)?mail[-_]?room\Z',
    variable='MAILROOM_VERSION',
)

VERSION_FILE_COMPONENTS = (GITALY, ELASTICSEARCH_INDEXER, PAGES, SHELL, WORKHORSE)
MANIFEST_COMPONENTS = (MAILROOM,)


def manifest_component_for(identifier: str) -> Optional[ManifestComponent]:
    """Find the manifest component a package identifier belongs to."""
    for component in MANIFEST_COMPONENTS:
        if component.matches(identifier):
            return component
    return None


def component_name_for(key: str) -> Optional[str]:
    """
    Map a version-map key (file name or variable) to a project name.

    Returns None for keys that describe the upstream project itself.
    """
    for component in VERSION_FILE_COMPONENTS:
        if key in (component.version_file, component.container_variable):
            return component.name

    for component in MANIFEST_COMPONENTS:
        if key == component.variable or component.matches(key):
            return component.name

    return None
