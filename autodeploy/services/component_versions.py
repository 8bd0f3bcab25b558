"""
Component version resolution for autodeploy.

Given an upstream commit, builds the complete map of component versions:
one entry per version file, one per lockfile-pinned gem, plus the commit
itself under VERSION. Read-only; safe to call repeatedly and concurrently.

Example:
    resolver = ComponentVersionResolver(config, client)
    resolver.resolve('36b70d9ce7c73ca001be48727d35d49813d2cc4f')
    => {
        "VERSION": "36b70d9ce7c73ca001be48727d35d49813d2cc4f",
        "GITALY_SERVER_VERSION": "1.83.0",
        "GITLAB_ELASTICSEARCH_INDEXER_VERSION": "2.0.0",
        "GITLAB_PAGES_VERSION": "1.14.0",
        "GITLAB_SHELL_VERSION": "11.0.0",
        "GITLAB_WORKHORSE_VERSION": "8.19.0",
        "mail_room": "0.10.0",
    }
"""

import logging
from typing import Optional

from ..config import ReleaseConfig
from ..domain.component import (
    ComponentVersionMap,
    LOCKFILE,
    MANIFEST_COMPONENTS,
    UPSTREAM_KEY,
    VERSION_FILE_COMPONENTS,
)
from ..domain.project import Project
from ..errors import ComponentNotFoundError, RemoteNotFound
from ..infra.gitlab_client import GitLabClient
from ..lockfile import GemfileLock

logger = logging.getLogger(__name__)


class ComponentVersionResolver:
    """Reads component versions of the upstream project at a commit."""

    def __init__(
        self,
        config: Optional[ReleaseConfig] = None,
        client: Optional[GitLabClient] = None,
        project: Project = Project.GITLAB_EE,
    ):
        self.config = config or ReleaseConfig.load()
        self.client = client or GitLabClient.for_environment(self.config, self.config.upstream_environment)
        self.project = project

    def resolve(self, commit_id: str) -> ComponentVersionMap:
        """
        Get every component version as of commit_id.

        Raises:
            ComponentNotFoundError: A version file or the lockfile is missing
            VersionNotFoundError: The lockfile does not pin a required gem
        """
        versions: ComponentVersionMap = {UPSTREAM_KEY: commit_id}

        for component in VERSION_FILE_COMPONENTS:
            versions[component.version_file] = self.get_component(commit_id, component.version_file)

        lockfile = GemfileLock(self._read(commit_id, LOCKFILE))
        for gem in MANIFEST_COMPONENTS:
            versions[gem.package] = lockfile.gem_version(gem.package, gem.matches)

        logger.info(f"Resolved component versions: project={self.project} commit={commit_id} versions={versions}")

        return versions

    def get_component(self, commit_id: str, version_file: str) -> str:
        """Read one version file, trimming trailing whitespace."""
        return self._read(commit_id, version_file).rstrip()

    def _read(self, commit_id: str, file_path: str) -> str:
        try:
            return self.client.file_contents(self.project, file_path, commit_id)
        except RemoteNotFound as e:
            raise ComponentNotFoundError(file_path, commit_id) from e
