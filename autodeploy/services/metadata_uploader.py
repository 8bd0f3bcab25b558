"""
Release metadata upload for autodeploy.

Stores what an auto-deploy tag released as a JSON file on the ops metadata
project. A retried pipeline may find the file already there; it is then
overwritten instead of failing.

Files are laid out as

    releases/<category>/<major>/<tag>.json

where category is the packager profile name (`omnibus`, `cng`). The category
level keeps the records of packagers tagged from the same upstream commit
apart; readers of the metadata project must include it when looking up a
tag.
"""

import json
import logging
from typing import Optional

from ..config import ReleaseConfig
from ..domain.project import Environment, Project
from ..domain.release_metadata import ReleaseMetadata
from ..errors import AlreadyExists, RemoteError
from ..infra.gitlab_client import GitLabClient

logger = logging.getLogger(__name__)

METADATA_BRANCH = 'master'


def metadata_path(category: str, tag_name: str) -> str:
    """One directory per category and major version keeps directories small."""
    major = tag_name.split('.', 1)[0]
    return f"releases/{category}/{major}/{tag_name}.json"


class ReleaseMetadataUploader:
    """Writes ReleaseMetadata records to the release metadata project."""

    def __init__(
        self,
        config: Optional[ReleaseConfig] = None,
        client: Optional[GitLabClient] = None,
    ):
        self.config = config or ReleaseConfig.load()
        self.client = client or GitLabClient.for_environment(self.config, Environment.OPS)

    def upload(self, category: str, tag_name: str, metadata: ReleaseMetadata) -> Optional[str]:
        """
        Upload the record for one tag.

        Returns:
            Path of the file written, or None under dry-run
        """
        path = metadata_path(category, tag_name)
        contents = json.dumps(metadata.to_dict(security=self.config.security_release), indent=2)
        message = f"Add release data for {tag_name}"

        if self.config.dry_run:
            logger.info(f"Would upload release metadata: path={path}")
            return None

        try:
            self.client.create_file(Project.RELEASE_METADATA, path, METADATA_BRANCH, contents, message)
        except RemoteError as e:
            if not isinstance(e, AlreadyExists) and e.status_code != 400:
                raise
            logger.info(f"Release metadata already exists, updating: path={path}")
            self.client.edit_file(Project.RELEASE_METADATA, path, METADATA_BRANCH, contents, message)

        logger.info(f"Uploaded release metadata: path={path}")
        return path
