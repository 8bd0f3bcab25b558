"""
Version propagation for autodeploy.

Commits a desired version map to a packager branch, in one commit:

- omnibus: one create/update action per changed component file, content
  "<version>\\n"
- cng: a single update of ci_files/variables.yml where only the targeted
  keys under `variables` are overwritten and every other key is preserved

No commit is made when nothing changed or under dry-run. A failed commit is
logged and reported as FAILED; it never raises, so sibling packagers carry
on.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..config import ReleaseConfig
from ..domain.operation import OperationStatus, PropagationResult
from ..domain.project import ReleaseProfile, VARIABLES_FILE, VersionFormat
from ..errors import RemoteError, RemoteNotFound
from ..infra.gitlab_client import CommitAction, GitLabClient
from .change_detector import Change, ChangeDetector

logger = logging.getLogger(__name__)

COMMIT_MESSAGE = 'Update component versions'


class VersionPropagator:
    """
    Writes component versions to packager branches.

    Example:
        propagator = VersionPropagator(config, client)
        result = propagator.apply(CNG_PROFILE, '12-9-auto-deploy-20200226', versions)
        if result.advanced:
            print(result.commit)
    """

    def __init__(
        self,
        config: Optional[ReleaseConfig] = None,
        client: Optional[GitLabClient] = None,
        detector: Optional[ChangeDetector] = None,
    ):
        """
        Initialize VersionPropagator.

        Args:
            config: Run configuration (loads default if None)
            client: Client for the packager instance (creates new if None)
            detector: ChangeDetector sharing the same client (creates new if None)
        """
        self.config = config or ReleaseConfig.load()
        self.client = client or GitLabClient.for_environment(self.config, self.config.upstream_environment)
        self.detector = detector or ChangeDetector(self.config, self.client)

    def apply(self, profile: ReleaseProfile, branch: str, desired: Mapping[str, str]) -> PropagationResult:
        """
        Commit desired versions to a packager branch if any of them changed.

        Returns:
            PropagationResult; `advanced` is True only when a commit landed
        """
        project = str(profile.project)
        changes = self.detector.diff(profile, branch, desired)

        if not changes:
            logger.info(f"Nothing to update: project={project} branch={branch}")
            return PropagationResult(
                project=project,
                branch=branch,
                status=OperationStatus.SKIPPED,
                action="unchanged",
            )

        changed_keys = [change.key for change in changes]

        if self.config.dry_run:
            logger.info(f"Would commit component versions: project={project} branch={branch} keys={changed_keys}")
            return PropagationResult(
                project=project,
                branch=branch,
                status=OperationStatus.DRY_RUN,
                action="would_update",
                changed_keys=changed_keys,
            )

        try:
            actions = self._actions(profile, branch, desired, changes)
            commit = self.client.create_commit(profile.project, branch, COMMIT_MESSAGE, actions)
        except (RemoteError, yaml.YAMLError) as e:
            logger.critical(
                f"Failed to commit component versions: project={project} branch={branch} "
                f"keys={changed_keys} status={getattr(e, 'status_code', None)} error={e}"
            )
            return PropagationResult(
                project=project,
                branch=branch,
                status=OperationStatus.FAILED,
                action="update_failed",
                error=str(e),
                changed_keys=changed_keys,
            )

        logger.info(f"Committed component versions: project={project} branch={branch} commit={commit.id}")
        return PropagationResult(
            project=project,
            branch=branch,
            status=OperationStatus.SUCCESS,
            action="updated",
            commit=commit.id,
            changed_keys=changed_keys,
        )

    def _actions(
        self,
        profile: ReleaseProfile,
        branch: str,
        desired: Mapping[str, str],
        changes: List[Change],
    ) -> List[CommitAction]:
        if profile.version_format is VersionFormat.CNG:
            return [self._variables_action(profile, branch, desired)]

        return [
            CommitAction(
                action='update' if change.exists else 'create',
                file_path=change.key,
                content=f"{change.desired}\n",
            )
            for change in changes
        ]

    def _variables_action(self, profile: ReleaseProfile, branch: str, desired: Mapping[str, str]) -> CommitAction:
        try:
            document = self._load_document(self.client.file_contents(profile.project, VARIABLES_FILE, branch))
            action = 'update'
        except RemoteNotFound:
            document = {}
            action = 'create'

        variables = document.get('variables')
        if not isinstance(variables, dict):
            variables = {}
        variables.update(desired)
        document['variables'] = variables

        return CommitAction(
            action=action,
            file_path=VARIABLES_FILE,
            content=yaml.safe_dump(document, default_flow_style=False, sort_keys=False),
        )

    @staticmethod
    def _load_document(contents: str) -> Dict[str, Any]:
        document = yaml.safe_load(contents)
        return document if isinstance(document, dict) else {}
