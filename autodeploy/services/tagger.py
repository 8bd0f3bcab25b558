"""
Tagging for autodeploy.

Tags a packager's auto-deploy branch head, at most once per content:

    UNCHANGED --(a tag already points at the head)--> SKIPPED
    UNCHANGED --> PENDING_TAG --> TAG_CREATED --> DEPENDENT_TAG_CREATED
                                              \\-> DEPENDENT_TAG_FAILED

A tag on the branch head is the only "already done" marker; there is no
other state store. The mirror tag on the dependent project cannot be rolled
back together with the primary tag, so its failure is logged for manual
reconciliation and the primary tag stands.
"""

import logging
from typing import List, Mapping, Optional

from ..config import ReleaseConfig
from ..domain.operation import OperationStatus, TaggingResult
from ..domain.project import Environment, Project, ReleaseProfile
from ..domain.release_metadata import ReleaseMetadata
from ..domain.tag import (
    AutoDeployBranch,
    TagSpec,
    TagState,
    build_tag_message,
    build_tag_name,
)
from ..errors import RemoteError
from ..infra.gitlab_client import Commit, GitLabClient
from ..infra.idempotent import IdempotentClient
from .metadata_uploader import ReleaseMetadataUploader

logger = logging.getLogger(__name__)

STATE_STATUS = {
    TagState.SKIPPED: OperationStatus.SKIPPED,
    TagState.DRY_RUN: OperationStatus.DRY_RUN,
    TagState.TAG_CREATED: OperationStatus.SUCCESS,
    TagState.DEPENDENT_TAG_CREATED: OperationStatus.SUCCESS,
    TagState.DEPENDENT_TAG_FAILED: OperationStatus.FAILED,
    TagState.FAILED: OperationStatus.FAILED,
}


class Tagger:
    """
    Creates auto-deploy tags on packager branches.

    Example:
        tagger = Tagger(config)
        result = tagger.tag(OMNIBUS_PROFILE, '12-9-auto-deploy-20200226', versions)
        print(result.state, result.tag_name)
    """

    def __init__(
        self,
        config: Optional[ReleaseConfig] = None,
        client: Optional[GitLabClient] = None,
        ops_client: Optional[GitLabClient] = None,
        uploader: Optional[ReleaseMetadataUploader] = None,
    ):
        """
        Initialize Tagger.

        Args:
            config: Run configuration (loads default if None)
            client: Client for the packager instance (creates new if None)
            ops_client: Client for the ops instance, home of dependent projects
            uploader: Release metadata uploader (creates new on ops_client if None)
        """
        self.config = config or ReleaseConfig.load()
        self.client = IdempotentClient(
            client or GitLabClient.for_environment(self.config, self.config.upstream_environment)
        )
        self.ops_client = IdempotentClient(ops_client or GitLabClient.for_environment(self.config, Environment.OPS))
        self.uploader = uploader or ReleaseMetadataUploader(self.config, self.ops_client.client)

    def tag_spec(
        self,
        profile: ReleaseProfile,
        branch: AutoDeployBranch,
        head: Commit,
        versions: Mapping[str, str],
    ) -> TagSpec:
        """Derive the tag for a branch head; a pure function of its inputs."""
        name = build_tag_name(
            branch,
            head.created_at,
            versions[profile.upstream_ref_key],
            head.id if profile.include_packager_ref else None,
        )
        return TagSpec(name=name, message=build_tag_message(profile.label, name, versions), target=head.id)

    def is_tagged(self, profile: ReleaseProfile, branch: str) -> bool:
        """True if any tag already points at the branch head."""
        return any(ref.is_tag for ref in self.client.commit_refs(profile.project, branch))

    def tag(self, profile: ReleaseProfile, branch_name: str, versions: Mapping[str, str]) -> TaggingResult:
        """
        Run the tagging state machine for one packager branch.

        Raises:
            ValueError: If no version can be read from the branch name
        """
        branch = AutoDeployBranch.parse(branch_name)
        project = str(profile.project)
        states = [TagState.UNCHANGED]

        try:
            if self.is_tagged(profile, branch_name):
                logger.warning(f"No changes to {profile.label}, nothing to tag: project={project} branch={branch_name}")
                return self._result(profile, branch_name, states, TagState.SKIPPED, action="unchanged")

            head = self.client.commit(profile.project, branch_name)
            spec = self.tag_spec(profile, branch, head, versions)
        except RemoteError as e:
            logger.critical(
                f"Failed to inspect {profile.label} branch: project={project} branch={branch_name} "
                f"status={e.status_code} error={e}"
            )
            return self._result(profile, branch_name, states, TagState.FAILED, action="tag_failed", error=str(e))

        states.append(TagState.PENDING_TAG)

        if self.config.dry_run:
            logger.info(f"Would create {profile.label} tag: name={spec.name} target={spec.target}")
            return self._result(profile, branch_name, states, TagState.DRY_RUN, spec, action="would_tag")

        logger.info(f"Creating {profile.label} tag: name={spec.name} target={spec.target}")
        try:
            self.client.create_tag(profile.project, spec.name, spec.target, spec.message)
        except RemoteError as e:
            logger.critical(
                f"Failed to tag {profile.label}: name={spec.name} target={spec.target} "
                f"status={e.status_code} error={e}"
            )
            return self._result(
                profile, branch_name, states, TagState.FAILED, spec, action="tag_failed", error=str(e)
            )

        states.append(TagState.TAG_CREATED)
        self.upload_metadata(profile, branch_name, head, versions, spec)

        if profile.dependent_project is None:
            return self._result(profile, branch_name, states, TagState.TAG_CREATED, spec, action="tagged")

        state = self.tag_dependent(profile.dependent_project, profile.dependent_ref, spec)
        error = "dependent tag failed" if state is TagState.DEPENDENT_TAG_FAILED else None
        return self._result(profile, branch_name, states, state, spec, action="tagged", error=error)

    def tag_dependent(self, dependent: Project, ref: str, spec: TagSpec) -> TagState:
        """Mirror a tag onto a dependent project at a fixed ref."""
        logger.info(f"Tagging {dependent.project_name}: name={spec.name} target={ref}")
        try:
            self.ops_client.create_tag(dependent, spec.name, ref, spec.message)
        except RemoteError as e:
            logger.critical(
                f"Failed to tag {dependent.project_name}: name={spec.name} target={ref} "
                f"status={e.status_code} error={e}"
            )
            return TagState.DEPENDENT_TAG_FAILED
        return TagState.DEPENDENT_TAG_CREATED

    def upload_metadata(
        self,
        profile: ReleaseProfile,
        branch_name: str,
        head: Commit,
        versions: Mapping[str, str],
        spec: TagSpec,
    ) -> None:
        """Record what the tag released; failures are logged and ignored."""
        if not self.config.release_metadata:
            return

        upstream_ref = versions[profile.upstream_ref_key]
        metadata = ReleaseMetadata()
        metadata.add_release(name=profile.project.project_name, version=head.id, sha=head.id, ref=branch_name)
        metadata.add_release(
            name=Project.GITLAB_EE.project_name,
            version=upstream_ref,
            sha=upstream_ref,
            ref=branch_name,
        )
        metadata.add_auto_deploy_components(versions)

        try:
            self.uploader.upload(profile.name, spec.name, metadata)
        except RemoteError as e:
            logger.error(f"Failed to upload release metadata: tag={spec.name} status={e.status_code} error={e}")

    @staticmethod
    def _result(
        profile: ReleaseProfile,
        branch: str,
        states: List[TagState],
        state: TagState,
        spec: Optional[TagSpec] = None,
        action: str = "",
        error: Optional[str] = None,
    ) -> TaggingResult:
        if states[-1] is not state:
            states = states + [state]
        logger.debug(f"Tag states: project={profile.project} {' -> '.join(s.value for s in states)}")

        return TaggingResult(
            project=str(profile.project),
            branch=branch,
            status=STATE_STATUS[state],
            action=action,
            error=error,
            state=state,
            tag_name=spec.name if spec else None,
            target=spec.target if spec else None,
            transitions=tuple(states),
        )
