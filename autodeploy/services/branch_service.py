"""
Auto-deploy branch creation for autodeploy.

Creates a new auto-deploy branch on the upstream project and every packager,
each from its own latest passing commit, then points the release-tools
AUTO_DEPLOY_BRANCH CI variable at it. Used by `autodeploy create-branches`.
"""

import logging
from typing import Generator, Optional, Tuple

from ..config import ReleaseConfig
from ..domain.operation import OperationDetail, OperationStatus, OperationSummary
from ..domain.project import Environment, Project
from ..errors import RemoteError, RemoteNotFound
from ..infra.gitlab_client import GitLabClient
from ..infra.idempotent import IdempotentClient
from .commit_finder import CommitFinder

logger = logging.getLogger(__name__)

CI_VAR_AUTO_DEPLOY = 'AUTO_DEPLOY_BRANCH'

BRANCH_PROJECTS: Tuple[Project, ...] = (
    Project.GITLAB_EE,
    Project.OMNIBUS_GITLAB,
    Project.CNG_IMAGE,
)


class BranchService:
    """
    Service creating auto-deploy branches.

    Example:
        service = BranchService(config)
        for progress in service.create_branches('12-9-auto-deploy-20200226'):
            print(progress)

        result = service.last_result
    """

    def __init__(
        self,
        config: Optional[ReleaseConfig] = None,
        client: Optional[GitLabClient] = None,
        ops_client: Optional[GitLabClient] = None,
        finder: Optional[CommitFinder] = None,
    ):
        self.config = config or ReleaseConfig.load()
        self.client = IdempotentClient(
            client or GitLabClient.for_environment(self.config, self.config.upstream_environment)
        )
        self.ops_client = ops_client or GitLabClient.for_environment(self.config, Environment.OPS)
        self.finder = finder or CommitFinder(self.config, self.client.client)
        self.last_result: Optional[OperationSummary] = None

    def create_branches(self, branch: str) -> Generator[str, None, OperationSummary]:
        """
        Create branch on every project, then record it for later pipelines.

        Yields:
            Progress messages

        Returns:
            OperationSummary with one detail per project
        """
        result = OperationSummary(operation="create_branches", dry_run=self.config.dry_run)
        self.last_result = result

        for project in BRANCH_PROJECTS:
            yield f"Creating {branch} on {project}..."
            detail = self.create_branch(project, branch)
            result.add_detail(detail)

            if detail.status == OperationStatus.FAILED:
                yield f"  ✗ {project}: {detail.error}"
            else:
                yield f"  ✓ {project}: {detail.action}"

        if result.failed == 0:
            self.update_auto_deploy_ci(branch)
        else:
            logger.error(f"Not updating {CI_VAR_AUTO_DEPLOY}, {result.failed} branch(es) failed")

        return result

    def create_branch(self, project: Project, branch: str) -> OperationDetail:
        """Create branch on one project from its latest passing commit."""
        try:
            commit = self.finder.latest_successful(project)
        except RemoteError as e:
            logger.critical(f"Failed to find a passing commit: project={project} status={e.status_code} error={e}")
            return OperationDetail(
                project=str(project),
                branch=branch,
                status=OperationStatus.FAILED,
                action="create_failed",
                error=str(e),
            )

        if commit is None:
            return OperationDetail(
                project=str(project),
                branch=branch,
                status=OperationStatus.FAILED,
                action="create_failed",
                error="no passing commit found",
            )

        if self.config.dry_run:
            logger.info(f"Would create branch: project={project} branch={branch} ref={commit.id}")
            return OperationDetail(
                project=str(project),
                branch=branch,
                status=OperationStatus.DRY_RUN,
                action="would_create",
                metadata={'ref': commit.id},
            )

        try:
            self.client.create_branch(project, branch, commit.id)
        except RemoteError as e:
            logger.critical(
                f"Failed to create branch: project={project} branch={branch} ref={commit.id} "
                f"status={e.status_code} error={e}"
            )
            return OperationDetail(
                project=str(project),
                branch=branch,
                status=OperationStatus.FAILED,
                action="create_failed",
                error=str(e),
                metadata={'ref': commit.id},
            )

        logger.info(f"Created branch: project={project} branch={branch} ref={commit.id}")
        return OperationDetail(
            project=str(project),
            branch=branch,
            status=OperationStatus.SUCCESS,
            action="created",
            metadata={'ref': commit.id},
        )

    def update_auto_deploy_ci(self, branch: str) -> None:
        if self.config.dry_run:
            logger.info(f"Would set {CI_VAR_AUTO_DEPLOY}={branch} on {Project.RELEASE_TOOLS}")
            return

        try:
            self.ops_client.update_variable(Project.RELEASE_TOOLS, CI_VAR_AUTO_DEPLOY, branch)
        except RemoteNotFound:
            self.ops_client.create_variable(Project.RELEASE_TOOLS, CI_VAR_AUTO_DEPLOY, branch)

        logger.info(f"Set {CI_VAR_AUTO_DEPLOY}={branch} on {Project.RELEASE_TOOLS}")
