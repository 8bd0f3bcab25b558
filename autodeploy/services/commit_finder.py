"""
Commit lookup for autodeploy.

Finds the newest commit on a ref whose pipeline passed. For the upstream
project a passing pipeline must also have run the test setup job, so that
documentation-only pipelines do not qualify.
"""

import logging
from typing import Optional

from ..config import ReleaseConfig
from ..domain.project import Project
from ..infra.gitlab_client import Commit, GitLabClient

logger = logging.getLogger(__name__)

MAX_COMMITS = 100
FULL_PIPELINE_JOB = 'setup-test-env'


class CommitFinder:
    """Locates the commit an auto-deploy branch should start from."""

    def __init__(
        self,
        config: Optional[ReleaseConfig] = None,
        client: Optional[GitLabClient] = None,
    ):
        self.config = config or ReleaseConfig.load()
        self.client = client or GitLabClient.for_environment(self.config, self.config.upstream_environment)

    def latest(self, project: Project, ref: str = 'master') -> Commit:
        """Get the commit a ref currently points at."""
        return self.client.commit(project, ref)

    def latest_successful(self, project: Project, ref: str = 'master') -> Optional[Commit]:
        """
        Get the newest commit on ref with a passing pipeline.

        Returns:
            The commit, or None if none of the last MAX_COMMITS qualifies
        """
        for commit in self.client.commits(project, ref, per_page=MAX_COMMITS):
            if self.is_passing(project, commit):
                logger.info(f"Found passing commit: project={project} ref={ref} commit={commit.id}")
                return commit

        logger.warning(f"No passing commit in the last {MAX_COMMITS}: project={project} ref={ref}")
        return None

    def is_passing(self, project: Project, commit: Commit) -> bool:
        # Pipeline status is only on the single-commit endpoint
        result = self.client.commit(project, commit.id)

        if result.status != 'success':
            logger.info(f"Skipping commit, pipeline did not succeed: commit={commit.id} status={result.status}")
            return False

        if project is not Project.GITLAB_EE:
            return True

        # Documentation-only pipelines skip the test setup job
        if result.last_pipeline_id is not None:
            for job in self.client.pipeline_jobs(project, result.last_pipeline_id):
                if job.name.startswith(FULL_PIPELINE_JOB):
                    return True

        logger.info(f"Skipping commit, no full passing pipeline: commit={commit.id}")
        return False
