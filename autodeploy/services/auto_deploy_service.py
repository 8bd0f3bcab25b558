"""
Auto-deploy pipeline service for autodeploy.

Runs resolve -> sanitize -> propagate -> tag for each packager of an
auto-deploy branch. The steps of one packager are strictly sequential; the
packagers themselves are independent and may run in parallel. A failure in
one packager never stops or rolls back another. Used by `autodeploy run`.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Generator, Optional, Tuple

from ..config import ReleaseConfig
from ..domain.operation import (
    OperationStatus,
    OperationSummary,
    PipelineResult,
    PropagationResult,
    TaggingResult,
)
from ..domain.project import Environment, Project, ReleaseProfile, get_profile
from ..errors import NoPassingCommitError, PipelineCancelled, ReleaseToolsError
from ..infra.gitlab_client import GitLabClient
from .commit_finder import CommitFinder
from .component_versions import ComponentVersionResolver
from .propagator import VersionPropagator
from .sanitizer import versions_for
from .tagger import Tagger

logger = logging.getLogger(__name__)


@dataclass
class AutoDeployOptions:
    """Options for one auto-deploy run."""
    branch: str
    commit: Optional[str] = None  # upstream commit; defaults to the latest passing one
    packagers: Tuple[str, ...] = ('omnibus', 'cng')
    parallel: int = 1  # Number of packagers processed at once (1 = sequential)


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelled("Auto-deploy run cancelled")


def pipeline_status(
    propagation: Optional[PropagationResult],
    tagging: Optional[TaggingResult],
) -> OperationStatus:
    """Fold the step results of one packager into a single status."""
    steps = [step for step in (propagation, tagging) if step is not None]
    statuses = {step.status for step in steps}

    if OperationStatus.FAILED in statuses:
        return OperationStatus.FAILED
    if OperationStatus.DRY_RUN in statuses:
        return OperationStatus.DRY_RUN
    if OperationStatus.SUCCESS in statuses:
        return OperationStatus.SUCCESS
    return OperationStatus.SKIPPED


class AutoDeployService:
    """
    Service coordinating component versions across packagers.

    Example:
        service = AutoDeployService(config)
        options = AutoDeployOptions(branch='12-9-auto-deploy-20200226')

        for progress in service.run(options):
            print(progress)

        result = service.last_result
        print(f"{result.successful} packagers released")
    """

    def __init__(
        self,
        config: Optional[ReleaseConfig] = None,
        client: Optional[GitLabClient] = None,
        ops_client: Optional[GitLabClient] = None,
        resolver: Optional[ComponentVersionResolver] = None,
        propagator: Optional[VersionPropagator] = None,
        tagger: Optional[Tagger] = None,
        finder: Optional[CommitFinder] = None,
    ):
        """
        Initialize AutoDeployService.

        Args:
            config: Run configuration (loads default if None)
            client: Client for upstream and packager projects (creates new if None)
            ops_client: Client for the ops instance (creates new if None)
            resolver, propagator, tagger, finder: Pipeline steps (built on the clients if None)
        """
        self.config = config or ReleaseConfig.load()
        self.client = client or GitLabClient.for_environment(self.config, self.config.upstream_environment)
        self.ops_client = ops_client or GitLabClient.for_environment(self.config, Environment.OPS)
        self.resolver = resolver or ComponentVersionResolver(self.config, self.client)
        self.propagator = propagator or VersionPropagator(self.config, self.client)
        self.tagger = tagger or Tagger(self.config, self.client, self.ops_client)
        self.finder = finder or CommitFinder(self.config, self.client)
        self.last_result: Optional[OperationSummary] = None

    def run(
        self,
        options: AutoDeployOptions,
        cancel_event: Optional[threading.Event] = None,
    ) -> Generator[str, None, OperationSummary]:
        """
        Release every requested packager from one upstream commit.

        Args:
            options: Run options
            cancel_event: Checked between steps; once set, remaining steps are skipped

        Yields:
            Progress messages

        Raises:
            NoPassingCommitError: If no commit is given and none on the branch passed

        Returns:
            OperationSummary with one PipelineResult per packager
        """
        result = OperationSummary(operation="auto_deploy", dry_run=self.config.dry_run)
        self.last_result = result

        profiles = [get_profile(name) for name in options.packagers]
        if not profiles:
            yield "No packagers to release"
            return result

        commit = options.commit
        if commit is None:
            commit = self.find_commit(options.branch)
            yield f"Using {Project.GITLAB_EE} {options.branch} commit {commit}"

        if options.parallel > 1 and len(profiles) > 1:
            yield from self._run_parallel(profiles, options, commit, result, cancel_event)
        else:
            for profile in profiles:
                yield f"Releasing {profile.label} from {commit}..."
                detail = self.run_packager(profile, options.branch, commit, cancel_event)
                result.add_detail(detail)
                yield self._progress(profile, detail)

        return result

    def find_commit(self, branch: str) -> str:
        """
        Pick the upstream commit to release from branch.

        Security releases take the mirror head as is, since mirror pipelines
        do not run the full suite.
        """
        if self.config.security_release:
            return self.finder.latest(Project.GITLAB_EE, branch).id

        commit = self.finder.latest_successful(Project.GITLAB_EE, branch)
        if commit is None:
            raise NoPassingCommitError(str(Project.GITLAB_EE), branch)
        return commit.id

    def _run_parallel(
        self,
        profiles,
        options: AutoDeployOptions,
        commit: str,
        result: OperationSummary,
        cancel_event: Optional[threading.Event],
    ) -> Generator[str, None, None]:
        yield f"Releasing {len(profiles)} packagers (parallel={options.parallel})..."

        with ThreadPoolExecutor(max_workers=options.parallel) as executor:
            futures = {
                executor.submit(self.run_packager, profile, options.branch, commit, cancel_event): profile
                for profile in profiles
            }

            for future in as_completed(futures):
                detail = future.result()
                result.add_detail(detail)
                yield self._progress(futures[future], detail)

    def run_packager(
        self,
        profile: ReleaseProfile,
        branch: str,
        commit: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineResult:
        """
        Run the whole pipeline for one packager.

        Never raises for pipeline errors; they are reported on the result.
        """
        project = str(profile.project)
        propagation: Optional[PropagationResult] = None
        tagging: Optional[TaggingResult] = None

        try:
            check_cancelled(cancel_event)
            versions = versions_for(self.resolver.resolve(commit), profile)

            check_cancelled(cancel_event)
            propagation = self.propagator.apply(profile, branch, versions)
            if propagation.status == OperationStatus.FAILED:
                return PipelineResult(
                    project=project,
                    branch=branch,
                    status=OperationStatus.FAILED,
                    action="update_failed",
                    error=propagation.error,
                    propagation=propagation,
                )

            check_cancelled(cancel_event)
            tagging = self.tagger.tag(profile, branch, versions)
        except PipelineCancelled as e:
            logger.warning(f"Pipeline cancelled: project={project} branch={branch}")
            return PipelineResult(
                project=project,
                branch=branch,
                status=OperationStatus.SKIPPED,
                action="cancelled",
                message=str(e),
                propagation=propagation,
                tagging=tagging,
            )
        except (ReleaseToolsError, ValueError) as e:
            logger.critical(f"Pipeline failed: project={project} branch={branch} commit={commit} error={e}")
            return PipelineResult(
                project=project,
                branch=branch,
                status=OperationStatus.FAILED,
                action="failed",
                error=str(e),
                propagation=propagation,
                tagging=tagging,
            )

        return PipelineResult(
            project=project,
            branch=branch,
            status=pipeline_status(propagation, tagging),
            action=tagging.action,
            error=tagging.error,
            propagation=propagation,
            tagging=tagging,
        )

    @staticmethod
    def _progress(profile: ReleaseProfile, detail: PipelineResult) -> str:
        if detail.status == OperationStatus.FAILED:
            return f"  ✗ {profile.label}: {detail.error}"
        if detail.tagging is not None and detail.tagging.tag_name:
            return f"  ✓ {profile.label}: {detail.tagging.state.value} {detail.tagging.tag_name}"
        return f"  ✓ {profile.label}: {detail.action}"
