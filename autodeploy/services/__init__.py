"""
Service layer for autodeploy.

Contains the pipeline steps that orchestrate domain objects and infrastructure:
- ComponentVersionResolver: Component versions at an upstream commit
- sanitize / versions_for: Reshape a version map for a packager
- ChangeDetector: Compare desired versions with a packager branch
- VersionPropagator: Commit desired versions to a packager branch
- Tagger: Tag a packager branch head, once per content
- AutoDeployService: The whole pipeline across packagers
- BranchService: Auto-deploy branch creation

Services are the primary API for commands to use.
"""

from .component_versions import ComponentVersionResolver
from .sanitizer import sanitize, sanitize_version, select_components, versions_for
from .change_detector import Change, ChangeDetector
from .propagator import VersionPropagator, COMMIT_MESSAGE
from .metadata_uploader import ReleaseMetadataUploader, metadata_path
from .tagger import Tagger
from .commit_finder import CommitFinder
from .branch_service import BranchService
from .auto_deploy_service import AutoDeployService, AutoDeployOptions

__all__ = [
    'ComponentVersionResolver',
    'sanitize',
    'sanitize_version',
    'select_components',
    'versions_for',
    'Change',
    'ChangeDetector',
    'VersionPropagator',
    'COMMIT_MESSAGE',
    'ReleaseMetadataUploader',
    'metadata_path',
    'Tagger',
    'CommitFinder',
    'BranchService',
    'AutoDeployService',
    'AutoDeployOptions',
]
