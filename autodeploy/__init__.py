"""
autodeploy - Component version coordination and tagging for auto-deploy.

autodeploy reads the component versions pinned in the upstream repository
at a commit, writes them to each packager's auto-deploy branch, and tags the
branch head once per content so deployments can pick it up.

Quick Start:
    from autodeploy import AutoDeployService, AutoDeployOptions, ReleaseConfig

    config = ReleaseConfig.load().with_overrides(dry_run=True)
    service = AutoDeployService(config)

    for progress in service.run(AutoDeployOptions(branch="12-9-auto-deploy-20200226")):
        print(progress)

    print(service.last_result.to_dict())

Domain Objects:
    Version - Product version with its derived views
    AutoDeployBranch - Branch name carrying major.minor
    ReleaseProfile - Everything needed to release one packager

Services:
    ComponentVersionResolver - Component versions at a commit
    ChangeDetector / VersionPropagator - Keep packager branches current
    Tagger - Idempotent packager tags
    AutoDeployService - The whole pipeline
    BranchService - Auto-deploy branch creation
"""

__version__ = "0.1.0"

# Domain objects
from .domain import (
    Version,
    Edition,
    Project,
    ReleaseProfile,
    VersionFormat,
    AutoDeployBranch,
    TagState,
    ReleaseMetadata,
    OMNIBUS_PROFILE,
    CNG_PROFILE,
)

# Services
from .services import (
    ComponentVersionResolver,
    ChangeDetector,
    VersionPropagator,
    Tagger,
    AutoDeployService,
    AutoDeployOptions,
    BranchService,
    sanitize,
)

# Infrastructure
from .infra import GitLabClient, IdempotentClient

# Configuration
from .config import ReleaseConfig, load_config

__all__ = [
    # Version
    "__version__",
    # Domain objects
    "Version",
    "Edition",
    "Project",
    "ReleaseProfile",
    "VersionFormat",
    "AutoDeployBranch",
    "TagState",
    "ReleaseMetadata",
    "OMNIBUS_PROFILE",
    "CNG_PROFILE",
    # Services
    "ComponentVersionResolver",
    "ChangeDetector",
    "VersionPropagator",
    "Tagger",
    "AutoDeployService",
    "AutoDeployOptions",
    "BranchService",
    "sanitize",
    # Infrastructure
    "GitLabClient",
    "IdempotentClient",
    # Configuration
    "ReleaseConfig",
    "load_config",
]
