"""
Domain layer for autodeploy.

Contains pure domain objects with no I/O or side effects:
- Version: Parsed product version with its derived views
- Project / ReleaseProfile: Repository descriptors and packager profiles
- AutoDeployBranch / TagState: Tag naming and tagging states
- ReleaseMetadata: Record of what a tag released

These objects are immutable where possible and provide
serialization methods for JSON output.
"""

from .version import Version, Edition
from .component import (
    ComponentVersionMap,
    UPSTREAM_KEY,
    VERSION_FILE_COMPONENTS,
    MANIFEST_COMPONENTS,
)
from .project import (
    Environment,
    Project,
    VersionFormat,
    ReleaseProfile,
    OMNIBUS_PROFILE,
    CNG_PROFILE,
    PROFILES,
    get_profile,
)
from .tag import AutoDeployBranch, TagSpec, TagState, build_tag_name, build_tag_message
from .release_metadata import Release, ReleaseMetadata
from .operation import (
    OperationStatus,
    OperationDetail,
    OperationSummary,
    PropagationResult,
    TaggingResult,
    PipelineResult,
)

__all__ = [
    'Version',
    'Edition',
    'ComponentVersionMap',
    'UPSTREAM_KEY',
    'VERSION_FILE_COMPONENTS',
    'MANIFEST_COMPONENTS',
    'Environment',
    'Project',
    'VersionFormat',
    'ReleaseProfile',
    'OMNIBUS_PROFILE',
    'CNG_PROFILE',
    'PROFILES',
    'get_profile',
    'AutoDeployBranch',
    'TagSpec',
    'TagState',
    'build_tag_name',
    'build_tag_message',
    'Release',
    'ReleaseMetadata',
    'OperationStatus',
    'OperationDetail',
    'OperationSummary',
    'PropagationResult',
    'TaggingResult',
    'PipelineResult',
]
