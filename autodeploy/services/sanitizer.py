"""
Version sanitizing for autodeploy.

Rewrites a resolved version map into the shape a packager expects:

- Versions that look like a release (`1.2.3`, `1.2.3-rc4`) become tag refs
  (`v1.2.3`); 40-character shas pass through untouched. Downstream tooling
  expects one git-ref shape per value, so the two must not be conflated.
- Gem identifiers become their packager variable (`mail_room` ->
  `MAILROOM_VERSION`). Gem versions are RubyGems versions, not git refs, so
  they keep their value (`0.10.0`).
- In the container style the upstream commit is fanned out to
  GITLAB_VERSION, GITLAB_ASSETS_TAG and GITLAB_REF_SLUG, and version files
  are renamed to their container variables.
"""

import re
import logging
from typing import Mapping

from ..domain.component import (
    ComponentVersionMap,
    UPSTREAM_KEY,
    VERSION_FILE_COMPONENTS,
    manifest_component_for,
)
from ..domain.project import ReleaseProfile, VersionFormat
from ..domain.release_metadata import SHA_REGEX
from ..errors import ComponentNotFoundError

logger = logging.getLogger(__name__)

TAG_VERSION_REGEX = re.compile(r'\A\d+\.\d+\.\d+(-rc\d+)?\Z')

CONTAINER_UPSTREAM_KEYS = ('GITLAB_VERSION', 'GITLAB_ASSETS_TAG', 'GITLAB_REF_SLUG')

CONTAINER_VARIABLES = {
    component.version_file: component.container_variable
    for component in VERSION_FILE_COMPONENTS
}


def sanitize_version(value: str) -> str:
    """Turn a release-shaped version into a tag ref; leave anything else alone."""
    if SHA_REGEX.match(value):
        return value
    if TAG_VERSION_REGEX.match(value):
        return f"v{value}"
    return value


def sanitize(versions: Mapping[str, str], target_format: VersionFormat) -> ComponentVersionMap:
    """
    Rewrite a resolved version map for a packager format.

    Args:
        versions: Resolved map, as returned by ComponentVersionResolver
        target_format: Packager storage format

    Returns:
        New map; the input is not modified
    """
    result: ComponentVersionMap = {}

    for key, value in versions.items():
        if key == UPSTREAM_KEY:
            if target_format is VersionFormat.CNG:
                for upstream_key in CONTAINER_UPSTREAM_KEYS:
                    result[upstream_key] = value
            else:
                result[key] = value
            continue

        gem = manifest_component_for(key)
        if gem is not None:
            result[gem.variable] = value
            continue

        if target_format is VersionFormat.CNG:
            key = CONTAINER_VARIABLES.get(key, key)

        result[key] = sanitize_version(value)

    logger.debug(f"Sanitized versions: format={target_format.value} versions={result}")
    return result


def select_components(versions: Mapping[str, str], profile: ReleaseProfile) -> ComponentVersionMap:
    """
    Keep exactly the keys a packager expects, in the profile's order.

    Raises:
        ComponentNotFoundError: If an expected key is missing
    """
    selected: ComponentVersionMap = {}
    for key in profile.component_keys:
        if key not in versions:
            raise ComponentNotFoundError(key)
        selected[key] = versions[key]
    return selected


def versions_for(versions: Mapping[str, str], profile: ReleaseProfile) -> ComponentVersionMap:
    """Sanitize for the profile's format, then select its components."""
    return select_components(sanitize(versions, profile.version_format), profile)
