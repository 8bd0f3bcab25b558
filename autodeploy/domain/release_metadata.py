"""
Release metadata domain objects for autodeploy.

A structured record of what an auto-deploy tag released, serialized as:

    {"security": bool,
     "releases": {"<name>": {"version", "sha", "ref", "tag"}}}
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .component import component_name_for


SHA_REGEX = re.compile(r'\A[0-9a-f]{40}\Z')


@dataclass
class Release:
    """One released project or component."""
    name: str
    version: str
    sha: Optional[str]
    ref: str
    tag: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'sha': self.sha,
            'ref': self.ref,
            'tag': self.tag,
        }


@dataclass
class ReleaseMetadata:
    """Releases keyed by name; adding a name twice keeps the latest entry."""
    releases: Dict[str, Release] = field(default_factory=dict)

    def add_release(
        self,
        name: str,
        version: str,
        sha: Optional[str],
        ref: str,
        tag: bool = False,
    ) -> None:
        self.releases[name] = Release(name=name, version=version, sha=sha, ref=ref, tag=tag)

    def add_auto_deploy_components(self, versions: Mapping[str, str]) -> None:
        """
        Record every component of a sanitized version map.

        A sha is recorded against the default branch; anything else is a
        tag, recorded without its `v` prefix as the version.
        """
        for key, value in versions.items():
            name = component_name_for(key)
            if name is None:
                continue

            if SHA_REGEX.match(value):
                self.add_release(name=name, version=value, sha=value, ref='master', tag=False)
            else:
                version = value[1:] if value.startswith('v') else value
                self.add_release(name=name, version=version, sha=None, ref=value, tag=True)

    def to_dict(self, security: bool = False) -> Dict[str, Any]:
        return {
            'security': security,
            'releases': {name: release.to_dict() for name, release in self.releases.items()},
        }
