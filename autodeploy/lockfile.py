"""
Gemfile.lock parsing for autodeploy.

Only the `specs:` blocks matter here: each resolved gem is listed at four
spaces of indentation as `name (version)`, its own dependencies at six.

    GEM
      remote: https://rubygems.org/
      specs:
        mail_room (0.10.0)
          charlock_holmes (~> 0.7)
"""

import re
import logging
from typing import Callable, Dict, Optional

from .errors import VersionNotFoundError

logger = logging.getLogger(__name__)

SPEC_REGEX = re.compile(r'\A {4}(?P<name>[^\s(]+) \((?P<version>[^)]+)\)\s*\Z')


def parse_specs(contents: str) -> Dict[str, str]:
    """
    Extract `gem name -> version` for every resolved spec.

    Platform suffixes (`1.2.3-x86_64-linux`) are dropped; the first entry of
    a gem wins when it is listed for several platforms.
    """
    specs: Dict[str, str] = {}
    in_specs = False

    for line in contents.splitlines():
        if not line.strip():
            in_specs = False
            continue

        if not line.startswith(' '):
            # New top-level section (GEM, GIT, PATH, PLATFORMS, ...)
            in_specs = False
            continue

        if line.strip() == 'specs:':
            in_specs = True
            continue

        if not in_specs:
            continue

        match = SPEC_REGEX.match(line)
        if match:
            version = match.group('version').split('-', 1)[0]
            specs.setdefault(match.group('name'), version)

    return specs


class GemfileLock:
    """Resolved gem versions of one Gemfile.lock."""

    def __init__(self, contents: str):
        self.specs = parse_specs(contents)

    def find(self, name: str, matcher: Optional[Callable[[str], bool]] = None) -> Optional[str]:
        """Find a gem by exact name, then by matcher."""
        if name in self.specs:
            return self.specs[name]

        if matcher:
            for candidate, version in self.specs.items():
                if matcher(candidate):
                    logger.debug(f"Matched gem {name} as {candidate}")
                    return version

        return None

    def gem_version(self, name: str, matcher: Optional[Callable[[str], bool]] = None) -> str:
        """
        Get the pinned version of a gem.

        Raises:
            VersionNotFoundError: If the lockfile does not list the gem
        """
        version = self.find(name, matcher)
        if version is None:
            raise VersionNotFoundError(name)

        logger.debug(f"Version from Gemfile.lock: gem={name} version={version}")
        return version
