"""
Tests for Gemfile.lock parsing.
"""

import pytest

from autodeploy.domain.component import MAILROOM
from autodeploy.errors import VersionNotFoundError
from autodeploy.lockfile import GemfileLock, parse_specs

LOCKFILE = """\
GIT
  remote: https://gitlab.com/gitlab-org/gitlab-mail_room.git
  revision: 7f6a5c2b
  specs:
    gitlab-mail_room (0.0.4)

GEM
  remote: https://rubygems.org/
  specs:
    actionmailer (6.0.2)
      actionpack (= 6.0.2)
    grpc (1.24.0-x86_64-linux)
      google-protobuf (~> 3.8)
    grpc (1.24.0)
    rake (13.0.1)

PLATFORMS
  ruby

DEPENDENCIES
  mail_room (~> 0.10.0)
  rake

BUNDLED WITH
   2.1.4
"""


class TestParseSpecs:
    """Tests for parse_specs."""

    def test_reads_specs_blocks(self):
        specs = parse_specs(LOCKFILE)

        assert specs['actionmailer'] == '6.0.2'
        assert specs['rake'] == '13.0.1'
        assert specs['gitlab-mail_room'] == '0.0.4'

    def test_ignores_nested_dependencies(self):
        """Test that six-space dependency lines are not specs."""
        assert 'actionpack' not in parse_specs(LOCKFILE)

    def test_ignores_dependencies_section(self):
        """Test that DEPENDENCIES constraints are not read as versions."""
        assert 'mail_room' not in parse_specs(LOCKFILE)

    def test_strips_platform(self):
        assert parse_specs(LOCKFILE)['grpc'] == '1.24.0'

    def test_empty(self):
        assert parse_specs('') == {}


class TestGemfileLock:
    """Tests for GemfileLock lookups."""

    def test_exact_name(self):
        lockfile = GemfileLock(LOCKFILE)

        assert lockfile.gem_version('rake') == '13.0.1'

    def test_pattern_match_after_rename(self):
        """Test that a renamed gem is found through the matcher."""
        lockfile = GemfileLock(LOCKFILE)

        assert lockfile.find('mail_room') is None
        assert lockfile.gem_version('mail_room', MAILROOM.matches) == '0.0.4'

    def test_missing_gem(self):
        with pytest.raises(VersionNotFoundError, match='Unable to find a version for gem `mail_room`'):
            GemfileLock("GEM\n  specs:\n    rake (13.0.1)\n").gem_version('mail_room', MAILROOM.matches)
