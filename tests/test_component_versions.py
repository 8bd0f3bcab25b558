"""
Tests for ComponentVersionResolver.
"""

import pytest

from autodeploy.domain.project import Project
from autodeploy.errors import ComponentNotFoundError, VersionNotFoundError
from autodeploy.services.component_versions import ComponentVersionResolver

from conftest import UPSTREAM_FILES, UPSTREAM_SHA, FakeGitLab


@pytest.fixture
def upstream():
    fake = FakeGitLab()
    fake.add_commit(Project.GITLAB_EE, sha=UPSTREAM_SHA, files=UPSTREAM_FILES)
    return fake


class TestResolve:
    """Tests for ComponentVersionResolver.resolve."""

    def test_full_map(self, config, upstream):
        """Test that every component is resolved, in order, with the commit first."""
        versions = ComponentVersionResolver(config, upstream).resolve(UPSTREAM_SHA)

        assert versions == {
            'VERSION': UPSTREAM_SHA,
            'GITALY_SERVER_VERSION': '1.83.0',
            'GITLAB_ELASTICSEARCH_INDEXER_VERSION': '2.0.0',
            'GITLAB_PAGES_VERSION': '1.14.0',
            'GITLAB_SHELL_VERSION': '11.0.0',
            'GITLAB_WORKHORSE_VERSION': '8.19.0',
            'mail_room': '0.10.0',
        }
        assert list(versions)[0] == 'VERSION'

    def test_trims_trailing_whitespace(self, config, upstream):
        """Test that "1.83.0\\n" resolves to "1.83.0"."""
        upstream.files[(Project.GITLAB_EE, UPSTREAM_SHA)]['GITALY_SERVER_VERSION'] = '1.83.0\n'

        resolver = ComponentVersionResolver(config, upstream)

        assert resolver.get_component(UPSTREAM_SHA, 'GITALY_SERVER_VERSION') == '1.83.0'

    def test_reads_at_commit(self, config, upstream):
        ComponentVersionResolver(config, upstream).resolve(UPSTREAM_SHA)

        reads = [call for call in upstream.calls if call[0] == 'file_contents']
        assert reads
        assert all(call[1] is Project.GITLAB_EE and call[3] == UPSTREAM_SHA for call in reads)

    def test_missing_version_file(self, config, upstream):
        """Test that a missing version file is a hard failure."""
        del upstream.files[(Project.GITLAB_EE, UPSTREAM_SHA)]['GITLAB_PAGES_VERSION']

        with pytest.raises(ComponentNotFoundError) as exc_info:
            ComponentVersionResolver(config, upstream).resolve(UPSTREAM_SHA)

        assert exc_info.value.component == 'GITLAB_PAGES_VERSION'
        assert exc_info.value.ref == UPSTREAM_SHA

    def test_missing_lockfile(self, config, upstream):
        del upstream.files[(Project.GITLAB_EE, UPSTREAM_SHA)]['Gemfile.lock']

        with pytest.raises(ComponentNotFoundError, match='Gemfile.lock'):
            ComponentVersionResolver(config, upstream).resolve(UPSTREAM_SHA)

    def test_gem_not_pinned(self, config, upstream):
        """Test that a lockfile without the gem is a hard failure."""
        upstream.files[(Project.GITLAB_EE, UPSTREAM_SHA)]['Gemfile.lock'] = "GEM\n  specs:\n    rake (13.0.1)\n"

        with pytest.raises(VersionNotFoundError):
            ComponentVersionResolver(config, upstream).resolve(UPSTREAM_SHA)

    def test_unknown_commit(self, config, upstream):
        with pytest.raises(ComponentNotFoundError):
            ComponentVersionResolver(config, upstream).resolve('f' * 40)

    def test_repeatable(self, config, upstream):
        """Test that resolving twice gives the same map and writes nothing."""
        resolver = ComponentVersionResolver(config, upstream)

        assert resolver.resolve(UPSTREAM_SHA) == resolver.resolve(UPSTREAM_SHA)
        assert upstream.mutations() == []
