"""
Tests for IdempotentClient.
"""

from unittest.mock import MagicMock

import pytest

from autodeploy.domain.project import Project
from autodeploy.errors import AlreadyExists, RemoteUnavailable
from autodeploy.infra.gitlab_client import Branch, GitTag
from autodeploy.infra.idempotent import IdempotentClient, RetryPolicy


@pytest.fixture
def wrapped():
    client = MagicMock()
    client.project_path.return_value = 'gitlab-org/omnibus-gitlab'
    return client


class TestIdempotentClient:
    def test_passes_through_success(self, wrapped):
        wrapped.create_tag.return_value = GitTag(name='v1', target='abc')

        tag = IdempotentClient(wrapped).create_tag(Project.OMNIBUS_GITLAB, 'v1', 'abc', 'message')

        assert tag.target == 'abc'
        wrapped.create_tag.assert_called_once_with(Project.OMNIBUS_GITLAB, 'v1', 'abc', 'message')
        wrapped.tag.assert_not_called()

    def test_existing_tag_is_returned(self, wrapped):
        """Test that a lost create race returns the tag already there."""
        wrapped.create_tag.side_effect = AlreadyExists("Tag v1 already exists", status_code=400)
        wrapped.tag.return_value = GitTag(name='v1', target='def')

        tag = IdempotentClient(wrapped).create_tag(Project.OMNIBUS_GITLAB, 'v1', 'abc')

        assert tag.target == 'def'
        wrapped.tag.assert_called_once_with(Project.OMNIBUS_GITLAB, 'v1')

    def test_existing_branch_is_returned(self, wrapped):
        wrapped.create_branch.side_effect = AlreadyExists("Branch already exists", status_code=400)
        wrapped.branch.return_value = Branch(name='b', commit='abc')

        branch = IdempotentClient(wrapped).create_branch(Project.CNG_IMAGE, 'b', 'master')

        assert branch.commit == 'abc'

    def test_other_errors_propagate(self, wrapped):
        wrapped.create_tag.side_effect = RemoteUnavailable("502 Bad Gateway", status_code=502)

        with pytest.raises(RemoteUnavailable):
            IdempotentClient(wrapped).create_tag(Project.OMNIBUS_GITLAB, 'v1', 'abc')

    def test_custom_policy(self, wrapped):
        """Test that an empty policy lets AlreadyExists through."""
        wrapped.create_tag.side_effect = AlreadyExists("Tag v1 already exists", status_code=400)

        with pytest.raises(AlreadyExists):
            IdempotentClient(wrapped, RetryPolicy(idempotent_errors=())).create_tag(Project.OMNIBUS_GITLAB, 'v1', 'abc')

    def test_forwards_other_calls(self, wrapped):
        wrapped.file_contents.return_value = 'abc'

        assert IdempotentClient(wrapped).file_contents(Project.GITLAB_EE, 'VERSION', 'master') == 'abc'
