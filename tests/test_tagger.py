"""
Tests for Tagger.
"""

import json

import pytest

from autodeploy.domain.operation import OperationStatus
from autodeploy.domain.project import CNG_PROFILE, OMNIBUS_PROFILE, Project
from autodeploy.domain.tag import AutoDeployBranch, TagState
from autodeploy.errors import RemoteUnavailable
from autodeploy.infra.gitlab_client import GitTag
from autodeploy.services.metadata_uploader import metadata_path
from autodeploy.services.tagger import Tagger

from conftest import BRANCH, UPSTREAM_SHA

OMNIBUS_VERSIONS = {
    'VERSION': UPSTREAM_SHA,
    'GITALY_SERVER_VERSION': 'v1.83.0',
    'GITLAB_ELASTICSEARCH_INDEXER_VERSION': 'v2.0.0',
    'GITLAB_PAGES_VERSION': 'v1.14.0',
    'GITLAB_SHELL_VERSION': 'v11.0.0',
    'GITLAB_WORKHORSE_VERSION': 'v8.19.0',
}

CNG_VERSIONS = {
    'GITLAB_VERSION': UPSTREAM_SHA,
    'GITLAB_ASSETS_TAG': UPSTREAM_SHA,
    'GITLAB_REF_SLUG': UPSTREAM_SHA,
    'GITALY_VERSION': 'v1.83.0',
}

# Omnibus head seeded at 2020-02-26T09:00 is the fake's first generated sha
OMNIBUS_HEAD = f"{1:040x}"
OMNIBUS_TAG = f"12.9.202002260900+36b70d9ce7c.{OMNIBUS_HEAD[:11]}"
CNG_TAG = '12.9.202002260905+36b70d9ce7c'


@pytest.fixture
def tagger(config, gitlab, ops):
    return Tagger(config, gitlab, ops)


class TestTagSpec:
    """Tests for the pure tag derivation."""

    def test_omnibus_name_and_message(self, tagger, gitlab):
        head = gitlab.heads[(Project.OMNIBUS_GITLAB, BRANCH)]
        spec = tagger.tag_spec(OMNIBUS_PROFILE, AutoDeployBranch.parse(BRANCH), head, OMNIBUS_VERSIONS)

        assert spec.name == OMNIBUS_TAG
        assert spec.target == OMNIBUS_HEAD
        assert spec.message.splitlines()[0] == f"Auto-deploy Omnibus {OMNIBUS_TAG}"
        assert spec.message.splitlines()[1] == ''
        assert f"VERSION: {UPSTREAM_SHA}" in spec.message
        assert 'GITALY_SERVER_VERSION: v1.83.0' in spec.message


class TestTag:
    """Tests for Tagger.tag."""

    def test_tags_head_and_dependent(self, tagger, gitlab, ops):
        """Test the full path: primary tag, then the mirror tag on the deployer."""
        result = tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.state is TagState.DEPENDENT_TAG_CREATED
        assert result.status == OperationStatus.SUCCESS
        assert result.tag_name == OMNIBUS_TAG

        primary = gitlab.tags[(Project.OMNIBUS_GITLAB, OMNIBUS_TAG)]
        assert primary.target == OMNIBUS_HEAD
        assert primary.message.startswith(f"Auto-deploy Omnibus {OMNIBUS_TAG}\n\n")

        mirror = ops.tags[(Project.DEPLOYER, OMNIBUS_TAG)]
        assert mirror.target == ops.heads[(Project.DEPLOYER, 'master')].id
        assert mirror.message == primary.message

    def test_transitions(self, tagger):
        """Test that a fresh head goes through every state to the mirror tag."""
        result = tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.transitions == (
            TagState.UNCHANGED,
            TagState.PENDING_TAG,
            TagState.TAG_CREATED,
            TagState.DEPENDENT_TAG_CREATED,
        )
        assert result.to_dict()['transitions'][-1] == 'dependent_tag_created'

    def test_cng_has_no_dependent(self, tagger, gitlab, ops):
        result = tagger.tag(CNG_PROFILE, BRANCH, CNG_VERSIONS)

        assert result.state is TagState.TAG_CREATED
        assert result.tag_name == CNG_TAG
        assert (Project.CNG_IMAGE, CNG_TAG) in gitlab.tags
        assert ops.mutations('create_tag') == []

    def test_already_tagged_head_is_skipped(self, tagger, gitlab, ops, caplog):
        """Test that any tag on the head means there is nothing to do."""
        gitlab.tags[(Project.OMNIBUS_GITLAB, 'earlier')] = GitTag(name='earlier', target=OMNIBUS_HEAD)

        result = tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.state is TagState.SKIPPED
        assert result.status == OperationStatus.SKIPPED
        assert gitlab.mutations() == []
        assert ops.mutations() == []
        assert 'nothing to tag' in caplog.text
        assert result.transitions == (TagState.UNCHANGED, TagState.SKIPPED)

    def test_second_run_is_skipped(self, tagger, gitlab):
        tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        result = tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.state is TagState.SKIPPED
        assert len(gitlab.mutations('create_tag')) == 1

    def test_lost_race_is_success(self, tagger, gitlab):
        """Test that a tag created concurrently under the same name is accepted."""
        gitlab.tags[(Project.OMNIBUS_GITLAB, OMNIBUS_TAG)] = GitTag(name=OMNIBUS_TAG, target='f' * 40)

        result = tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.state is TagState.DEPENDENT_TAG_CREATED
        assert gitlab.tags[(Project.OMNIBUS_GITLAB, OMNIBUS_TAG)].target == 'f' * 40

    def test_dry_run(self, dry_config, gitlab, ops):
        """Test that dry-run derives the tag without creating anything."""
        result = Tagger(dry_config, gitlab, ops).tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.state is TagState.DRY_RUN
        assert result.status == OperationStatus.DRY_RUN
        assert result.transitions == (TagState.UNCHANGED, TagState.PENDING_TAG, TagState.DRY_RUN)
        assert result.tag_name == OMNIBUS_TAG
        assert gitlab.mutations() == []
        assert ops.mutations() == []

    def test_dependent_failure(self, tagger, gitlab, ops, caplog):
        """Test that the primary tag stands when the mirror tag fails."""
        ops.failures['create_tag'] = RemoteUnavailable("502 Bad Gateway", status_code=502)

        result = tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.state is TagState.DEPENDENT_TAG_FAILED
        assert result.status == OperationStatus.FAILED
        assert result.error == 'dependent tag failed'
        assert (Project.OMNIBUS_GITLAB, OMNIBUS_TAG) in gitlab.tags
        assert 'Failed to tag deployer' in caplog.text

    def test_primary_failure(self, tagger, gitlab, ops):
        gitlab.failures['create_tag'] = RemoteUnavailable("500 Internal Server Error", status_code=500)

        result = tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.state is TagState.FAILED
        assert result.action == 'tag_failed'
        assert ops.mutations() == []

    def test_unreachable_packager(self, tagger, gitlab):
        gitlab.failures['commit_refs'] = RemoteUnavailable("connection refused")

        result = tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.state is TagState.FAILED
        assert result.tag_name is None

    def test_invalid_branch(self, tagger):
        with pytest.raises(ValueError, match='Unable to determine version'):
            tagger.tag(OMNIBUS_PROFILE, 'master', OMNIBUS_VERSIONS)


class TestReleaseMetadata:
    """Tests for the metadata recorded after tagging."""

    def test_uploaded_after_tag(self, tagger, ops):
        tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        path = metadata_path('omnibus', OMNIBUS_TAG)
        stored = json.loads(ops.files[(Project.RELEASE_METADATA, 'master')][path])
        releases = stored['releases']

        assert releases['omnibus-gitlab-ee'] == {
            'version': OMNIBUS_HEAD,
            'sha': OMNIBUS_HEAD,
            'ref': BRANCH,
            'tag': False,
        }
        assert releases['gitlab-ee']['sha'] == UPSTREAM_SHA
        assert releases['gitaly'] == {'version': '1.83.0', 'sha': None, 'ref': 'v1.83.0', 'tag': True}

    def test_disabled(self, config, gitlab, ops):
        tagger = Tagger(config.with_overrides(release_metadata=False), gitlab, ops)

        tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert ops.mutations('create_file') == []

    def test_upload_failure_is_ignored(self, tagger, gitlab, ops):
        ops.failures['create_file'] = RemoteUnavailable("503 Service Unavailable", status_code=503)

        result = tagger.tag(OMNIBUS_PROFILE, BRANCH, OMNIBUS_VERSIONS)

        assert result.state is TagState.DEPENDENT_TAG_CREATED
