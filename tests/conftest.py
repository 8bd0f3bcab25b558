"""
Shared fixtures: an in-memory GitLab standing in for GitLabClient.

FakeGitLab keeps files per (project, ref), branch heads, tags and CI
variables, and records every call so tests can assert which mutations were
(or were not) made.
"""

import itertools
import logging
from typing import Dict, List, Optional, Tuple

import pytest

from autodeploy.config import ReleaseConfig
from autodeploy.domain.project import Project
from autodeploy.errors import AlreadyExists, RemoteError, RemoteNotFound
from autodeploy.infra.gitlab_client import (
    Branch,
    Commit,
    CommitRef,
    GitTag,
    Job,
)

BRANCH = '12-9-auto-deploy-20200226'
UPSTREAM_SHA = '36b70d9ce7c73ca001be48727d35d49813d2cc4f'

GEMFILE_LOCK = """\
GEM
  remote: https://rubygems.org/
  specs:
    mail_room (0.10.0)
      charlock_holmes (~> 0.7)
      redis (>= 3.3.5)
    rake (13.0.1)

PLATFORMS
  ruby

BUNDLED WITH
   2.1.4
"""

UPSTREAM_FILES = {
    'GITALY_SERVER_VERSION': '1.83.0\n',
    'GITLAB_ELASTICSEARCH_INDEXER_VERSION': '2.0.0\n',
    'GITLAB_PAGES_VERSION': '1.14.0\n',
    'GITLAB_SHELL_VERSION': '11.0.0\n',
    'GITLAB_WORKHORSE_VERSION': '8.19.0\n',
    'Gemfile.lock': GEMFILE_LOCK,
}

CNG_VARIABLES = """\
variables:
  GITLAB_VERSION: 0000000000000000000000000000000000000000
  GITALY_VERSION: v1.82.0
  REGISTRY_VERSION: v2.7.1-gitlab
  ALPINE_VERSION: '3.10'
"""

MUTATIONS = frozenset({
    'create_commit',
    'create_file',
    'edit_file',
    'create_tag',
    'create_branch',
    'update_variable',
    'create_variable',
})


class FakeGitLab:
    """In-memory stand-in for GitLabClient."""

    def __init__(self, name: str = 'production'):
        self.name = name
        self.files: Dict[Tuple[Project, str], Dict[str, str]] = {}
        self.heads: Dict[Tuple[Project, str], Commit] = {}
        self.commits_by_id: Dict[Tuple[Project, str], Commit] = {}
        self.history: Dict[Tuple[Project, str], List[Commit]] = {}
        self.tags: Dict[Tuple[Project, str], GitTag] = {}
        self.jobs: Dict[int, List[Job]] = {}
        self.variables: Dict[Tuple[Project, str], str] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[Tuple] = []
        self._ids = itertools.count(1)

    # -- helpers for tests --------------------------------------------------

    def next_sha(self) -> str:
        return f"{next(self._ids):040x}"

    def add_commit(
        self,
        project: Project,
        sha: Optional[str] = None,
        files: Optional[Dict[str, str]] = None,
        created_at: str = '2020-02-26T10:00:00+00:00',
        status: Optional[str] = 'success',
        pipeline_id: Optional[int] = None,
    ) -> Commit:
        commit = Commit(
            id=sha or self.next_sha(),
            created_at=created_at,
            status=status,
            last_pipeline_id=pipeline_id,
        )
        self.commits_by_id[(project, commit.id)] = commit
        self.files[(project, commit.id)] = dict(files or {})
        return commit

    def set_branch(self, project: Project, branch: str, commit: Commit) -> None:
        self.heads[(project, branch)] = commit
        self.files[(project, branch)] = dict(self.files.get((project, commit.id), {}))
        self.history.setdefault((project, branch), []).insert(0, commit)

    def mutations(self, method: Optional[str] = None) -> List[Tuple]:
        return [
            call for call in self.calls
            if call[0] in MUTATIONS and (method is None or call[0] == method)
        ]

    def _record(self, method: str, *args) -> None:
        self.calls.append((method,) + args)
        if method in self.failures:
            raise self.failures[method]

    def _resolve(self, project: Project, ref: str) -> Commit:
        if (project, ref) in self.heads:
            return self.heads[(project, ref)]
        if (project, ref) in self.commits_by_id:
            return self.commits_by_id[(project, ref)]
        raise RemoteNotFound("404 Commit Not Found", status_code=404)

    # -- GitLabClient interface ----------------------------------------------

    def project_path(self, project) -> str:
        return str(project)

    def file_contents(self, project, file_path, ref):
        self._record('file_contents', project, file_path, ref)
        try:
            return self.files[(project, ref)][file_path]
        except KeyError:
            raise RemoteNotFound("404 File Not Found", status_code=404) from None

    def create_commit(self, project, branch, message, actions):
        self._record('create_commit', project, branch, message, actions)
        if (project, branch) not in self.heads:
            raise RemoteNotFound("404 Branch Not Found", status_code=404)

        files = dict(self.files[(project, branch)])
        for action in actions:
            if action.action == 'create' and action.file_path in files:
                raise AlreadyExists("A file with this name already exists", status_code=400)
            files[action.file_path] = action.content

        commit = self.add_commit(project, files=files, created_at='2020-02-26T11:30:00+00:00')
        self.set_branch(project, branch, commit)
        return commit

    def create_file(self, project, file_path, branch, content, message):
        self._record('create_file', project, file_path, branch, content, message)
        files = self.files.setdefault((project, branch), {})
        if file_path in files:
            raise AlreadyExists("A file with this name already exists", status_code=400)
        files[file_path] = content

    def edit_file(self, project, file_path, branch, content, message):
        self._record('edit_file', project, file_path, branch, content, message)
        files = self.files.setdefault((project, branch), {})
        if file_path not in files:
            raise RemoteError("A file with this name doesn't exist", status_code=400)
        files[file_path] = content

    def commit(self, project, ref):
        self._record('commit', project, ref)
        return self._resolve(project, ref)

    def commits(self, project, ref_name, per_page=100):
        self._record('commits', project, ref_name)
        return list(self.history.get((project, ref_name), []))[:per_page]

    def commit_refs(self, project, ref):
        self._record('commit_refs', project, ref)
        sha = self._resolve(project, ref).id
        refs = [
            CommitRef(type='branch', name=name)
            for (p, name), head in self.heads.items()
            if p == project and head.id == sha
        ]
        refs.extend(
            CommitRef(type='tag', name=name)
            for (p, name), tag in self.tags.items()
            if p == project and tag.target == sha
        )
        return refs

    def pipeline_jobs(self, project, pipeline_id):
        self._record('pipeline_jobs', project, pipeline_id)
        return iter(self.jobs.get(pipeline_id, []))

    def create_tag(self, project, name, ref, message=None):
        self._record('create_tag', project, name, ref, message)
        if (project, name) in self.tags:
            raise AlreadyExists("Tag already exists", status_code=400)
        target = self._resolve(project, ref).id
        tag = GitTag(name=name, message=message or '', target=target)
        self.tags[(project, name)] = tag
        return tag

    def tag(self, project, name):
        self._record('tag', project, name)
        try:
            return self.tags[(project, name)]
        except KeyError:
            raise RemoteNotFound("404 Tag Not Found", status_code=404) from None

    def create_branch(self, project, name, ref):
        self._record('create_branch', project, name, ref)
        if (project, name) in self.heads:
            raise AlreadyExists("Branch already exists", status_code=400)
        commit = self._resolve(project, ref)
        self.set_branch(project, name, commit)
        return Branch(name=name, commit=commit.id)

    def branch(self, project, name):
        self._record('branch', project, name)
        if (project, name) not in self.heads:
            raise RemoteNotFound("404 Branch Not Found", status_code=404)
        return Branch(name=name, commit=self.heads[(project, name)].id)

    def update_variable(self, project, key, value):
        self._record('update_variable', project, key, value)
        if (project, key) not in self.variables:
            raise RemoteNotFound("404 Variable Not Found", status_code=404)
        self.variables[(project, key)] = value

    def create_variable(self, project, key, value):
        self._record('create_variable', project, key, value)
        self.variables[(project, key)] = value


def seed_upstream(fake: FakeGitLab, sha: str = UPSTREAM_SHA) -> Commit:
    """Upstream commit with every version file and the lockfile."""
    commit = fake.add_commit(Project.GITLAB_EE, sha=sha, files=UPSTREAM_FILES)
    fake.set_branch(Project.GITLAB_EE, BRANCH, commit)
    return commit


def seed_packagers(fake: FakeGitLab) -> None:
    """Packager auto-deploy branches holding older component versions."""
    omnibus = fake.add_commit(
        Project.OMNIBUS_GITLAB,
        files={
            'VERSION': '0000000000000000000000000000000000000000\n',
            'GITALY_SERVER_VERSION': 'v1.82.0\n',
            'GITLAB_ELASTICSEARCH_INDEXER_VERSION': 'v2.0.0\n',
            'GITLAB_PAGES_VERSION': 'v1.14.0\n',
            'GITLAB_SHELL_VERSION': 'v11.0.0\n',
            'GITLAB_WORKHORSE_VERSION': 'v8.19.0\n',
        },
        created_at='2020-02-26T09:00:00+00:00',
    )
    fake.set_branch(Project.OMNIBUS_GITLAB, BRANCH, omnibus)

    cng = fake.add_commit(
        Project.CNG_IMAGE,
        files={'ci_files/variables.yml': CNG_VARIABLES},
        created_at='2020-02-26T09:05:00+00:00',
    )
    fake.set_branch(Project.CNG_IMAGE, BRANCH, cng)


@pytest.fixture
def config():
    """Live-mode configuration with release metadata on."""
    return ReleaseConfig(tokens={}, max_workers=1)


@pytest.fixture
def dry_config(config):
    return config.with_overrides(dry_run=True)


@pytest.fixture
def gitlab():
    """Fake production instance seeded with upstream and packager branches."""
    fake = FakeGitLab('production')
    seed_upstream(fake)
    seed_packagers(fake)
    return fake


@pytest.fixture
def ops():
    """Fake ops instance with the deployer and metadata projects."""
    fake = FakeGitLab('ops')
    deployer = fake.add_commit(Project.DEPLOYER)
    fake.set_branch(Project.DEPLOYER, 'master', deployer)
    fake.files[(Project.RELEASE_METADATA, 'master')] = {}
    return fake


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging so caplog sees records in every test."""
    yield
    logger = logging.getLogger('autodeploy')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
