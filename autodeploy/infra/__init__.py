"""
Infrastructure layer for autodeploy.

Contains abstractions for external systems:
- GitLabClient: GitLab REST API access (production, dev, ops instances)
- IdempotentClient: Treats "already exists" on create calls as success

These provide clean interfaces that can be mocked for testing.
"""

from .gitlab_client import (
    GitLabClient,
    Commit,
    CommitRef,
    CommitAction,
    GitTag,
    Branch,
    Job,
)
from .idempotent import IdempotentClient, RetryPolicy, DEFAULT_POLICY

__all__ = [
    'GitLabClient',
    'Commit',
    'CommitRef',
    'CommitAction',
    'GitTag',
    'Branch',
    'Job',
    'IdempotentClient',
    'RetryPolicy',
    'DEFAULT_POLICY',
]
