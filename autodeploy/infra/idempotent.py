"""
Idempotent create calls for autodeploy.

Two runs racing on the same branch can both decide a tag is missing; the
loser gets "already exists" back. The retry policy below turns that answer
into success for every create call it decorates, in one place instead of at
each call site.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Type

from ..errors import AlreadyExists

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Failures that mean the object is already in the desired state.

    Anything not listed propagates unchanged; remote failures are not
    retried.
    """
    idempotent_errors: Tuple[Type[Exception], ...] = (AlreadyExists,)


DEFAULT_POLICY = RetryPolicy()


def recover_existing(lookup: str) -> Callable:
    """
    Decorate a create method so an idempotent failure returns the existing object.

    The decorated method must take (project, name, ...) and the wrapped client
    must expose a `lookup(project, name)` method.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, project, name, *args, **kwargs):
            try:
                return func(self, project, name, *args, **kwargs)
            except self.policy.idempotent_errors:
                logger.info(
                    f"{func.__name__}: {name} already exists in "
                    f"{self.client.project_path(project)}, treating as success"
                )
                return getattr(self.client, lookup)(project, name)
        return wrapper
    return decorator


class IdempotentClient:
    """
    Content-provider wrapper applying a RetryPolicy to create calls.

    Every other attribute is forwarded to the wrapped client.
    """

    def __init__(self, client: Any, policy: RetryPolicy = DEFAULT_POLICY):
        self.client = client
        self.policy = policy

    def __getattr__(self, name: str) -> Any:
        return getattr(self.client, name)

    def __repr__(self) -> str:
        return f"IdempotentClient({self.client!r})"

    @recover_existing('tag')
    def create_tag(self, project, name, ref, message=None):
        return self.client.create_tag(project, name, ref, message)

    @recover_existing('branch')
    def create_branch(self, project, name, ref):
        return self.client.create_branch(project, name, ref)
