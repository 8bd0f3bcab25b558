"""
Error taxonomy for autodeploy.

Callers distinguish "not a version" from "remote failure" by type:

- VersionParseError: malformed version string, never retried
- ComponentNotFoundError / VersionNotFoundError: resolution failures
- RemoteError and subclasses: GitLab API failures
- NoPassingCommitError: nothing on the upstream branch is safe to release
- PipelineCancelled: the caller asked a batch to stop
- ConfigError: an explicitly requested config file is unreadable
"""

from typing import Optional


class ReleaseToolsError(Exception):
    """Base class for all autodeploy errors."""


class VersionParseError(ReleaseToolsError, ValueError):
    """Raised when a string does not follow any supported version grammar."""

    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(f"Invalid version: {raw!r}")


class ComponentNotFoundError(ReleaseToolsError):
    """A version file (or lockfile) is missing at the requested commit."""

    def __init__(self, component: str, ref: Optional[str] = None):
        self.component = component
        self.ref = ref
        where = f" at {ref}" if ref else ""
        super().__init__(f"Unable to find component `{component}`{where}")


class VersionNotFoundError(ReleaseToolsError):
    """A dependency manifest does not pin the requested package."""

    def __init__(self, package: str):
        self.package = package
        super().__init__(f"Unable to find a version for gem `{package}`")


class RemoteError(ReleaseToolsError):
    """A GitLab API call failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        method: Optional[str] = None,
        path: Optional[str] = None,
    ):
        self.status_code = status_code
        self.method = method
        self.path = path
        super().__init__(message)


class RemoteNotFound(RemoteError):
    """The project, ref or file does not exist (HTTP 404)."""


class RemoteUnavailable(RemoteError):
    """The API could not be reached or answered with a server error."""


class AlreadyExists(RemoteError):
    """The object being created (tag, branch, file) already exists."""


class PipelineCancelled(ReleaseToolsError):
    """The caller-supplied cancel event was set between pipeline steps."""


class NoPassingCommitError(ReleaseToolsError):
    """No recent commit on a ref has a full passing pipeline."""

    def __init__(self, project: str, ref: str):
        self.project = project
        self.ref = ref
        super().__init__(f"Unable to find a passing build for {project} {ref}")


class ConfigError(ReleaseToolsError):
    """An explicitly requested configuration file cannot be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to load configuration from {path}: {reason}")
