"""
GitLab API client infrastructure for autodeploy.

Provides a clean abstraction over the GitLab REST API:
- Resolves Project descriptors to the right path per instance
- Maps HTTP failures onto the autodeploy error taxonomy
- Handles rate limiting with exponential backoff
"""

import time
import logging
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Iterator, Union
from urllib.parse import quote

import requests

from ..domain.project import Environment, Project
from ..errors import AlreadyExists, RemoteError, RemoteNotFound, RemoteUnavailable

logger = logging.getLogger(__name__)

ProjectRef = Union[Project, str]


@dataclass
class Commit:
    """A commit as returned by the commits API."""
    id: str
    created_at: str
    title: str = ""
    status: Optional[str] = None
    last_pipeline_id: Optional[int] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'Commit':
        """Create from GitLab API response."""
        pipeline = data.get('last_pipeline') or {}
        return cls(
            id=data.get('id', ''),
            created_at=data.get('created_at') or data.get('committed_date', ''),
            title=data.get('title', ''),
            status=data.get('status'),
            last_pipeline_id=pipeline.get('id') if isinstance(pipeline, dict) else None,
        )


@dataclass
class CommitRef:
    """A branch or tag pointing at a commit."""
    type: str  # "branch" or "tag"
    name: str

    @property
    def is_tag(self) -> bool:
        return self.type == 'tag'


@dataclass
class GitTag:
    """A tag on a GitLab project."""
    name: str
    message: str = ""
    target: str = ""

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'GitTag':
        commit = data.get('commit') or {}
        return cls(
            name=data.get('name', ''),
            message=data.get('message') or '',
            target=data.get('target') or commit.get('id', ''),
        )


@dataclass
class Branch:
    """A branch on a GitLab project."""
    name: str
    commit: str = ""

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'Branch':
        commit = data.get('commit') or {}
        return cls(name=data.get('name', ''), commit=commit.get('id', ''))


@dataclass
class Job:
    """A CI job of a pipeline."""
    id: int
    name: str
    status: str = ""


@dataclass
class CommitAction:
    """One file change inside a commit."""
    action: str  # "create", "update", "delete"
    file_path: str
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'action': self.action, 'file_path': self.file_path}
        if self.content is not None:
            result['content'] = self.content
        return result


class GitLabClient:
    """
    GitLab API client with rate limiting.

    One client talks to one instance (production, dev or ops). Project
    descriptors are translated to that instance's path; a production client
    in a security release uses the security mirror paths.

    Example:
        client = GitLabClient("https://gitlab.com/api/v4", token="...")
        contents = client.file_contents(Project.GITLAB_EE, "VERSION", "master")
    """

    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        environment: Environment = Environment.PRODUCTION,
        security_release: bool = False,
        timeout: int = 30,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize GitLabClient.

        Args:
            endpoint: API base URL, e.g. https://gitlab.com/api/v4
            token: Private token sent as PRIVATE-TOKEN
            environment: Which instance the endpoint belongs to
            security_release: Use security mirror paths on production
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for rate-limited requests
            base_delay: Base delay for exponential backoff
            max_delay: Maximum delay between retries
            session: requests session (creates new if None)
        """
        self.endpoint = endpoint.rstrip('/')
        self.environment = environment
        self.security_release = security_release
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': 'autodeploy'})
        if token:
            self.session.headers['PRIVATE-TOKEN'] = token

    @classmethod
    def for_environment(cls, config, environment: Environment) -> 'GitLabClient':
        """Build a client for one instance from a ReleaseConfig."""
        return cls(
            endpoint=config.endpoint_for(environment),
            token=config.token_for(environment),
            environment=environment,
            security_release=config.security_release,
            timeout=config.timeout,
            max_retries=config.max_retries,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
        )

    def __repr__(self) -> str:
        return f"GitLabClient({self.endpoint!r}, environment={self.environment.value})"

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    def project_path(self, project: ProjectRef) -> str:
        """Translate a Project to a `namespace/name` path on this instance."""
        if isinstance(project, Project):
            return project.path_for(self.environment, self.security_release)
        return project

    def _project_url(self, project: ProjectRef, *parts: str) -> str:
        path = quote(self.project_path(project), safe='')
        suffix = '/'.join(parts)
        return f"projects/{path}/{suffix}" if suffix else f"projects/{path}"

    def _backoff(self, attempt: int, response: requests.Response) -> float:
        reset_time = response.headers.get('RateLimit-Reset')
        if reset_time and reset_time.isdigit():
            wait_time = int(reset_time) - int(time.time())
            if 0 < wait_time < self.max_delay:
                return wait_time
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def _raise_for_status(self, method: str, path: str, response: requests.Response) -> None:
        status = response.status_code
        try:
            body = response.json()
            message = body.get('message') or body.get('error') or response.text
        except ValueError:
            message = response.text
        message = str(message)

        logger.warning(f"GitLab API error: method={method} path={path} status={status} error={message}")

        if status == 404:
            raise RemoteNotFound(message, status_code=status, method=method, path=path)
        if status in (400, 409) and 'already exists' in message.lower():
            raise AlreadyExists(message, status_code=status, method=method, path=path)
        if status >= 500:
            raise RemoteUnavailable(message, status_code=status, method=method, path=path)
        raise RemoteError(message, status_code=status, method=method, path=path)

    def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = f"{self.endpoint}/{path}"
        logger.debug(f"{method} {url} params={params}")

        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.request(
                    method, url, params=params, json=payload, timeout=self.timeout
                )
            except requests.RequestException as e:
                raise RemoteUnavailable(str(e), method=method, path=path) from e

            rate_limited = response.status_code == 429 or (
                response.status_code == 403 and response.headers.get('RateLimit-Remaining') == '0'
            )
            if rate_limited and attempt < self.max_retries:
                delay = self._backoff(attempt, response)
                logger.info(f"Rate limited, waiting {delay}s (attempt {attempt + 1})")
                time.sleep(delay)
                continue

            if response.status_code >= 400:
                self._raise_for_status(method, path, response)

            return response

        # Only reached when every attempt was rate limited
        raise RemoteUnavailable("Rate limit retries exhausted", status_code=429, method=method, path=path)

    def _json(self, method: str, path: str, **kwargs) -> Any:
        response = self._send(method, path, **kwargs)
        if not response.content:
            return None
        return response.json()

    def _paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        params = dict(params or {})
        params.setdefault('per_page', 100)
        page: Optional[str] = '1'

        while page:
            params['page'] = page
            response = self._send('GET', path, params=params)
            yield from response.json()
            page = response.headers.get('X-Next-Page') or None

    # -------------------------------------------------------------------------
    # Repository content
    # -------------------------------------------------------------------------

    def file_contents(self, project: ProjectRef, file_path: str, ref: str) -> str:
        """
        Read a file at a ref.

        Raises:
            RemoteNotFound: If the project, ref or file does not exist
        """
        encoded = quote(file_path.lstrip('/'), safe='')
        path = self._project_url(project, 'repository', 'files', encoded, 'raw')
        return self._send('GET', path, params={'ref': ref}).text

    def create_commit(
        self,
        project: ProjectRef,
        branch: str,
        message: str,
        actions: List[CommitAction],
    ) -> Commit:
        data = self._json(
            'POST',
            self._project_url(project, 'repository', 'commits'),
            payload={
                'branch': branch,
                'commit_message': message,
                'actions': [action.to_dict() for action in actions],
            },
        )
        return Commit.from_api_response(data)

    def create_file(self, project: ProjectRef, file_path: str, branch: str, content: str, message: str) -> None:
        encoded = quote(file_path.lstrip('/'), safe='')
        self._json(
            'POST',
            self._project_url(project, 'repository', 'files', encoded),
            payload={'branch': branch, 'content': content, 'commit_message': message},
        )

    def edit_file(self, project: ProjectRef, file_path: str, branch: str, content: str, message: str) -> None:
        encoded = quote(file_path.lstrip('/'), safe='')
        self._json(
            'PUT',
            self._project_url(project, 'repository', 'files', encoded),
            payload={'branch': branch, 'content': content, 'commit_message': message},
        )

    # -------------------------------------------------------------------------
    # Commits and refs
    # -------------------------------------------------------------------------

    def commit(self, project: ProjectRef, ref: str) -> Commit:
        """Get the commit a ref (sha, branch or tag) points at."""
        data = self._json('GET', self._project_url(project, 'repository', 'commits', quote(ref, safe='')))
        return Commit.from_api_response(data)

    def commits(self, project: ProjectRef, ref_name: str, per_page: int = 100) -> List[Commit]:
        """List the most recent commits on a ref, newest first."""
        data = self._json(
            'GET',
            self._project_url(project, 'repository', 'commits'),
            params={'ref_name': ref_name, 'per_page': per_page},
        )
        return [Commit.from_api_response(item) for item in data or []]

    def commit_refs(self, project: ProjectRef, ref: str) -> List[CommitRef]:
        """List every branch and tag pointing at the commit ref resolves to."""
        path = self._project_url(project, 'repository', 'commits', quote(ref, safe=''), 'refs')
        return [
            CommitRef(type=item.get('type', ''), name=item.get('name', ''))
            for item in self._paginate(path, {'type': 'all'})
        ]

    def pipeline_jobs(self, project: ProjectRef, pipeline_id: int) -> Iterator[Job]:
        path = self._project_url(project, 'pipelines', str(pipeline_id), 'jobs')
        for item in self._paginate(path):
            yield Job(id=item.get('id', 0), name=item.get('name', ''), status=item.get('status', ''))

    # -------------------------------------------------------------------------
    # Tags and branches
    # -------------------------------------------------------------------------

    def create_tag(self, project: ProjectRef, name: str, ref: str, message: Optional[str] = None) -> GitTag:
        payload = {'tag_name': name, 'ref': ref}
        if message:
            payload['message'] = message
        data = self._json('POST', self._project_url(project, 'repository', 'tags'), payload=payload)
        return GitTag.from_api_response(data)

    def tag(self, project: ProjectRef, name: str) -> GitTag:
        data = self._json('GET', self._project_url(project, 'repository', 'tags', quote(name, safe='')))
        return GitTag.from_api_response(data)

    def create_branch(self, project: ProjectRef, name: str, ref: str) -> Branch:
        data = self._json(
            'POST',
            self._project_url(project, 'repository', 'branches'),
            payload={'branch': name, 'ref': ref},
        )
        return Branch.from_api_response(data)

    def branch(self, project: ProjectRef, name: str) -> Branch:
        data = self._json('GET', self._project_url(project, 'repository', 'branches', quote(name, safe='')))
        return Branch.from_api_response(data)

    # -------------------------------------------------------------------------
    # CI variables
    # -------------------------------------------------------------------------

    def update_variable(self, project: ProjectRef, key: str, value: str) -> None:
        self._json('PUT', self._project_url(project, 'variables', key), payload={'value': value})

    def create_variable(self, project: ProjectRef, key: str, value: str) -> None:
        self._json('POST', self._project_url(project, 'variables'), payload={'key': key, 'value': value})
