"""HTTP client for the cluster API."""

from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import quote

import requests

from appctl.errors import ClusterError
from appctl.logging import StructuredLogger
from appctl.models import DeploymentRequest, InstanceState, RouteOverride

logger = StructuredLogger("cluster")


class ClusterClient:
    """Client for the cluster's app and task API."""

    def __init__(
        self,
        api_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        request_timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the cluster client.

        Args:
            api_url: Base URL of the cluster API (e.g., http://receptor.example.com)
            username: Basic auth username, if the cluster requires one
            password: Basic auth password
            request_timeout: Timeout in seconds for individual HTTP requests
            session: Session to use instead of a new one
        """
        self.api_url = api_url.rstrip('/')
        self.request_timeout = request_timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})
        if username:
            self.session.auth = (username, password or '')

    def _url(self, path: str) -> str:
        return f"{self.api_url}{path}"

    @staticmethod
    def _app_path(name: str, suffix: str = '') -> str:
        return f'/v1/apps/{quote(name, safe="")}{suffix}'

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Send a request and raise ClusterError for transport or HTTP failures."""
        url = self._url(path)
        logger.debug("Cluster request", fields={"method": method, "url": url})
        kwargs.setdefault('timeout', self.request_timeout)

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ClusterError(f"Unable to reach cluster at {self.api_url}: {e}")

        if response.status_code >= 400:
            raise ClusterError(self._error_message(response), status_code=response.status_code)
        return response

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get('error'):
            return str(body['error'])
        text = response.text.strip()
        return text or f"HTTP {response.status_code}"

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError:
            raise ClusterError(f"Invalid JSON response from {response.url}")

    def submit_create(self, request: DeploymentRequest) -> None:
        """Ask the cluster to create an app."""
        self._request('POST', '/v1/apps', json=request.to_payload())

    def submit_scale(self, name: str, instances: int) -> None:
        """Ask the cluster to run `instances` instances of an app."""
        self._request('PUT', self._app_path(name, '/instances'), json={'instances': instances})

    def submit_route_update(self, name: str, routes: List[RouteOverride]) -> None:
        """Replace the route overrides of an app."""
        self._request('PUT', self._app_path(name, '/routes'), json=[route.to_dict() for route in routes])

    def submit_remove(self, name: str) -> None:
        """Ask the cluster to stop and remove an app."""
        self._request('DELETE', self._app_path(name))

    def query_instance_state(self, name: str) -> InstanceState:
        """Get the running instance count and placement status of an app."""
        body = self._json(self._request('GET', self._app_path(name, '/instances')))
        try:
            return InstanceState(
                running=int(body.get('running', 0)),
                placement_error=bool(body.get('placement_error', False))
            )
        except (AttributeError, TypeError, ValueError):
            raise ClusterError(f"Unexpected instance state for {name}: {body}")

    def query_exists(self, name: str) -> bool:
        """Check whether the cluster still knows about an app."""
        try:
            self._request('GET', self._app_path(name))
        except ClusterError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    def stream_logs(self, name: str) -> Iterator[str]:
        """Yield log lines for an app as the cluster emits them."""
        response = self._request('GET', self._app_path(name, '/logs'), stream=True, timeout=None)
        try:
            for line in response.iter_lines(decode_unicode=True):
                if line:
                    yield line
        except requests.exceptions.RequestException as e:
            raise ClusterError(f"Log stream for {name} interrupted: {e}")
        finally:
            response.close()

    def submit_task(self, definition: Dict[str, Any]) -> str:
        """Submit a one-off task and return its guid."""
        task_guid = definition.get('task_guid', '')
        self._request('POST', '/v1/tasks', json=definition)
        return task_guid

    def delete_task(self, task_guid: str) -> None:
        """Delete a task by guid."""
        self._request('DELETE', f'/v1/tasks/{quote(task_guid, safe="")}')
