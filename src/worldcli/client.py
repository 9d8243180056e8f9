"""HTTP client for the World Forge API.

Every Forge endpoint answers with a ``{"data": ...}`` envelope. ``ForgeClient``
sends authenticated JSON requests with httpx, unwraps the envelope, and turns
transport failures, error statuses and malformed bodies into ``APIError``.
There are no retries: a failure is reported to the caller immediately.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import IO, Any
from urllib.parse import quote

import httpx

from . import errors
from .logging import get_logger
from .models import (
    DeploymentInfo,
    DeploymentPreview,
    EnvironmentHealth,
    LoginLink,
    LoginToken,
    Organization,
    Project,
    User,
)

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
# Image uploads can be large
UPLOAD_TIMEOUT = 600.0
AUTH_PREFIX = "ArgusID "
MAX_TEXT_MESSAGE = 200


def _error_message(response: httpx.Response) -> str:
    """Extract the backend's error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    # Some handlers answer with a plain-text body
    text = response.text.strip() if body is None else ""
    if text and len(text) <= MAX_TEXT_MESSAGE and "\n" not in text:
        return text
    return f"{response.status_code} {response.reason_phrase}".strip()


@dataclass
class ForgeClient:
    """Client for the Forge REST API.

    Usage:
        with ForgeClient(base_url, token=token) as client:
            orgs = client.get_organizations()

    Attributes:
        base_url: Forge base URL, e.g. https://forge.world.dev.
        token: Login token sent as ``Authorization: ArgusID <token>``.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    base_url: str
    token: str = ""
    timeout: float = DEFAULT_TIMEOUT
    transport: httpx.BaseTransport | None = field(default=None, repr=False)
    _http: httpx.Client | None = field(default=None, repr=False)

    @property
    def http(self) -> httpx.Client:
        """Lazily create the underlying httpx.Client."""
        if self._http is None:
            self._http = httpx.Client(
                base_url=self.base_url.rstrip("/"),
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._http

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    def __enter__(self) -> ForgeClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def set_token(self, token: str) -> None:
        self.token = token

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": AUTH_PREFIX + self.token}

    def _send(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send a request and raise APIError for anything but a 2xx response."""
        logger.debug(f"{method} {endpoint} params={params}")
        try:
            response = self.http.request(
                method,
                endpoint,
                json=json,
                params=params,
                data=data,
                files=files,
                headers=self._headers(),
                timeout=timeout or self.timeout,
            )
        except httpx.TimeoutException as e:
            raise errors.TimeoutError(
                f"Request to {endpoint} timed out after {timeout or self.timeout}s",
                details={"endpoint": endpoint},
            ) from e
        except httpx.TransportError as e:
            raise errors.ConnectionError(
                f"Could not connect to World Forge at {self.base_url}",
                details={"endpoint": endpoint, "error": str(e)},
            ) from e

        if response.is_error:
            message = _error_message(response)
            logger.debug(f"{method} {endpoint} failed: {response.status_code} {message}")
            raise errors.APIError(
                message,
                status_code=response.status_code,
                details={"endpoint": endpoint, "method": method},
            )
        return response

    def _request(self, method: str, endpoint: str, *, allow_null: bool = False, **kwargs: Any) -> Any:
        """Send a request and return the unwrapped ``data`` payload.

        Args:
            method: HTTP method.
            endpoint: Path below the base URL, e.g. ``/api/user``.
            allow_null: Accept ``{"data": null}`` and return None.
            **kwargs: Passed to ``_send``.

        Returns:
            The value of the ``data`` field.

        Raises:
            APIError: On transport failure, error status, invalid JSON or a missing envelope.
        """
        response = self._send(method, endpoint, **kwargs)
        return self._unwrap(response, endpoint, allow_null=allow_null)

    @staticmethod
    def _unwrap(response: httpx.Response, endpoint: str, allow_null: bool = False) -> Any:
        try:
            body = response.json()
        except ValueError as e:
            raise errors.APIError(
                "Failed to parse response",
                status_code=response.status_code,
                details={"endpoint": endpoint},
            ) from e

        if not isinstance(body, dict) or "data" not in body:
            raise errors.APIError(
                "Missing data field in response",
                status_code=response.status_code,
                details={"endpoint": endpoint},
            )
        if body["data"] is None and not allow_null:
            raise errors.APIError(
                "Empty data field in response",
                status_code=response.status_code,
                details={"endpoint": endpoint},
            )
        return body["data"]

    # -------------------------------------------------------------------------
    # Login
    # -------------------------------------------------------------------------

    def get_login_link(self, key: str) -> LoginLink:
        """Start a browser login session identified by ``key``."""
        data = self._request("GET", "/api/user/login", params={"key": key})
        link = LoginLink.from_api(data)
        if not link.callback_url:
            link.callback_url = f"{self.base_url.rstrip('/')}/api/user/login/get-token?key={quote(key)}"
        return link

    def get_login_token(self, callback_url: str) -> LoginToken:
        """Poll the login callback once.

        The callback answers with a bare ``{"status": ..., "jwt": ...}`` object
        that isn't wrapped in a data envelope.
        """
        response = self._send("GET", callback_url)
        try:
            body = response.json()
        except ValueError as e:
            raise errors.APIError("Failed to parse login token", status_code=response.status_code) from e
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        if not isinstance(body, dict):
            raise errors.APIError("Failed to parse login token", status_code=response.status_code)
        return LoginToken.from_api(body)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def get_user(self) -> User:
        return User.from_api(self._request("GET", "/api/user"))

    def update_user(self, name: str, email: str, avatar_url: str) -> None:
        self._request(
            "PUT",
            "/api/user",
            json={"name": name, "email": email, "avatar_url": avatar_url},
            allow_null=True,
        )

    # -------------------------------------------------------------------------
    # Organizations
    # -------------------------------------------------------------------------

    def get_organizations(self) -> list[Organization]:
        data = self._request("GET", "/api/organization", allow_null=True) or []
        return [Organization.from_api(item) for item in data]

    def get_organization(self, org_id: str) -> Organization:
        """Fetch an organization by id.

        Raises:
            NotFoundError: If the organization doesn't exist.
        """
        try:
            data = self._request("GET", f"/api/organization/{org_id}")
        except errors.APIError as e:
            if e.is_not_found:
                raise errors.NotFoundError(f"Organization not found: {org_id}") from e
            raise
        return Organization.from_api(data)

    def create_organization(self, name: str, slug: str, avatar_url: str = "") -> Organization:
        data = self._request(
            "POST",
            "/api/organization",
            json={"name": name, "slug": slug, "avatar_url": avatar_url},
        )
        return Organization.from_api(data)

    def invite_user(self, org_id: str, email: str, role: str) -> None:
        self._request(
            "POST",
            f"/api/organization/{org_id}/invite",
            json={"invited_user_email": email, "role": role},
            allow_null=True,
        )

    def update_user_role(self, org_id: str, email: str, role: str) -> None:
        self._request(
            "POST",
            f"/api/organization/{org_id}/update-role",
            json={"target_user_email": email, "role": role},
            allow_null=True,
        )

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    def get_projects(self, org_id: str) -> list[Project]:
        data = self._request("GET", f"/api/organization/{org_id}/project", allow_null=True) or []
        return [Project.from_api(item) for item in data]

    def get_project(self, org_id: str, project_id: str) -> Project:
        """Fetch a project by id.

        Raises:
            NotFoundError: If the project doesn't exist.
        """
        try:
            data = self._request("GET", f"/api/organization/{org_id}/project/{project_id}")
        except errors.APIError as e:
            if e.is_not_found:
                raise errors.NotFoundError(f"Project not found: {project_id}") from e
            raise
        return Project.from_api(data)

    def lookup_project(self, repo_url: str, repo_path: str) -> Project | None:
        """Find the project deployed from a git repository and path.

        Returns:
            The project, or None when no project uses this repository.
        """
        data = self._request(
            "GET",
            "/api/project/",
            params={"url": repo_url, "path": repo_path},
            allow_null=True,
        )
        if not data:
            return None
        return Project.from_api(data)

    def create_project(self, org_id: str, project: Project) -> Project:
        data = self._request("POST", f"/api/organization/{org_id}/project", json=project.to_payload())
        return Project.from_api(data)

    def update_project(self, org_id: str, project_id: str, project: Project) -> Project:
        data = self._request(
            "PUT",
            f"/api/organization/{org_id}/project/{project_id}",
            json=project.to_payload(),
        )
        return Project.from_api(data)

    def delete_project(self, org_id: str, project_id: str) -> None:
        self._request("DELETE", f"/api/organization/{org_id}/project/{project_id}", allow_null=True)

    def check_project_slug(self, org_id: str, project_id: str, slug: str) -> None:
        """Check that a project slug is free.

        Raises:
            APIError: With ``is_slug_taken`` set when another project uses the slug.
        """
        self._request(
            "GET",
            f"/api/organization/{org_id}/project/{project_id}/{quote(slug)}/check_slug",
            allow_null=True,
        )

    def get_regions(self, org_id: str, project_id: str) -> list[str]:
        """List the regions a project can deploy to, sorted by name."""
        data = self._request(
            "GET",
            f"/api/organization/{org_id}/project/{project_id}/regions",
            allow_null=True,
        )
        if isinstance(data, dict):
            return sorted(data)
        return sorted(data or [])

    # -------------------------------------------------------------------------
    # Deployments
    # -------------------------------------------------------------------------

    def preview_deployment(self, org_id: str, project_id: str, action: str) -> DeploymentPreview:
        data = self._request(
            "POST",
            f"/api/organization/{org_id}/project/{project_id}/{action}",
            params={"preview": "true"},
        )
        return DeploymentPreview.from_api(data)

    def post_deployment(self, org_id: str, project_id: str, action: str) -> Any:
        """Trigger destroy, reset or promote."""
        return self._request(
            "POST",
            f"/api/organization/{org_id}/project/{project_id}/{action}",
            allow_null=True,
        )

    def upload_deployment(
        self,
        org_id: str,
        project_id: str,
        commit_hash: str,
        image: IO[bytes],
        force: bool = False,
    ) -> Any:
        """Upload a built image and start a deploy.

        Args:
            org_id: Organization id.
            project_id: Project id.
            commit_hash: The commit the image was built from.
            image: Readable binary stream of the ``docker save`` tarball.
            force: Deploy even if the backend would otherwise refuse.
        """
        params = {"force": "true"} if force else None
        return self._request(
            "POST",
            f"/api/organization/{org_id}/project/{project_id}/deploy",
            params=params,
            data={"commit_hash": commit_hash},
            files={"file": ("image.tar", image, "application/x-tar")},
            timeout=UPLOAD_TIMEOUT,
            allow_null=True,
        )

    def get_deployments(self, project_id: str) -> dict[str, DeploymentInfo]:
        """Get the latest deployment per environment. Empty when never deployed."""
        data = self._request("GET", f"/api/deployment/{project_id}", allow_null=True)
        if not data:
            return {}
        if not isinstance(data, dict):
            raise errors.APIError("Failed to unmarshal deployment data")
        deployments: dict[str, DeploymentInfo] = {}
        for env, value in data.items():
            if not isinstance(value, dict):
                raise errors.APIError(f"Failed to unmarshal response for environment {env}")
            info = DeploymentInfo.from_api(env, value)
            if info.project_id and info.project_id != project_id:
                raise errors.APIError(f"Deployment status does not match project id {project_id}")
            deployments[env] = info
        return deployments

    def get_health(self, project_id: str) -> dict[str, EnvironmentHealth]:
        data = self._request("GET", f"/api/health/{project_id}")
        if not isinstance(data, dict):
            raise errors.APIError("Failed to unmarshal health data")
        return {
            env: EnvironmentHealth.from_api(env, value)
            for env, value in data.items()
            if isinstance(value, dict)
        }
