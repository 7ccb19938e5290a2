# ABOUTME: ArgoCD API client for repositories and repository credential templates
# ABOUTME: Synchronous httpx wrapper with retry logic, typed errors and not-found detection

"""
ArgoCD API client with retry logic and structured error handling.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module is the gateway between the provider and ArgoCD's REST API. It:

1. SPEAKS HTTP: builds requests for the repository and repocreds endpoints
2. AUTHENTICATES: attaches the Bearer token to every request
3. CLASSIFIES ERRORS: converts HTTP/transport failures to ArgocdError, and
   "not found" failures to ArgocdNotFoundError
4. RETRIES: timed-out requests are retried with exponential backoff
5. PARSES: turns JSON payloads into Repository / RepositoryCredentials objects

=============================================================================
ARGOCD ENDPOINTS USED
=============================================================================

    POST   /api/v1/repositories?upsert=&credsOnly=   - Register a repository
    GET    /api/v1/repositories/{repo}?forceRefresh= - Get one repository
    GET    /api/v1/repositories?repo=&forceRefresh=  - List repositories
    PUT    /api/v1/repositories/{repo}               - Update a repository
    DELETE /api/v1/repositories/{repo}               - Remove a repository

    POST   /api/v1/repocreds?upsert=                 - Create a credential template
    GET    /api/v1/repocreds?url=                    - List credential templates
    PUT    /api/v1/repocreds/{url}                   - Update a credential template
    DELETE /api/v1/repocreds/{url}                   - Remove a credential template

    GET    /api/version                              - Server version

Repository URLs are path parameters, so they are percent-encoded completely
("https://git.example.com/repo.git" -> "https%3A%2F%2Fgit.example.com%2Frepo.git").

=============================================================================
WHY "NOT FOUND" IS A HEURISTIC
=============================================================================

ArgoCD's REST API is a gRPC gateway. A missing repository may come back as a
404, as a gRPC status body {"code": 5, ...}, or only as the gRPC code name
inside the error message ("code = NotFound desc = ..."). Plain English
"not found" text does not count: ArgoCD uses it for other failures too, such
as an unknown project named in an update. The decision is kept in ONE function,
is_not_found_error(), and surfaced to callers as the ArgocdNotFoundError type
so nothing else has to look at error strings.

=============================================================================
WHY SYNCHRONOUS?
=============================================================================

Reconciliation operations block the calling thread until ArgoCD answers.
The outer infrastructure tool runs many reconciliations in parallel threads
and bounds that parallelism itself; the token mutex in utils/locking.py
serializes them where the session token requires it.

    with ArgocdClient(instance) as client:
        repo = client.get_repository("https://git.example.com/repo.git")
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from argocd_provider.config import ArgocdInstance

logger = structlog.get_logger(__name__)

# =============================================================================
# SECRET MASKING
# =============================================================================

SECRET_PATTERNS = [
    (re.compile(r"(token[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), r"\1***MASKED***"),
    (re.compile(r"(password[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), r"\1***MASKED***"),
    (re.compile(r"(secret[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), r"\1***MASKED***"),
    (re.compile(r"(bearer\s+)[^\s\"']+", re.I), r"\1***MASKED***"),
    (
        re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.S),
        "***MASKED***",
    ),
]

SENSITIVE_KEYS = frozenset(
    [
        "token",
        "password",
        "secret",
        "authorization",
        "sshprivatekey",
        "tlsclientcertkey",
    ]
)


def mask_secrets(data: Any) -> Any:
    """
    Mask sensitive values in strings, dicts and lists.

    Dict keys are compared case-insensitively against SENSITIVE_KEYS;
    strings are scrubbed with SECRET_PATTERNS. Other values pass through.
    """
    if isinstance(data, str):
        masked_str = data
        for pattern, replacement in SECRET_PATTERNS:
            masked_str = pattern.sub(replacement, masked_str)
        return masked_str

    if isinstance(data, dict):
        return {
            k: "***MASKED***" if k.lower() in SENSITIVE_KEYS else mask_secrets(v)
            for k, v in data.items()
        }

    if isinstance(data, list):
        return [mask_secrets(item) for item in data]

    return data


# =============================================================================
# ERRORS
# =============================================================================

# gRPC status code carried in grpc-gateway error bodies
GRPC_NOT_FOUND = 5


class ArgocdError(Exception):
    """
    Structured ArgoCD API error.

    code is the HTTP status, or 0 when the request never got a response
    (connection refused, DNS failure, timeouts after all retries).
    """

    def __init__(self, code: int, message: str, details: str | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        base = f"ArgoCD API error ({self.code}): {self.message}"
        if self.details:
            base += f" - {self.details}"
        return base


class ArgocdNotFoundError(ArgocdError):
    """The addressed repository or credential template does not exist."""


class ArgocdInvalidResponseError(ArgocdError):
    """
    ArgoCD answered with a success status but the body is unusable.

    Typically an HTML page from an SSO proxy in front of ArgoCD, or a
    payload whose shape does not match the endpoint.
    """


def is_not_found_error(
    status_code: int,
    message: str,
    details: str | None = None,
    grpc_code: int | None = None,
) -> bool:
    """
    Decide whether an ArgoCD error response means "resource does not exist".

    This is the only place in the provider that inspects error text.

    Args:
        status_code: HTTP status of the response
        message: "message" field of the error body (or a fallback)
        details: "error" field of the error body, or raw body text
        grpc_code: "code" field of a grpc-gateway error body, if present

    Returns:
        True if the error should be treated as not found
    """
    if status_code == httpx.codes.NOT_FOUND or grpc_code == GRPC_NOT_FOUND:
        return True
    # gRPC code name only; "not found" prose also appears in InvalidArgument errors
    return "NotFound" in f"{message} {details or ''}"


# =============================================================================
# API DATA CLASSES
# =============================================================================


class ConnectionStatus(str, Enum):
    """Repository connection status as reported by ArgoCD."""

    UNKNOWN = "Unknown"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"

    @classmethod
    def parse(cls, value: str | None) -> ConnectionStatus:
        """Map an API status string to the enum; unrecognised values are UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class ConnectionState:
    """Result of ArgoCD's last attempt to reach a repository."""

    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    message: str = ""

    @classmethod
    def from_api_response(cls, data: dict[str, Any] | None) -> ConnectionState:
        data = data or {}
        return cls(
            status=ConnectionStatus.parse(data.get("status")),
            message=data.get("message", ""),
        )


@dataclass
class Repository:
    """
    ArgoCD repository representation (application.v1alpha1.Repository).

    FIELDS EXPLAINED:
    -----------------
    - repo: Repository URL. ArgoCD's canonical key for the repository.
    - type: "git" or "helm"
    - name: Display name (required by ArgoCD for Helm repositories)
    - project: ArgoCD project the repository is scoped to ("" = global)
    - username / password: HTTPS basic auth
    - ssh_private_key: SSH auth for git+ssh URLs
    - tls_client_cert_data / tls_client_cert_key: TLS client certificate auth
    - insecure: Skip host key / TLS verification
    - enable_lfs: Fetch Git LFS objects
    - enable_oci: Treat a Helm repository as an OCI registry
    - inherited_creds: Credentials came from a matching credential template
    - connection_state: Whether ArgoCD could reach the repository

    ArgoCD never returns password, ssh_private_key or tls_client_cert_key.
    """

    repo: str = ""
    type: str = ""
    name: str = ""
    project: str = ""
    username: str = ""
    password: str = ""
    ssh_private_key: str = ""
    tls_client_cert_data: str = ""
    tls_client_cert_key: str = ""
    insecure: bool = False
    enable_lfs: bool = False
    enable_oci: bool = False
    inherited_creds: bool = False
    connection_state: ConnectionState = field(default_factory=ConnectionState)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Repository:
        """Create a Repository from an ArgoCD API response; missing fields take defaults."""
        return cls(
            repo=data.get("repo", ""),
            type=data.get("type", ""),
            name=data.get("name", ""),
            project=data.get("project", ""),
            username=data.get("username", ""),
            password=data.get("password", ""),
            ssh_private_key=data.get("sshPrivateKey", ""),
            tls_client_cert_data=data.get("tlsClientCertData", ""),
            tls_client_cert_key=data.get("tlsClientCertKey", ""),
            insecure=bool(data.get("insecure", False)),
            enable_lfs=bool(data.get("enableLfs", False)),
            enable_oci=bool(data.get("enableOCI", False)),
            inherited_creds=bool(data.get("inheritedCreds", False)),
            connection_state=ConnectionState.from_api_response(data.get("connectionState")),
        )

    def to_api_payload(self) -> dict[str, Any]:
        """
        Serialize to an API request body.

        Zero values are omitted, so unset fields are never sent as explicit
        "clear this" instructions. Read-only fields (inherited_creds,
        connection_state) are never sent.
        """
        payload = {
            "repo": self.repo,
            "type": self.type,
            "name": self.name,
            "project": self.project,
            "username": self.username,
            "password": self.password,
            "sshPrivateKey": self.ssh_private_key,
            "tlsClientCertData": self.tls_client_cert_data,
            "tlsClientCertKey": self.tls_client_cert_key,
            "insecure": self.insecure,
            "enableLfs": self.enable_lfs,
            "enableOCI": self.enable_oci,
        }
        return {k: v for k, v in payload.items() if v}


@dataclass
class RepositoryCredentials:
    """
    ArgoCD repository credential template (application.v1alpha1.RepoCreds).

    url is a prefix: the template applies to every repository whose URL
    starts with it, unless the repository carries its own credentials.
    """

    url: str = ""
    username: str = ""
    password: str = ""
    ssh_private_key: str = ""
    tls_client_cert_data: str = ""
    tls_client_cert_key: str = ""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> RepositoryCredentials:
        return cls(
            url=data.get("url", ""),
            username=data.get("username", ""),
            password=data.get("password", ""),
            ssh_private_key=data.get("sshPrivateKey", ""),
            tls_client_cert_data=data.get("tlsClientCertData", ""),
            tls_client_cert_key=data.get("tlsClientCertKey", ""),
        )

    def to_api_payload(self) -> dict[str, Any]:
        payload = {
            "url": self.url,
            "username": self.username,
            "password": self.password,
            "sshPrivateKey": self.ssh_private_key,
            "tlsClientCertData": self.tls_client_cert_data,
            "tlsClientCertKey": self.tls_client_cert_key,
        }
        return {k: v for k, v in payload.items() if v}


# =============================================================================
# ARGOCD CLIENT
# =============================================================================


class ArgocdClient:
    """
    Synchronous ArgoCD API client with retry logic.

    LIFECYCLE:
    ----------
    1. Create client: client = ArgocdClient(instance)
    2. Enter context: with client: ...
    3. Use client: client.list_repositories()
    4. Exit context: HTTP connections cleaned up

    RETRY LOGIC:
    ------------
    Requests that time out are retried up to 3 attempts in total with
    exponential backoff (1s, 2s, ... capped at 10s). HTTP error responses
    are never retried; they are converted to ArgocdError immediately.
    """

    def __init__(
        self,
        instance: ArgocdInstance,
        timeout: float = 30.0,
        mask_secrets: bool = True,
    ) -> None:
        """
        Initialize ArgoCD client.

        The HTTP connection pool is created in __enter__, not here.

        Args:
            instance: ArgoCD instance configuration (URL, token, etc.)
            timeout: HTTP request timeout in seconds
            mask_secrets: Whether to mask sensitive data in logged errors
        """
        self._instance = instance
        self._timeout = timeout
        self._mask_secrets = mask_secrets
        self._client: httpx.Client | None = None

    def __enter__(self) -> ArgocdClient:
        self._client = httpx.Client(
            base_url=f"{self._instance.url}/api/v1",
            headers={
                "Authorization": f"Bearer {self._instance.token.get_secret_value()}",
                "Content-Type": "application/json",
            },
            timeout=self._timeout,
            verify=not self._instance.insecure,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    @property
    def instance_name(self) -> str:
        return self._instance.name

    def _mask(self, data: Any) -> Any:
        if not self._mask_secrets:
            return data
        return mask_secrets(data)

    @retry(
        retry=retry_if_exception_type(httpx.TimeoutException),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one HTTP request, retrying on timeouts."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'with' context manager.")
        return self._client.request(method, path, params=params, json=json_data)

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make HTTP request to ArgoCD API.

        All endpoint methods go through here.

        Returns:
            API response as dictionary ({} for an empty body)

        Raises:
            ArgocdNotFoundError: If the addressed object does not exist
            ArgocdInvalidResponseError: If a success response has an unusable body
            ArgocdError: On any other API error, or a transport failure
            RuntimeError: If client not initialized (forgot 'with')
        """
        log = logger.bind(method=method, path=path, instance=self._instance.name)
        log.debug("Making ArgoCD API request")

        try:
            response = self._send(method, path, params=params, json_data=json_data)
        except httpx.TransportError as e:
            log.warning("ArgoCD transport error", error=str(e))
            raise ArgocdError(code=0, message="transport error", details=str(e)) from e

        if response.status_code >= 400:
            self._raise_for_error(response, log)

        if not response.content:
            return {}
        try:
            result = response.json()
        except ValueError as e:
            body = self._mask(response.text)[:200]
            log.warning("ArgoCD returned a non-JSON body", status=response.status_code, body=body)
            raise ArgocdInvalidResponseError(
                code=response.status_code, message="response body is not JSON", details=body
            ) from e
        if not isinstance(result, dict):
            raise ArgocdInvalidResponseError(
                code=response.status_code,
                message=f"expected a JSON object, got {type(result).__name__}",
            )
        return result

    def _raise_for_error(self, response: httpx.Response, log: Any) -> None:
        """Convert an error response to ArgocdError or ArgocdNotFoundError."""
        error_body = self._mask(response.text)
        log.warning("ArgoCD API error", status=response.status_code, body=error_body[:200])

        message = f"HTTP {response.status_code}"
        details = None
        grpc_code = None
        try:
            error_json = response.json()
            message = error_json.get("message", message)
            details = error_json.get("error")
            grpc_code = error_json.get("code")
        except (ValueError, AttributeError):
            details = error_body[:200] if error_body else None

        message = self._mask(message)
        details = self._mask(details)

        error_cls = (
            ArgocdNotFoundError
            if is_not_found_error(response.status_code, message, details, grpc_code)
            else ArgocdError
        )
        raise error_cls(code=response.status_code, message=message, details=details)

    @staticmethod
    def _quote(key: str) -> str:
        return quote(key, safe="")

    @staticmethod
    def _items(data: dict[str, Any]) -> list[dict[str, Any]] | None:
        """
        Extract the "items" list of a list response.

        ArgoCD sends "items": null (or omits it) when nothing matches; that
        is returned as None. Anything else that is not a list of objects
        raises ArgocdInvalidResponseError.
        """
        items = data.get("items")
        if items is None:
            return None
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise ArgocdInvalidResponseError(code=200, message='malformed "items" in list response')
        return items

    # =========================================================================
    # SERVER VERSION
    # =========================================================================

    def get_version(self) -> str:
        """
        Get the ArgoCD server version string.

        ArgoCD API: GET /api/version (outside /api/v1)

        Returns:
            Version string such as "v2.8.4+c279299", or "" if absent
        """
        data = self._request("GET", f"{self._instance.url}/api/version")
        return str(data.get("Version", ""))

    # =========================================================================
    # REPOSITORY OPERATIONS
    # =========================================================================

    def create_repository(
        self,
        repo: Repository,
        upsert: bool = False,
        creds_only: bool = False,
    ) -> Repository | None:
        """
        Register a repository.

        ArgoCD API: POST /api/v1/repositories

        Args:
            repo: Repository to create
            upsert: Overwrite an existing repository with the same URL
            creds_only: Create credentials only (legacy repository credentials)

        Returns:
            The created repository, or None if ArgoCD returned an empty body
        """
        data = self._request(
            "POST",
            "/repositories",
            params={"upsert": str(upsert).lower(), "credsOnly": str(creds_only).lower()},
            json_data=repo.to_api_payload(),
        )
        return Repository.from_api_response(data) if data else None

    def get_repository(self, repo_url: str, force_refresh: bool = True) -> Repository:
        """
        Get one repository by URL.

        ArgoCD API: GET /api/v1/repositories/{repo}

        Args:
            repo_url: Repository URL (canonical key)
            force_refresh: Bypass ArgoCD's repository cache

        Raises:
            ArgocdNotFoundError: If the repository is not registered
        """
        data = self._request(
            "GET",
            f"/repositories/{self._quote(repo_url)}",
            params={"forceRefresh": str(force_refresh).lower()},
        )
        return Repository.from_api_response(data)

    def list_repositories(
        self,
        repo: str | None = None,
        force_refresh: bool = True,
    ) -> list[Repository] | None:
        """
        List repositories.

        ArgoCD API: GET /api/v1/repositories

        Args:
            repo: Filter by repository URL (ArgoCD may ignore the filter on
                  older versions, so callers must still match the key)
            force_refresh: Bypass ArgoCD's repository cache

        Returns:
            List of repositories, or None when ArgoCD returned no list at all
        """
        params: dict[str, str] = {"forceRefresh": str(force_refresh).lower()}
        if repo:
            params["repo"] = repo

        items = self._items(self._request("GET", "/repositories", params=params))
        if items is None:
            return None
        return [Repository.from_api_response(item) for item in items]

    def update_repository(self, repo: Repository) -> Repository | None:
        """
        Update a repository.

        ArgoCD API: PUT /api/v1/repositories/{repo}

        Returns:
            The updated repository, or None if ArgoCD returned an empty body
        """
        data = self._request(
            "PUT",
            f"/repositories/{self._quote(repo.repo)}",
            json_data=repo.to_api_payload(),
        )
        return Repository.from_api_response(data) if data else None

    def delete_repository(self, repo_url: str) -> dict[str, Any]:
        """
        Remove a repository.

        ArgoCD API: DELETE /api/v1/repositories/{repo}
        """
        return self._request("DELETE", f"/repositories/{self._quote(repo_url)}")

    # =========================================================================
    # REPOSITORY CREDENTIAL TEMPLATE OPERATIONS
    # =========================================================================

    def create_repository_credentials(
        self,
        creds: RepositoryCredentials,
        upsert: bool = False,
    ) -> RepositoryCredentials | None:
        """
        Create a repository credential template.

        ArgoCD API: POST /api/v1/repocreds
        """
        data = self._request(
            "POST",
            "/repocreds",
            params={"upsert": str(upsert).lower()},
            json_data=creds.to_api_payload(),
        )
        return RepositoryCredentials.from_api_response(data) if data else None

    def list_repository_credentials(
        self,
        url: str | None = None,
    ) -> list[RepositoryCredentials] | None:
        """
        List repository credential templates.

        ArgoCD API: GET /api/v1/repocreds

        Returns:
            List of templates, or None when ArgoCD returned no list at all
        """
        params = {"url": url} if url else None
        items = self._items(self._request("GET", "/repocreds", params=params))
        if items is None:
            return None
        return [RepositoryCredentials.from_api_response(item) for item in items]

    def update_repository_credentials(
        self,
        creds: RepositoryCredentials,
    ) -> RepositoryCredentials | None:
        """
        Update a repository credential template.

        ArgoCD API: PUT /api/v1/repocreds/{url}
        """
        data = self._request(
            "PUT",
            f"/repocreds/{self._quote(creds.url)}",
            json_data=creds.to_api_payload(),
        )
        return RepositoryCredentials.from_api_response(data) if data else None

    def delete_repository_credentials(self, url: str) -> dict[str, Any]:
        """
        Remove a repository credential template.

        ArgoCD API: DELETE /api/v1/repocreds/{url}
        """
        return self._request("DELETE", f"/repocreds/{self._quote(url)}")
