# ABOUTME: argocd_repository resource: create, read, update, delete and import
# ABOUTME: Reconciles a declared repository registration against ArgoCD

"""
argocd_repository resource handler.

=============================================================================
RECONCILIATION RULES
=============================================================================

Create  -> POST under the write lock. A repository ArgoCD cannot connect to is
           still registered: the identifier is kept and an error returned.
Read    -> direct GET (servers that support it) or list + exact-key scan,
           under the read lock. Missing repository = deleted out of band:
           identifier cleared, no error.
Update  -> PUT under the write lock. Missing repository handled like Read.
Delete  -> DELETE under the write lock. Missing repository = already done.

Errors other than "not found" become error diagnostics carrying the
repository URL and ArgoCD's error text. A success response without a
usable repository (empty, or not JSON) gets its own summary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import structlog

from argocd_provider.diagnostics import Diagnostics
from argocd_provider.features import Feature, FeatureNegotiationError
from argocd_provider.resources.base import ResourceHandler
from argocd_provider.structures import expand_repository, flatten_repository
from argocd_provider.utils.client import (
    ArgocdError,
    ArgocdInvalidResponseError,
    ArgocdNotFoundError,
    ConnectionStatus,
)

if TYPE_CHECKING:
    from argocd_provider.features import FeatureProbe
    from argocd_provider.state import ResourceData
    from argocd_provider.utils.client import ArgocdClient, Repository
    from argocd_provider.utils.locking import TokenMutex

logger = structlog.get_logger(__name__)

EMPTY_RESULT_SUMMARY = "ArgoCD did not return an error or a repository result"


# =============================================================================
# LOOKUP STRATEGIES
# =============================================================================


class RepositoryLookup(Protocol):
    """Find one repository by its canonical key. None means it does not exist."""

    def __call__(self, client: ArgocdClient, token_mutex: TokenMutex, key: str) -> Repository | None:
        ...


def direct_get_lookup(client: ArgocdClient, token_mutex: TokenMutex, key: str) -> Repository | None:
    """Single GET by key; used when the server supports it."""
    try:
        with token_mutex.read():
            return client.get_repository(key, force_refresh=True)
    except ArgocdNotFoundError:
        return None


def list_scan_lookup(client: ArgocdClient, token_mutex: TokenMutex, key: str) -> Repository | None:
    """
    List filtered by key, then match the key exactly.

    The whole list is scanned; the first exact match wins. Prefix or
    substring matches do not count.
    """
    with token_mutex.read():
        repos = client.list_repositories(repo=key, force_refresh=True)
    if not repos:
        return None
    return next((r for r in repos if r.repo == key), None)


def select_lookup(probe: FeatureProbe) -> RepositoryLookup:
    """
    Pick the lookup strategy for the connected server.

    Raises:
        FeatureNegotiationError: If the server version cannot be determined
    """
    if probe.is_feature_supported(Feature.REPOSITORY_GET):
        return direct_get_lookup
    return list_scan_lookup


# =============================================================================
# RESOURCE HANDLER
# =============================================================================


class RepositoryResource(ResourceHandler):
    """Handler for argocd_repository."""

    type_name = "repository"

    def create(self, d: ResourceData) -> Diagnostics:
        self._start_operation()
        repo = expand_repository(d)
        log = logger.bind(repo=repo.repo)
        log.info("Creating repository")

        try:
            with self._token_mutex.write():
                result = self._client.create_repository(repo, upsert=False, creds_only=False)
        except ArgocdInvalidResponseError as e:
            return self._fail("create", repo.repo, EMPTY_RESULT_SUMMARY, str(e))
        except ArgocdError as e:
            return self._fail("create", repo.repo, f"Repository {repo.repo} could not be created", str(e))

        diags = self._check_result("create", repo.repo, result, d)
        if diags:
            return diags

        self._audit.log_success("create_repository", d.id)
        return self._read(d)

    def read(self, d: ResourceData) -> Diagnostics:
        self._start_operation()
        return self._read(d)

    def _read(self, d: ResourceData) -> Diagnostics:
        key = d.id
        try:
            lookup = select_lookup(self._session.feature_probe)
        except FeatureNegotiationError as e:
            return self._fail("read", key, "Could not determine ArgoCD server features", str(e))

        try:
            repo = lookup(self._client, self._token_mutex, key)
        except ArgocdInvalidResponseError as e:
            return self._fail("read", key, EMPTY_RESULT_SUMMARY, str(e))
        except ArgocdError as e:
            return self._fail("read", key, f"Repository {key} could not be read", str(e))

        if repo is None:
            return self._gone("read", d)

        logger.debug("Read repository", repo=key, connection_status=repo.connection_state.status.value)
        flatten_repository(repo, d)
        return []

    def update(self, d: ResourceData) -> Diagnostics:
        self._start_operation()
        repo = expand_repository(d)
        log = logger.bind(repo=repo.repo)
        log.info("Updating repository")

        try:
            with self._token_mutex.write():
                result = self._client.update_repository(repo)
        except ArgocdNotFoundError:
            return self._gone("update", d)
        except ArgocdInvalidResponseError as e:
            return self._fail("update", repo.repo, EMPTY_RESULT_SUMMARY, str(e))
        except ArgocdError as e:
            return self._fail("update", repo.repo, f"Repository {repo.repo} could not be updated", str(e))

        diags = self._check_result("update", repo.repo, result, d)
        if diags:
            return diags

        self._audit.log_success("update_repository", d.id)
        return self._read(d)

    def delete(self, d: ResourceData) -> Diagnostics:
        self._start_operation()
        key = d.id
        logger.info("Deleting repository", repo=key)

        try:
            with self._token_mutex.write():
                self._client.delete_repository(key)
        except ArgocdNotFoundError:
            return self._gone("delete", d)
        except ArgocdError as e:
            return self._fail("delete", key, f"Repository {key} could not be deleted", str(e))

        self._audit.log_success("delete_repository", key)
        d.set_id("")
        return []

    def _check_result(
        self,
        operation: str,
        key: str,
        result: Repository | None,
        d: ResourceData,
    ) -> Diagnostics:
        """
        Validate a create/update response and record the identifier.

        A Failed connection state still records the identifier: the
        repository exists in ArgoCD, it just cannot be reached.
        """
        if result is None:
            return self._fail(operation, key, EMPTY_RESULT_SUMMARY)

        d.set_id(result.repo or key)

        if result.connection_state.status is ConnectionStatus.FAILED:
            d.set("connection_state_status", ConnectionStatus.FAILED.value)
            return self._fail(
                operation,
                key,
                f"Could not connect to repository {key}: {result.connection_state.message}",
                result.connection_state.message,
            )
        return []
