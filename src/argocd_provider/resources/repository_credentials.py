# ABOUTME: argocd_repository_credentials resource: create, read, update, delete and import
# ABOUTME: Reconciles a declared credential template (keyed by URL prefix) against ArgoCD

"""argocd_repository_credentials resource handler."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from argocd_provider.resources.base import ResourceHandler
from argocd_provider.structures import (
    expand_repository_credentials,
    flatten_repository_credentials,
)
from argocd_provider.utils.client import (
    ArgocdError,
    ArgocdInvalidResponseError,
    ArgocdNotFoundError,
)

if TYPE_CHECKING:
    from argocd_provider.diagnostics import Diagnostics
    from argocd_provider.state import ResourceData

logger = structlog.get_logger(__name__)

EMPTY_RESULT_SUMMARY = "ArgoCD did not return an error or a repository credentials result"


class RepositoryCredentialsResource(ResourceHandler):
    """
    Handler for argocd_repository_credentials.

    ArgoCD has no single-get endpoint for credential templates, so reads
    always list with a URL filter and match the URL exactly.
    """

    type_name = "repository_credentials"

    def create(self, d: ResourceData) -> Diagnostics:
        self._start_operation()
        creds = expand_repository_credentials(d)
        logger.info("Creating repository credentials", url=creds.url)

        try:
            with self._token_mutex.write():
                result = self._client.create_repository_credentials(creds, upsert=False)
        except ArgocdInvalidResponseError as e:
            return self._fail("create", creds.url, EMPTY_RESULT_SUMMARY, str(e))
        except ArgocdError as e:
            return self._fail(
                "create", creds.url, f"Repository credentials {creds.url} could not be created", str(e)
            )

        if result is None:
            return self._fail("create", creds.url, EMPTY_RESULT_SUMMARY)

        d.set_id(result.url or creds.url)
        self._audit.log_success("create_repository_credentials", d.id)
        return self._read(d)

    def read(self, d: ResourceData) -> Diagnostics:
        self._start_operation()
        return self._read(d)

    def _read(self, d: ResourceData) -> Diagnostics:
        key = d.id
        try:
            with self._token_mutex.read():
                items = self._client.list_repository_credentials(url=key)
        except ArgocdInvalidResponseError as e:
            return self._fail("read", key, EMPTY_RESULT_SUMMARY, str(e))
        except ArgocdError as e:
            return self._fail("read", key, f"Repository credentials {key} could not be read", str(e))

        creds = next((c for c in items or [] if c.url == key), None)
        if creds is None:
            return self._gone("read", d)

        flatten_repository_credentials(creds, d)
        return []

    def update(self, d: ResourceData) -> Diagnostics:
        self._start_operation()
        creds = expand_repository_credentials(d)
        logger.info("Updating repository credentials", url=creds.url)

        try:
            with self._token_mutex.write():
                result = self._client.update_repository_credentials(creds)
        except ArgocdNotFoundError:
            return self._gone("update", d)
        except ArgocdInvalidResponseError as e:
            return self._fail("update", creds.url, EMPTY_RESULT_SUMMARY, str(e))
        except ArgocdError as e:
            return self._fail(
                "update", creds.url, f"Repository credentials {creds.url} could not be updated", str(e)
            )

        if result is None:
            return self._fail("update", creds.url, EMPTY_RESULT_SUMMARY)

        d.set_id(result.url or creds.url)
        self._audit.log_success("update_repository_credentials", d.id)
        return self._read(d)

    def delete(self, d: ResourceData) -> Diagnostics:
        self._start_operation()
        key = d.id
        logger.info("Deleting repository credentials", url=key)

        try:
            with self._token_mutex.write():
                self._client.delete_repository_credentials(key)
        except ArgocdNotFoundError:
            return self._gone("delete", d)
        except ArgocdError as e:
            return self._fail("delete", key, f"Repository credentials {key} could not be deleted", str(e))

        self._audit.log_success("delete_repository_credentials", key)
        d.set_id("")
        return []
