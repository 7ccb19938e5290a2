# ABOUTME: Shared plumbing for ArgoCD resource handlers
# ABOUTME: Correlation IDs, diagnostic construction and audit recording

"""Base class for resource handlers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import structlog

from argocd_provider.diagnostics import Diagnostic, Diagnostics
from argocd_provider.utils.logging import set_correlation_id

if TYPE_CHECKING:
    from argocd_provider.session import ProviderSession
    from argocd_provider.state import ResourceData

logger = structlog.get_logger(__name__)


class ResourceHandler(ABC):
    """
    CRUD handler for one ArgoCD resource type.

    Every operation takes the declared record, talks to ArgoCD through the
    session, updates the record in place and returns diagnostics. An empty
    list means success.
    """

    type_name = ""

    def __init__(self, session: ProviderSession) -> None:
        self._session = session
        self._client = session.client
        self._token_mutex = session.token_mutex
        self._audit = session.audit_logger

    @abstractmethod
    def create(self, d: ResourceData) -> Diagnostics: ...

    @abstractmethod
    def read(self, d: ResourceData) -> Diagnostics: ...

    @abstractmethod
    def update(self, d: ResourceData) -> Diagnostics: ...

    @abstractmethod
    def delete(self, d: ResourceData) -> Diagnostics: ...

    def import_state(self, d: ResourceData, identifier: str) -> Diagnostics:
        """
        Adopt an existing remote object.

        The identifier is used verbatim as the key, then a read fills in
        the record.
        """
        self._start_operation()
        d.set_id(identifier)
        diags = self._read(d)
        if diags:
            return diags
        if not d.id:
            return self._fail(
                "import",
                identifier,
                "Cannot import non-existent remote object",
                f"{self.type_name} {identifier} does not exist in ArgoCD",
            )
        self._audit.log_success(f"import_{self.type_name}", identifier)
        return []

    @abstractmethod
    def _read(self, d: ResourceData) -> Diagnostics:
        """Look up the remote object for d.id and flatten it into d."""

    @staticmethod
    def _start_operation() -> None:
        # Next log line generates a fresh correlation ID
        set_correlation_id("")

    def _gone(self, operation: str, d: ResourceData) -> Diagnostics:
        """Clear the identifier of a resource that no longer exists remotely."""
        key = d.id
        logger.info(
            "Resource deleted outside of the provider, clearing identifier",
            resource=self.type_name,
            operation=operation,
            key=key,
        )
        self._audit.log_not_found(f"{operation}_{self.type_name}", key)
        d.set_id("")
        return []

    def _fail(self, operation: str, key: str, summary: str, detail: str = "") -> Diagnostics:
        """Log, audit and return a single error diagnostic."""
        logger.error(
            summary,
            resource=self.type_name,
            operation=operation,
            key=key,
            detail=detail,
        )
        self._audit.log_error(f"{operation}_{self.type_name}", key, detail or summary)
        return [Diagnostic.error(summary, detail)]
