# ABOUTME: Provider session owning the ArgoCD client, token mutex, feature probe and audit logger
# ABOUTME: Built from settings and passed explicitly to every resource operation

"""Provider session: everything resource operations share for one ArgoCD connection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from argocd_provider.features import FeatureProbe
from argocd_provider.utils.client import ArgocdClient
from argocd_provider.utils.locking import TokenMutex
from argocd_provider.utils.logging import AuditLogger, configure_logging

if TYPE_CHECKING:
    from argocd_provider.config import ProviderSettings

logger = structlog.get_logger(__name__)


class ProviderSession:
    """
    Shared state of one provider configuration.

    Each session has its own token mutex, so independent sessions (or tests)
    never block each other.

    USAGE:
    ------
        with ProviderSession.from_settings(load_settings()) as session:
            diags = RepositoryResource(session).create(d)
    """

    def __init__(
        self,
        client: ArgocdClient,
        token_mutex: TokenMutex | None = None,
        audit_logger: AuditLogger | None = None,
        feature_probe: FeatureProbe | None = None,
    ) -> None:
        self.client = client
        self.token_mutex = token_mutex or TokenMutex()
        self.audit_logger = audit_logger or AuditLogger()
        self.feature_probe = feature_probe or FeatureProbe(client, self.token_mutex)

    @classmethod
    def from_settings(cls, settings: ProviderSettings) -> ProviderSession:
        """
        Build a session from validated settings and configure logging.

        Raises:
            ValueError: If ARGOCD_URL is not configured
        """
        instance = settings.instance
        if instance is None:
            raise ValueError("ArgoCD server URL is not configured (set ARGOCD_URL)")

        configure_logging(level=settings.log_level, json_output=settings.json_logs)
        client = ArgocdClient(
            instance=instance,
            timeout=settings.request_timeout,
            mask_secrets=settings.mask_secrets,
        )
        return cls(client=client, audit_logger=AuditLogger(settings.audit_log))

    def __enter__(self) -> ProviderSession:
        self.client.__enter__()
        logger.info("Connected to ArgoCD instance", instance=self.client.instance_name)
        return self

    def __exit__(self, *args: object) -> None:
        self.client.__exit__(*args)
        logger.info("Disconnected from ArgoCD instance", instance=self.client.instance_name)
