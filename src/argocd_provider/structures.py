# ABOUTME: Field mapping between declared resource records and ArgoCD API objects
# ABOUTME: expand builds API requests from declared values, flatten copies remote values back

"""
Expand / flatten helpers for repositories and repository credential templates.

=============================================================================
THE SECRET ASYMMETRY
=============================================================================

ArgoCD accepts passwords, SSH private keys and TLS client keys, but never
returns them. So:

    expand:  password, ssh_private_key, tls_client_cert_key ARE sent
    flatten: password, ssh_private_key, tls_client_cert_key are NEVER written

If flatten copied them, every Read would blank the user's secrets (the API
answers with empty strings) and the outer tool would report drift forever.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from argocd_provider.utils.client import Repository, RepositoryCredentials

if TYPE_CHECKING:
    from argocd_provider.state import ResourceData

# Write-only attributes shared by both resource types
SECRET_FIELDS = frozenset(["password", "ssh_private_key", "tls_client_cert_key"])

REPOSITORY_FIELDS = (
    "repo",
    "type",
    "name",
    "project",
    "username",
    "password",
    "ssh_private_key",
    "tls_client_cert_data",
    "tls_client_cert_key",
    "insecure",
    "enable_lfs",
    "enable_oci",
)

REPOSITORY_CREDENTIALS_FIELDS = (
    "url",
    "username",
    "password",
    "ssh_private_key",
    "tls_client_cert_data",
    "tls_client_cert_key",
)


def _expand(d: ResourceData, fields: tuple[str, ...]) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    for name in fields:
        value, ok = d.get_ok(name)
        if ok:
            kwargs[name] = value
    return kwargs


def _persist(d: ResourceData, values: dict[str, Any]) -> None:
    for name, value in values.items():
        if name in SECRET_FIELDS:
            continue
        d.set(name, value)


# Expand


def expand_repository(d: ResourceData) -> Repository:
    """Build a Repository from the explicitly set attributes of d."""
    return Repository(**_expand(d, REPOSITORY_FIELDS))


def expand_repository_credentials(d: ResourceData) -> RepositoryCredentials:
    """Build a RepositoryCredentials from the explicitly set attributes of d."""
    return RepositoryCredentials(**_expand(d, REPOSITORY_CREDENTIALS_FIELDS))


# Flatten


def flatten_repository(repo: Repository, d: ResourceData) -> None:
    """Copy the non-secret attributes of repo into d."""
    _persist(
        d,
        {
            "repo": repo.repo,
            "type": repo.type,
            "name": repo.name,
            "project": repo.project,
            "username": repo.username,
            "tls_client_cert_data": repo.tls_client_cert_data,
            "insecure": repo.insecure,
            "enable_lfs": repo.enable_lfs,
            "enable_oci": repo.enable_oci,
            "inherited_creds": repo.inherited_creds,
            "connection_state_status": repo.connection_state.status.value,
        },
    )


def flatten_repository_credentials(creds: RepositoryCredentials, d: ResourceData) -> None:
    """Copy the non-secret attributes of creds into d."""
    _persist(
        d,
        {
            "url": creds.url,
            "username": creds.username,
            "tls_client_cert_data": creds.tls_client_cert_data,
        },
    )
