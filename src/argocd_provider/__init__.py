# ABOUTME: ArgoCD repository provider package initialization
# ABOUTME: Exposes version information and the session entry point

"""
ArgoCD Repository Provider - declarative reconciliation of ArgoCD repositories.

=============================================================================
WHAT IS THIS PACKAGE?
=============================================================================

This package is the resource layer of an infrastructure-as-code provider for
ArgoCD. It manages two resource types:

1. argocd_repository: a Git or Helm repository registered with ArgoCD
2. argocd_repository_credentials: a credential template that ArgoCD applies
   to every repository whose URL starts with the template's URL prefix

For each resource the provider runs the same reconciliation cycle:

    DESIRED STATE (declared record)  --expand-->  ArgoCD API request
    ACTUAL STATE (ArgoCD response)   --flatten--> declared record

and keeps the local identifier consistent with what really exists on the
server, including resources that were deleted behind the tool's back.

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

argocd_provider/
├── __init__.py          <- YOU ARE HERE: Package entry point
├── config.py            <- Settings from environment variables
├── diagnostics.py       <- Error results returned by operations
├── features.py          <- Server version negotiation (feature flags)
├── session.py           <- Provider session: client, lock, probe, audit
├── state.py             <- Declared resource record (ResourceData)
├── structures.py        <- expand/flatten field mapping
├── resources/
│   ├── repository.py               <- argocd_repository CRUD
│   └── repository_credentials.py   <- argocd_repository_credentials CRUD
└── utils/
    ├── client.py        <- Synchronous HTTP client for the ArgoCD REST API
    ├── locking.py       <- Readers/writer token mutex
    └── logging.py       <- Structured logging with audit trails
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
