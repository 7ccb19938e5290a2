# ABOUTME: Utilities package initialization for the ArgoCD repository provider
# ABOUTME: Contains the API client, token mutex and logging helpers

"""
Shared utilities:
    - client.py: ArgoCD API client with retry logic and typed errors
    - locking.py: Readers/writer token mutex
    - logging.py: Structured logging with correlation IDs and audit trail
"""
