# ABOUTME: Resources package initialization for the ArgoCD repository provider
# ABOUTME: One handler module per managed ArgoCD resource type

"""
ArgoCD resource handlers.

    - repository.py: argocd_repository
    - repository_credentials.py: argocd_repository_credentials
"""
