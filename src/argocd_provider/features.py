# ABOUTME: Server feature negotiation for the ArgoCD repository provider
# ABOUTME: Maps ArgoCD server versions to the optional API features they support

"""Feature capability probe based on the connected ArgoCD server version."""

from __future__ import annotations

import re
import threading
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from argocd_provider.utils.client import ArgocdError

if TYPE_CHECKING:
    from argocd_provider.utils.client import ArgocdClient
    from argocd_provider.utils.locking import TokenMutex

logger = structlog.get_logger(__name__)

# "v2.8.4+c279299", "2.8.4", "v1.8.0-rc1"
VERSION_PATTERN = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)")

Version = tuple[int, int, int]


class Feature(str, Enum):
    """Optional server capabilities the provider can take advantage of."""

    REPOSITORY_GET = "repository_get"


# Minimum server version for each feature
FEATURE_MIN_VERSIONS: dict[Feature, Version] = {
    Feature.REPOSITORY_GET: (1, 7, 0),
}


class FeatureNegotiationError(Exception):
    """The server version could not be determined."""


def parse_version(raw: str) -> Version:
    """
    Parse an ArgoCD version string into (major, minor, patch).

    Raises:
        FeatureNegotiationError: If raw does not start with a semantic version
    """
    match = VERSION_PATTERN.match(raw.strip())
    if not match:
        raise FeatureNegotiationError(f"could not parse ArgoCD server version {raw!r}")
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


class FeatureProbe:
    """
    Answers "does the connected server support feature X?".

    The server version is fetched on first use and kept for the lifetime of
    the probe. A failed fetch is not cached, so the next call retries.
    """

    def __init__(self, client: ArgocdClient, token_mutex: TokenMutex) -> None:
        self._client = client
        self._token_mutex = token_mutex
        self._version: Version | None = None
        self._version_lock = threading.Lock()

    def server_version(self) -> Version:
        """
        Return the parsed server version.

        Raises:
            FeatureNegotiationError: If the version cannot be fetched or parsed
        """
        with self._version_lock:
            if self._version is None:
                try:
                    with self._token_mutex.read():
                        raw = self._client.get_version()
                except ArgocdError as e:
                    raise FeatureNegotiationError(
                        f"could not fetch ArgoCD server version: {e}"
                    ) from e
                self._version = parse_version(raw)
                logger.debug("Negotiated ArgoCD server version", version=raw)
            return self._version

    def is_feature_supported(self, feature: Feature) -> bool:
        """
        Check whether the server supports feature.

        Raises:
            FeatureNegotiationError: If the server version is unknown
        """
        return self.server_version() >= FEATURE_MIN_VERSIONS[feature]
