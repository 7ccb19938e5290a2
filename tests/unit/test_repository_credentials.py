# ABOUTME: Unit tests for the argocd_repository_credentials resource handler
# ABOUTME: Tests credential template reconciliation against a mock ArgoCD client

from unittest.mock import MagicMock

import pytest

from argocd_provider.diagnostics import has_errors
from argocd_provider.resources.repository_credentials import RepositoryCredentialsResource
from argocd_provider.session import ProviderSession
from argocd_provider.state import ResourceData
from argocd_provider.utils.client import (
    ArgocdError,
    ArgocdInvalidResponseError,
    ArgocdNotFoundError,
    RepositoryCredentials,
)

CREDS_URL = "https://git.example.com/"


@pytest.fixture
def resource(session: ProviderSession) -> RepositoryCredentialsResource:
    return RepositoryCredentialsResource(session)


@pytest.fixture
def created_credentials(declared_credentials: ResourceData) -> ResourceData:
    declared_credentials.set_id(CREDS_URL)
    return declared_credentials


@pytest.mark.unit
class TestCreate:
    """Tests for RepositoryCredentialsResource.create."""

    def test_create_sets_id(
        self,
        resource: RepositoryCredentialsResource,
        declared_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        diags = resource.create(declared_credentials)

        assert diags == []
        assert declared_credentials.id == CREDS_URL
        creds = mock_argocd_client.create_repository_credentials.call_args.args[0]
        assert creds.url == CREDS_URL
        assert creds.password == "s3cret"
        mock_argocd_client.list_repository_credentials.assert_called_once_with(url=CREDS_URL)

    def test_create_error(
        self,
        resource: RepositoryCredentialsResource,
        declared_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.create_repository_credentials.side_effect = ArgocdError(
            code=400, message="repository credentials already exist"
        )

        diags = resource.create(declared_credentials)

        assert has_errors(diags)
        assert CREDS_URL in diags[0].summary
        assert declared_credentials.id == ""

    def test_create_empty_result(
        self,
        resource: RepositoryCredentialsResource,
        declared_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.create_repository_credentials.return_value = None

        diags = resource.create(declared_credentials)

        assert diags[0].summary == "ArgoCD did not return an error or a repository credentials result"
        assert declared_credentials.id == ""


@pytest.mark.unit
class TestRead:
    """Tests for RepositoryCredentialsResource.read."""

    def test_read_exact_match(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.list_repository_credentials.return_value = [
            RepositoryCredentials(url="https://git.example.com/team/", username="wrong"),
            RepositoryCredentials(url=CREDS_URL, username="right"),
        ]

        diags = resource.read(created_credentials)

        assert diags == []
        assert created_credentials.get("username") == "right"

    def test_read_keeps_secrets(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
    ):
        key = created_credentials.get("ssh_private_key")

        resource.read(created_credentials)
        resource.read(created_credentials)

        assert created_credentials.get("password") == "s3cret"
        assert created_credentials.get("ssh_private_key") == key

    @pytest.mark.parametrize("items", [None, [], [RepositoryCredentials(url="https://git.example.com/other/")]])
    def test_read_missing_clears_id(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
        audit_logger: MagicMock,
        items,
    ):
        mock_argocd_client.list_repository_credentials.return_value = items

        diags = resource.read(created_credentials)

        assert diags == []
        assert created_credentials.id == ""
        audit_logger.log_not_found.assert_called_once_with("read_repository_credentials", CREDS_URL)

    def test_read_error_is_fatal(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.list_repository_credentials.side_effect = ArgocdError(code=500, message="boom")

        diags = resource.read(created_credentials)

        assert has_errors(diags)
        assert created_credentials.id == CREDS_URL

    def test_read_malformed_list_is_fatal(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.list_repository_credentials.side_effect = ArgocdInvalidResponseError(
            code=200, message='malformed "items" in list response'
        )

        diags = resource.read(created_credentials)

        assert diags[0].summary == "ArgoCD did not return an error or a repository credentials result"
        assert created_credentials.id == CREDS_URL


@pytest.mark.unit
class TestUpdate:
    """Tests for RepositoryCredentialsResource.update."""

    def test_update(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        created_credentials.set("username", "other-user")

        diags = resource.update(created_credentials)

        assert diags == []
        creds = mock_argocd_client.update_repository_credentials.call_args.args[0]
        assert creds.username == "other-user"

    def test_update_not_found_clears_id(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.update_repository_credentials.side_effect = ArgocdNotFoundError(
            code=404, message="repository credentials not found"
        )

        diags = resource.update(created_credentials)

        assert diags == []
        assert created_credentials.id == ""

    def test_update_error_is_fatal(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.update_repository_credentials.side_effect = ArgocdError(code=403, message="denied")

        diags = resource.update(created_credentials)

        assert has_errors(diags)
        assert created_credentials.id == CREDS_URL


@pytest.mark.unit
class TestDelete:
    """Tests for RepositoryCredentialsResource.delete."""

    def test_delete(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        assert resource.delete(created_credentials) == []
        assert created_credentials.id == ""
        mock_argocd_client.delete_repository_credentials.assert_called_once_with(CREDS_URL)

    def test_delete_not_found_is_success(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.delete_repository_credentials.side_effect = ArgocdNotFoundError(
            code=404, message="not found"
        )

        assert resource.delete(created_credentials) == []
        assert created_credentials.id == ""

    def test_delete_error_is_fatal(
        self,
        resource: RepositoryCredentialsResource,
        created_credentials: ResourceData,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.delete_repository_credentials.side_effect = ArgocdError(code=500, message="boom")

        diags = resource.delete(created_credentials)

        assert has_errors(diags)
        assert created_credentials.id == CREDS_URL


@pytest.mark.unit
class TestImport:
    """Tests for RepositoryCredentialsResource.import_state."""

    def test_import_existing(self, resource: RepositoryCredentialsResource):
        d = ResourceData()

        assert resource.import_state(d, CREDS_URL) == []
        assert d.id == CREDS_URL
        assert d.get("username") == "git-user"

    def test_import_missing(
        self,
        resource: RepositoryCredentialsResource,
        mock_argocd_client: MagicMock,
    ):
        mock_argocd_client.list_repository_credentials.return_value = []
        d = ResourceData()

        diags = resource.import_state(d, CREDS_URL)

        assert has_errors(diags)
        assert d.id == ""
