"""
Tests for upload data models
"""

import dataclasses

import pytest

from sendbuild.upload.models import (
    ApplicationCredential,
    FailureKind,
    ProxyConfiguration,
    ReleaseType,
    UploadOutcome,
    UploadRequest,
    UploadSettings,
)
from sendbuild.upload.multipart import MultipartFormBuilder


class TestUploadRequest:
    """Test cases for UploadRequest"""

    def test_defaults(self):
        request = UploadRequest(api_key="k", build_path="app.apk")

        assert request.release_type == "PRE_PROD"
        assert request.source_map_path is None
        assert request.is_build_stored_in_artifact_folder is False
        assert request.external_id is None
        assert request.application_credential is None
        assert request.proxy is None

    def test_immutable(self):
        request = UploadRequest(api_key="k", build_path="app.apk")
        with pytest.raises(dataclasses.FrozenInstanceError):
            request.release_type = "ENTERPRISE"

    def test_repr_masks_secrets(self):
        request = UploadRequest(
            api_key="super-secret",
            build_path="app.apk",
            application_credential=ApplicationCredential("user", "hunter2"),
            proxy=ProxyConfiguration("proxy", 3128, "puser", "ppass"),
        )

        text = repr(request)

        assert "super-secret" not in text
        assert "hunter2" not in text
        assert "ppass" not in text
        assert "app.apk" in text

    def test_repr_distinguishes_missing_key(self):
        assert "api_key=None" in repr(UploadRequest(api_key=None, build_path="a"))


class TestUploadOutcome:
    """Test cases for UploadOutcome"""

    def test_ok(self):
        outcome = UploadOutcome.ok("done", upload_url="https://x/y")
        assert outcome.success is True
        assert outcome.kind is None
        assert outcome.upload_url == "https://x/y"
        assert outcome.is_local_failure is False

    def test_failure(self):
        outcome = UploadOutcome.failure(FailureKind.SERVER_ERROR, "boom")
        assert outcome.success is False
        assert outcome.kind == FailureKind.SERVER_ERROR
        assert outcome.is_local_failure is False

    def test_local_failure(self):
        assert UploadOutcome.failure(FailureKind.MISSING_CREDENTIAL, "x").is_local_failure is True


class TestProxyConfiguration:
    """Test cases for ProxyConfiguration"""

    def test_proxy_url_without_credentials(self):
        assert ProxyConfiguration("proxy.corp", 3128).proxy_url == "http://proxy.corp:3128"

    def test_proxy_url_with_username_only(self):
        assert ProxyConfiguration("proxy.corp", 3128, "user").proxy_url == "http://user@proxy.corp:3128"


class TestApplicationCredential:
    """Test cases for the credential injector"""

    def test_adds_fields_to_form(self):
        builder = MultipartFormBuilder()
        ApplicationCredential("user", "pass", "notes").add_to_form(builder)

        assert builder.field_names == ["username", "password", "comments"]
        assert builder.get_part("password").value == "pass"


class TestReleaseType:
    """Test cases for release type normalization"""

    @pytest.mark.parametrize("value,expected", [
        (None, "PRE_PROD"),
        ("", "PRE_PROD"),
        ("enterprise", "ENTERPRISE"),
        (" public_store ", "PUBLIC_STORE"),
        ("BETA_CHANNEL", "BETA_CHANNEL"),
    ])
    def test_normalize(self, value, expected):
        assert ReleaseType.normalize(value) == expected


class TestUploadSettings:
    """Test cases for UploadSettings"""

    def test_user_agent(self):
        settings = UploadSettings(version="9.9.9")
        assert settings.user_agent == "Jenkins Upload API Plugin 9.9.9"

    def test_default_attempts(self):
        assert UploadSettings().max_attempts == 3
