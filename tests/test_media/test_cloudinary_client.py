"""Tests for the Cloudinary-backed media client with the SDK patched out."""

from __future__ import annotations

from datetime import datetime, timezone

import cloudinary.api
import cloudinary.uploader
import pytest
from cloudinary.exceptions import Error as CloudinaryError

from qzonme.config.settings import MediaSettings
from qzonme.core.media.client import (
    ASSET_PREFIX,
    MAX_LIST_RESULTS,
    CloudinaryMediaClient,
    TransformSpec,
)
from qzonme.core.media.errors import (
    ListingFailed,
    RemoteServiceError,
    UploadFailed,
)
from qzonme.core.media.uploader import UploadOrchestrator


class SdkRecorder(list):
    """Patches SDK functions and records their calls."""

    def __init__(self, monkeypatch):
        super().__init__()
        self.monkeypatch = monkeypatch

    def install(self, module, name, response):
        def _call(*args, **kwargs):
            self.append((name, args, kwargs))
            if isinstance(response, BaseException):
                raise response
            return response

        self.monkeypatch.setattr(module, name, _call)


@pytest.fixture
def client():
    return CloudinaryMediaClient(
        cloud_name="demo", api_key="key", api_secret="secret", timeout=30)


@pytest.fixture
def sdk_calls(monkeypatch):
    """Record every SDK call and return canned responses."""
    return SdkRecorder(monkeypatch)


class TestUpload:
    """Upload options, credentials and error wrapping."""

    def test_upload_passes_folder_tag_and_transform(
            self, client, sdk_calls, tmp_path):
        staged = tmp_path / "photo.jpg"
        staged.write_bytes(b"data")
        sdk_calls.install(cloudinary.uploader, "upload", {
            "secure_url": "https://res.cloudinary.com/demo/image/upload/quiz-images/abc.jpg",
            "public_id": "quiz-images/abc",
            "width": 800,
            "height": 600,
            "format": "jpg",
            "bytes": 1234,
        })

        result = client.upload(staged, "quiz_42", TransformSpec())

        name, args, kwargs = sdk_calls[0]
        assert args == (str(staged),)
        assert kwargs["folder"] == "quiz-images"
        assert kwargs["tags"] == ["quiz_42"]
        assert kwargs["cloud_name"] == "demo"
        assert kwargs["api_key"] == "key"
        assert kwargs["timeout"] == 30
        assert kwargs["eager_async"] is True
        assert result.asset_id == "quiz-images/abc"
        assert result.width == 800
        assert result.to_dict() == {
            "imageUrl": "https://res.cloudinary.com/demo/image/upload/quiz-images/abc.jpg",
            "publicId": "quiz-images/abc",
        }

    def test_sdk_error_is_wrapped(self, client, sdk_calls, tmp_path):
        sdk_calls.install(
            cloudinary.uploader, "upload", CloudinaryError("Invalid image file"))

        with pytest.raises(RemoteServiceError) as exc_info:
            client.upload(tmp_path / "bad.jpg", "quiz_1", TransformSpec())

        assert exc_info.value.operation == "upload"
        assert "Invalid image file" in str(exc_info.value)

    @pytest.mark.parametrize("response", [
        {"public_id": "quiz-images/abc"},
        {"secure_url": "https://res.cloudinary.com/demo/abc.jpg"},
        None,
    ])
    def test_malformed_response_is_wrapped(
            self, client, sdk_calls, tmp_path, response):
        sdk_calls.install(cloudinary.uploader, "upload", response)

        with pytest.raises(RemoteServiceError) as exc_info:
            client.upload(tmp_path / "photo.jpg", "quiz_1", TransformSpec())

        assert exc_info.value.operation == "upload"
        assert "malformed response" in str(exc_info.value)

    def test_malformed_response_fails_store_and_removes_file(
            self, client, sdk_calls, tmp_path):
        staged = tmp_path / "photo.jpg"
        staged.write_bytes(b"data")
        sdk_calls.install(cloudinary.uploader, "upload", {"bytes": 4})

        with pytest.raises(UploadFailed):
            UploadOrchestrator(client).store(staged, 42)

        assert not staged.exists()

    def test_network_error_is_wrapped(self, client, sdk_calls, tmp_path):
        sdk_calls.install(
            cloudinary.uploader, "upload", ConnectionError("timed out"))

        with pytest.raises(RemoteServiceError):
            client.upload(tmp_path / "photo.jpg", "quiz_1", TransformSpec())


class TestDelete:
    """Single and bulk deletion."""

    def test_delete_ok(self, client, sdk_calls):
        sdk_calls.install(cloudinary.uploader, "destroy", {"result": "ok"})

        client.delete_by_id("quiz-images/abc")

        assert sdk_calls[0][1] == ("quiz-images/abc",)

    def test_not_found_is_an_error(self, client, sdk_calls):
        sdk_calls.install(cloudinary.uploader, "destroy", {"result": "not found"})

        with pytest.raises(RemoteServiceError, match="not found"):
            client.delete_by_id("quiz-images/gone")

    def test_delete_sdk_error(self, client, sdk_calls):
        sdk_calls.install(
            cloudinary.uploader, "destroy", CloudinaryError("Rate limited"))

        with pytest.raises(RemoteServiceError, match="Rate limited"):
            client.delete_by_id("quiz-images/abc")

    def test_delete_by_tag(self, client, sdk_calls):
        sdk_calls.install(cloudinary.api, "delete_resources_by_tag", {
            "deleted": {
                "quiz-images/a": "deleted",
                "quiz-images/b": "not_found",
            },
            "partial": True,
        })

        result = client.delete_by_tag("quiz_7")

        assert sdk_calls[0][1] == ("quiz_7",)
        assert result.deleted == ("quiz-images/a",)
        assert result.partial is True

    def test_delete_by_tag_error(self, client, sdk_calls):
        sdk_calls.install(
            cloudinary.api, "delete_resources_by_tag", CloudinaryError("boom"))

        with pytest.raises(RemoteServiceError) as exc_info:
            client.delete_by_tag("quiz_7")

        assert exc_info.value.operation == "delete_by_tag"


class TestListing:
    """Prefix listing."""

    def test_list_maps_resources(self, client, sdk_calls):
        sdk_calls.install(cloudinary.api, "resources", {
            "resources": [
                {
                    "public_id": "quiz-images/a",
                    "created_at": "2025-03-01T10:15:00Z",
                    "tags": ["quiz_1"],
                    "secure_url": "https://example.invalid/a.jpg",
                },
                {"public_id": "quiz-images/b"},
            ],
        })

        assets = client.list_by_prefix(ASSET_PREFIX, 100)

        kwargs = sdk_calls[0][2]
        assert kwargs["type"] == "upload"
        assert kwargs["prefix"] == ASSET_PREFIX
        assert kwargs["max_results"] == 100
        assert kwargs["tags"] is True
        assert assets[0].created_at == datetime(
            2025, 3, 1, 10, 15, tzinfo=timezone.utc)
        assert assets[0].tags == ("quiz_1",)
        assert assets[1].created_at is None
        assert assets[1].tags == ()

    def test_page_size_is_capped(self, client, sdk_calls):
        sdk_calls.install(cloudinary.api, "resources", {"resources": []})

        client.list_by_prefix(ASSET_PREFIX, 10_000)

        assert sdk_calls[0][2]["max_results"] == MAX_LIST_RESULTS

    def test_listing_error(self, client, sdk_calls):
        sdk_calls.install(
            cloudinary.api, "resources", CloudinaryError("Invalid credentials"))

        with pytest.raises(ListingFailed, match="Invalid credentials"):
            client.list_by_prefix(ASSET_PREFIX, 500)


class TestPing:
    """Connectivity check."""

    def test_ping_ok(self, client, sdk_calls):
        sdk_calls.install(cloudinary.api, "ping", {"status": "ok"})
        assert client.ping() is True

    def test_ping_failure_returns_false(self, client, sdk_calls):
        sdk_calls.install(cloudinary.api, "ping", CloudinaryError("401"))
        assert client.ping() is False


def test_from_settings_reads_named_env_vars(monkeypatch):
    monkeypatch.setenv("MY_CLOUD", "acme")
    monkeypatch.setenv("MY_KEY", "k")
    monkeypatch.setenv("MY_SECRET", "s")
    settings = MediaSettings(
        cloud_name_env="MY_CLOUD",
        api_key_env="MY_KEY",
        api_secret_env="MY_SECRET",
        timeout_seconds=15,
    )

    client = CloudinaryMediaClient.from_settings(settings)

    assert client.cloud_name == "acme"
    assert client.timeout == 15
    assert client._options["api_key"] == "k"
    assert client._options["api_secret"] == "s"


def test_from_settings_falls_back_to_default_cloud(monkeypatch):
    monkeypatch.delenv("CLOUDINARY_CLOUD_NAME", raising=False)

    client = CloudinaryMediaClient.from_settings(MediaSettings())

    assert client.cloud_name == MediaSettings().default_cloud_name


def test_from_settings_uses_settings_credentials(monkeypatch):
    monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "acme")
    monkeypatch.setenv("CLOUDINARY_API_KEY", "k")
    monkeypatch.delenv("CLOUDINARY_API_SECRET", raising=False)
    settings = MediaSettings()

    client = CloudinaryMediaClient.from_settings(settings)

    credentials = settings.credentials()
    assert client.cloud_name == credentials["cloud_name"] == "acme"
    assert client._options["api_key"] == credentials["api_key"] == "k"
    assert client._options["api_secret"] is credentials["api_secret"] is None
