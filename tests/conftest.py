"""
QzonMe test configuration.

This module provides pytest fixtures for setting up test environments, including:
- Temporary project directories
- Configuration files
- An in-memory media host client
- API client setup
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from qzonme.config.settings import ConfigManager, get_config_manager
from qzonme.core.media.client import (
    BatchResult,
    RemoteAsset,
    RemoteMediaClient,
    TransformSpec,
    UploadResult,
)
from qzonme.core.media.errors import ListingFailed, RemoteServiceError


class FakeMediaClient(RemoteMediaClient):
    """In-memory stand-in for the media host."""

    def __init__(self):
        self.assets: dict[str, RemoteAsset] = {}
        self.fail_delete_ids: set[str] = set()
        self.fail_listing = False
        self.fail_upload = False
        self.fail_tags: set[str] = set()
        self.ping_ok = True
        self.uploads: list[dict] = []
        self.delete_calls: list[str] = []
        self.list_calls: list[tuple[str, int]] = []

    def add_asset(
            self,
            asset_id: str,
            created_at: datetime | None,
            tags: tuple[str, ...] = ()) -> RemoteAsset:
        asset = RemoteAsset(asset_id=asset_id, created_at=created_at, tags=tags)
        self.assets[asset_id] = asset
        return asset

    def upload(self, local_path, tag, transform: TransformSpec) -> UploadResult:
        path = Path(local_path)
        self.uploads.append({
            "path": path,
            "tag": tag,
            "transform": transform,
            "existed": path.exists(),
        })
        if self.fail_upload:
            raise RemoteServiceError("upload", "quota exceeded", {"http_code": 420})
        asset_id = f"quiz-images/{path.stem}"
        self.assets[asset_id] = RemoteAsset(
            asset_id=asset_id,
            created_at=datetime.now(timezone.utc),
            tags=(tag,),
        )
        return UploadResult(
            public_reference=f"https://res.cloudinary.com/demo/image/upload/{asset_id}.webp",
            asset_id=asset_id,
        )

    def delete_by_id(self, asset_id: str) -> None:
        self.delete_calls.append(asset_id)
        if asset_id in self.fail_delete_ids:
            raise RemoteServiceError("delete", f"could not delete {asset_id}")
        if self.assets.pop(asset_id, None) is None:
            raise RemoteServiceError("delete", f"asset {asset_id} not found")

    def delete_by_tag(self, tag: str) -> BatchResult:
        if tag in self.fail_tags:
            raise RemoteServiceError("delete_by_tag", f"rate limited on {tag}")
        deleted = tuple(
            asset_id for asset_id, asset in self.assets.items() if tag in asset.tags)
        for asset_id in deleted:
            del self.assets[asset_id]
        return BatchResult(deleted=deleted, partial=False)

    def list_by_prefix(self, prefix: str, max_results: int) -> list[RemoteAsset]:
        self.list_calls.append((prefix, max_results))
        if self.fail_listing:
            raise ListingFailed("list", "service unavailable")
        matching = [
            asset for asset_id, asset in self.assets.items()
            if asset_id.startswith(prefix)
        ]
        return matching[:max_results]

    def ping(self) -> bool:
        return self.ping_ok


# Session-level fixture to clear environment variables before any tests run
@pytest.fixture(scope="session", autouse=True)
def clear_env_vars():
    """
    Clear QZONME and Cloudinary environment variables at session start.

    Keeps a developer's .env from leaking into the tests.
    """
    prefixes = ("QZONME_", "CLOUDINARY_")
    original_values = {
        name: value for name, value in os.environ.items()
        if name.startswith(prefixes)
    }
    for name in original_values:
        del os.environ[name]

    yield

    for name, value in original_values.items():
        os.environ[name] = value


@pytest.fixture
def media_client():
    """Fresh in-memory media host."""
    return FakeMediaClient()


@pytest.fixture
def now():
    """Fixed reference time for expiration tests."""
    return datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def days_ago(now):
    """Helper returning ``now`` minus a duration."""
    def _days_ago(days: float = 0, **kwargs) -> datetime:
        return now - timedelta(days=days, **kwargs)
    return _days_ago


@pytest.fixture(scope="module")
def test_project_dir(tmp_path_factory, request):
    """Creates a unique test project directory for each test module."""
    dirname = f"test_project_{request.module.__name__}"
    return tmp_path_factory.mktemp(dirname)


@pytest.fixture(scope="module")
def config_path(test_project_dir):
    """Creates a config file in the test project directory."""
    config_dir = test_project_dir / "test_config"
    config_dir.mkdir()
    config_path = config_dir / "test_config.yaml"

    log_dir = test_project_dir / "logs"
    config_path.write_text(f"""
uploads:
    temp_dir: "{test_project_dir / 'temp_uploads'}"
    max_file_size_mb: 1
cleanup:
    enabled: true
    initial_delay_seconds: 3600
media:
    check_connection: true
logging:
    version: 1
    disable_existing_loggers: false
    formatters:
        standard:
            format: "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    handlers:
        file:
            class: logging.FileHandler
            filename: "{log_dir / 'qzonme.log'}"
            level: DEBUG
            formatter: standard
    root:
        level: DEBUG
        handlers: [file]
""")
    return config_path


@pytest.fixture(scope="module", autouse=True)
def setup_config(config_path):
    """
    Point QZONME_CONFIG_PATH at the module's config file.

    The ConfigManager is reset before and after the module so each module
    starts from a clean state.
    """
    original_config_path = os.environ.get("QZONME_CONFIG_PATH")
    os.environ["QZONME_CONFIG_PATH"] = str(config_path)
    ConfigManager.reset_instance()

    yield

    ConfigManager.reset_instance()
    if original_config_path:
        os.environ["QZONME_CONFIG_PATH"] = original_config_path
    else:
        os.environ.pop("QZONME_CONFIG_PATH", None)


@pytest.fixture(scope="module")
def app_media_client():
    """Media host shared by the module's API client."""
    return FakeMediaClient()


@pytest.fixture(scope="module")
def api_client(config_path, app_media_client):
    """
    API client whose app talks to the in-memory media host.

    The cleanup scheduler is started with a one hour initial delay, so it
    only runs when a test triggers it explicitly.
    """
    ConfigManager.reset_instance()
    get_config_manager().load(str(config_path))

    from qzonme import main

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(main, "build_media_client", lambda config: app_media_client)
        with TestClient(main.app, base_url="http://testserver") as client:
            yield client
