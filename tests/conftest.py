"""Test configuration for pytest."""

from pathlib import Path
from typing import Any, Dict

import pytest

from gphoto_cli.config import AppConfig
from gphoto_cli.utils.token_store import TokenStore


@pytest.fixture
def app_config() -> AppConfig:
    """Create a configured AppConfig."""
    return AppConfig(
        google_client_id="test_client_id",
        google_client_secret="test_client_secret",
    )


@pytest.fixture
def token_store(tmp_path: Path) -> TokenStore:
    """Create a token store in a temporary directory."""
    return TokenStore(tmp_path / "token.json")


@pytest.fixture
def media_item_data() -> Dict[str, Any]:
    """Media item as returned by the Picker API."""
    return {
        "id": "item_1",
        "createTime": "2024-01-01T00:00:00Z",
        "type": "PHOTO",
        "mediaFile": {
            "baseUrl": "https://lh3.googleusercontent.com/abc",
            "mimeType": "image/jpeg",
            "filename": "IMG_0001.jpg",
            "mediaFileMetadata": {
                "width": 4032,
                "height": 3024,
                "cameraMake": "Google",
                "cameraModel": "Pixel 8",
                "photoMetadata": {
                    "focalLength": 6.9,
                    "apertureFNumber": 1.7,
                    "isoEquivalent": 100,
                    "exposureTime": "0.008s",
                },
            },
        },
    }
