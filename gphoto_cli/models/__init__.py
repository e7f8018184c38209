"""Models for gphoto-cli."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class AuthMethod(str, Enum):
    """Desktop OAuth flow used to obtain a credential."""
    LOCAL_SERVER = "server"
    MANUAL_CODE = "oob"


@dataclass
class Credential:
    """Bearer credential issued by the OAuth provider."""
    access_token: str
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None

    def __post_init__(self):
        if not self.access_token:
            raise ValueError("access_token must not be empty")


class GooglePhotosError(Exception):
    """Base exception for gphoto-cli operations."""


class ConfigurationError(GooglePhotosError):
    """Raised when OAuth client credentials are not configured."""


class AuthenticationError(GooglePhotosError):
    """Raised when authentication fails."""


class AuthTimeoutError(AuthenticationError):
    """Raised when the local callback wait expires."""


class AuthExchangeError(AuthenticationError):
    """Raised when the authorization code cannot be exchanged for tokens."""


class TokenNotFoundError(GooglePhotosError):
    """Raised when no usable token is stored."""


class TokenStorageError(GooglePhotosError, OSError):
    """Raised when the token file cannot be written."""


class WaitError(GooglePhotosError):
    """Base class for bounded waits that did not produce a result."""


class SelectionTimeoutError(WaitError):
    """Raised when the user does not finish picking in time."""


class OperationCancelledError(WaitError):
    """Raised when a wait is cancelled from outside."""


class ApiError(GooglePhotosError):
    """Raised when API calls fail."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class DownloadError(GooglePhotosError):
    """Raised when a media download does not return HTTP 200."""

    def __init__(self, url: str, status_code: int):
        super().__init__(f"failed to download image: status {status_code}")
        self.url = url
        self.status_code = status_code


class NetworkError(GooglePhotosError):
    """Raised when a Google endpoint cannot be reached or answers garbage."""
