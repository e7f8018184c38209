"""Configuration loading and saving for gphoto-cli."""

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from gphoto_cli.models import AuthMethod, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_URI = "http://localhost:8080/auth/callback"
OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"
DEFAULT_SCOPE = "https://www.googleapis.com/auth/photospicker.mediaitems.readonly"

CONFIG_DIR_NAME = ".gphoto-cli"
CONFIG_FILE_NAME = "config.yaml"
TOKEN_FILE_NAME = "token.json"

# Environment variable -> AppConfig attribute
ENV_OVERRIDES = {
    "GOOGLE_CLIENT_ID": "google_client_id",
    "GOOGLE_CLIENT_SECRET": "google_client_secret",
    "GOOGLE_REDIRECT_URI": "google_redirect_uri",
    "GOOGLE_SCOPE": "google_scope",
    "AUTH_METHOD": "auth_method",
}


@dataclass
class AppConfig:
    """OAuth client settings."""
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = DEFAULT_REDIRECT_URI
    google_scope: str = DEFAULT_SCOPE
    auth_method: str = AuthMethod.LOCAL_SERVER.value

    @property
    def is_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless client id and secret are set."""
        if not self.is_configured:
            raise ConfigurationError(
                "Google OAuth credentials not configured. Please run: gphoto-cli setup"
            )

    def resolve_auth_method(self) -> AuthMethod:
        """Map the configured auth method onto AuthMethod, defaulting to the local server."""
        try:
            return AuthMethod(self.auth_method)
        except ValueError:
            logger.warning("Unknown auth method %r, using local server", self.auth_method)
            return AuthMethod.LOCAL_SERVER


def get_config_dir(home: Optional[Path] = None) -> Path:
    """Return ~/.gphoto-cli, creating it if missing."""
    config_dir = (home or Path.home()) / CONFIG_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path(home: Optional[Path] = None) -> Path:
    return get_config_dir(home) / CONFIG_FILE_NAME


def get_token_path(home: Optional[Path] = None) -> Path:
    return get_config_dir(home) / TOKEN_FILE_NAME


def load_config(config_path: Optional[Path] = None, use_env: bool = True) -> AppConfig:
    """Load configuration from YAML, applying defaults and environment overrides.

    Args:
        config_path: Path to config.yaml (defaults to ~/.gphoto-cli/config.yaml)
        use_env: Apply .env / environment variable overrides

    Returns:
        AppConfig with defaults filled in

    Raises:
        ConfigurationError: If the file exists but cannot be read or parsed
    """
    config_path = config_path or get_config_path()
    config = AppConfig()

    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as config_file:
                data = yaml.safe_load(config_file) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"failed to parse config file: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"failed to parse config file: {config_path}")

        for key, value in data.items():
            # Empty values keep the defaults
            if hasattr(config, key) and value:
                setattr(config, key, str(value))

    if use_env:
        load_dotenv()
        for env_name, attr in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                setattr(config, attr, value)

    return config


def save_config(config: AppConfig, config_path: Optional[Path] = None) -> Path:
    """Write configuration to YAML with owner-only permissions."""
    config_path = config_path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as config_file:
        yaml.safe_dump(asdict(config), config_file, default_flow_style=False)
    os.chmod(config_path, 0o600)
    return config_path


def mask_string(value: str) -> str:
    """Mask all but the first and last four characters."""
    if len(value) <= 8:
        return "*" * len(value)
    return value[:4] + "*" * (len(value) - 8) + value[-4:]
