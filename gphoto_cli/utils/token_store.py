"""Persistent storage for the OAuth bearer credential."""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Union

from gphoto_cli.models import Credential, TokenNotFoundError, TokenStorageError

logger = logging.getLogger(__name__)


class TokenStore:
    """Reads and writes a single credential as JSON with owner-only permissions."""

    def __init__(self, token_path: Union[str, Path]):
        """Initialize token store.

        Args:
            token_path: Path to the token JSON file
        """
        self.token_path = Path(token_path)

    def load(self) -> Credential:
        """Load the stored credential.

        Returns:
            Credential read from disk

        Raises:
            TokenNotFoundError: If the file is missing or cannot be parsed
        """
        try:
            with open(self.token_path, "r", encoding="utf-8") as token_file:
                data = json.load(token_file)
            expiry = data.get("expiry")
            return Credential(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                expiry=datetime.fromisoformat(expiry) if expiry else None,
            )
        except FileNotFoundError as e:
            raise TokenNotFoundError(f"No token file at {self.token_path}") from e
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable token file %s: %s", self.token_path, e)
            raise TokenNotFoundError(f"Unreadable token file at {self.token_path}") from e

    def save(self, credential: Credential) -> None:
        """Write the credential, truncating any previous content.

        Raises:
            TokenStorageError: If the file cannot be written
        """
        data = {
            "access_token": credential.access_token,
            "refresh_token": credential.refresh_token,
            "expiry": credential.expiry.isoformat() if credential.expiry else None,
        }
        print(f"Saving credential file to: {self.token_path}")
        try:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.token_path, os.O_RDWR | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as token_file:
                json.dump(data, token_file)
            # O_CREAT only applies the mode to new files
            os.chmod(self.token_path, 0o600)
        except OSError as e:
            raise TokenStorageError(f"Unable to cache oauth token: {e}") from e

    def delete(self) -> None:
        """Remove the token file if it exists."""
        try:
            self.token_path.unlink()
        except FileNotFoundError:
            pass
