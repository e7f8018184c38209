"""Google Photos Picker API workflow using sessions."""

import logging
import threading
import time
from typing import Callable, List, Optional

import requests

from gphoto_cli.models import (
    ApiError,
    NetworkError,
    OperationCancelledError,
    SelectionTimeoutError,
)
from gphoto_cli.picker.models import MediaItem, PickerSession, strip_session_prefix
from gphoto_cli.utils.waiting import sleep_or_cancel

logger = logging.getLogger(__name__)

PICKER_API_BASE = "https://photospicker.googleapis.com/v1"

POLL_INTERVAL = 2.0
SELECTION_TIMEOUT = 10 * 60
REQUEST_TIMEOUT = 30


class PickerSessionClient:
    """Picker API client for creating sessions and retrieving selected photos.

    Calls are never retried; any non-2xx response raises ApiError with the
    status code and raw body.
    """

    def __init__(
        self,
        access_token: str,
        session: Optional[requests.Session] = None,
        base_url: str = PICKER_API_BASE,
        poll_interval: float = POLL_INTERVAL,
        selection_timeout: float = SELECTION_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the client.

        Args:
            access_token: Bearer token sent with every request
            session: HTTP session to use (a new one by default)
            base_url: Picker API root
            poll_interval: Seconds between session status polls
            selection_timeout: Seconds to wait for the user to finish picking
            clock: Monotonic time source used for the selection deadline
        """
        self.access_token = access_token
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.selection_timeout = selection_timeout
        self.clock = clock

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=REQUEST_TIMEOUT, **kwargs
            )
        except requests.RequestException as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e
        logger.debug("%s %s -> %s", method, url, response.status_code)
        if not 200 <= response.status_code < 300:
            raise ApiError(response.status_code, response.text)
        return response

    @staticmethod
    def _json(response: requests.Response) -> dict:
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"invalid JSON in API response: {e}") from e

    def create_session(self) -> PickerSession:
        """Create a new picking session.

        Returns:
            PickerSession with the picker URI to show the user
        """
        response = self._request("POST", "sessions", json={})
        logger.debug("Session creation response: %s", response.text)

        session = PickerSession.from_dict(self._json(response))
        logger.debug("Session name: %s", session.name)
        return session

    def get_session(self, name: str) -> PickerSession:
        """Get the current status of a picking session."""
        response = self._request("GET", name)
        return PickerSession.from_dict(self._json(response))

    def wait_for_selection(
        self, name: str, cancel_event: Optional[threading.Event] = None
    ) -> PickerSession:
        """Poll a session until the user completes photo selection.

        Args:
            name: Session resource name
            cancel_event: Aborts the wait when set

        Returns:
            Final session status with mediaItemsSet true

        Raises:
            SelectionTimeoutError: If the selection timeout elapses first
            OperationCancelledError: If cancel_event is set
            ApiError: If a status poll fails
            NetworkError: If the API cannot be reached
        """
        print("Waiting for photo selection...")
        deadline = self.clock() + self.selection_timeout

        while True:
            if sleep_or_cancel(self.poll_interval, cancel_event):
                raise OperationCancelledError("Photo selection cancelled")
            if self.clock() >= deadline:
                raise SelectionTimeoutError(
                    f"Photo selection timed out after {self.selection_timeout / 60:g} minutes"
                )

            session = self.get_session(name)
            logger.debug("Session status: mediaItemsSet=%s", session.media_items_set)
            if session.media_items_set:
                print("Photos selected!")
                return session

    def list_media_items(self, name: str) -> List[MediaItem]:
        """Get the media items selected in a session, in the order the service lists them."""
        params = {"sessionId": strip_session_prefix(name)}
        items: List[MediaItem] = []

        while True:
            response = self._request("GET", "mediaItems", params=params)
            logger.debug("MediaItems response: %s", response.text)
            data = self._json(response)
            items.extend(MediaItem.from_dict(item) for item in data.get("mediaItems", []))

            page_token = data.get("nextPageToken")
            if not page_token:
                return items
            params = {"sessionId": params["sessionId"], "pageToken": page_token}

    def delete_session(self, name: str) -> bool:
        """Delete a picking session; failures are logged, not raised."""
        try:
            self._request("DELETE", name)
        except (ApiError, NetworkError) as e:
            logger.warning("Could not delete session %s: %s", name, e)
            return False
        logger.debug("Deleted session %s", name)
        return True
