"""Authentication utilities for the Google Photos Picker API.

Two desktop flows are supported. The local server flow runs a loopback HTTP
listener that receives the OAuth redirect; if nothing arrives before the
callback timeout it falls back to the manual flow, where the user pastes the
authorization code into the terminal.
"""

import logging
import queue
import secrets
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, urlparse
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from gphoto_cli.config import DEFAULT_REDIRECT_URI, OOB_REDIRECT_URI, AppConfig
from gphoto_cli.models import (
    AuthExchangeError,
    AuthMethod,
    AuthTimeoutError,
    Credential,
    NetworkError,
    OperationCancelledError,
    TokenNotFoundError,
)
from gphoto_cli.utils.token_store import TokenStore
from gphoto_cli.utils.waiting import WaitStatus, wait_for

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

CALLBACK_TIMEOUT = 3 * 60
SHUTDOWN_GRACE = 5.0
TIMEOUT_SHUTDOWN_GRACE = 2.0

SUCCESS_PAGE = (
    "<html><body><h1>Authentication complete!</h1>"
    "<p>You can close this tab and return to the terminal.</p></body></html>"
)


class _QuietRequestHandler(WSGIRequestHandler):
    """Routes wsgiref request logs to the module logger instead of stderr."""

    def log_message(self, format, *args):  # pylint: disable=redefined-builtin
        logger.debug(format, *args)


class _CallbackApp:
    """WSGI app validating OAuth redirects and handing the first code to the waiter."""

    def __init__(self, path: str, expected_state: str, codes: "queue.Queue[str]"):
        self.path = path
        self.expected_state = expected_state
        self.codes = codes
        self.delivered = False

    def __call__(self, environ, start_response):
        if environ.get("PATH_INFO", "") != self.path:
            return self._respond(start_response, "404 Not Found", "Not found")

        params = parse_qs(environ.get("QUERY_STRING", ""))
        if params.get("state", [""])[0] != self.expected_state:
            logger.warning("Rejected callback with mismatched state")
            return self._respond(start_response, "400 Bad Request", "State mismatch")

        code = params.get("code", [""])[0]
        if not code:
            logger.warning("Rejected callback without an authorization code")
            return self._respond(start_response, "400 Bad Request", "No code in request")

        if self.delivered:
            logger.debug("Authorization code already received, ignoring duplicate callback")
        else:
            try:
                self.codes.put_nowait(code)
                self.delivered = True
            except queue.Full:
                logger.debug("Handoff already full, ignoring duplicate callback")

        return self._respond(start_response, "200 OK", SUCCESS_PAGE, "text/html; charset=utf-8")

    @staticmethod
    def _respond(start_response, status: str, body: str, content_type: str = "text/plain"):
        payload = body.encode("utf-8")
        start_response(
            status,
            [("Content-Type", content_type), ("Content-Length", str(len(payload)))],
        )
        return [payload]


class CallbackListener:
    """Loopback HTTP server receiving the OAuth redirect on a background thread."""

    def __init__(self, host: str, port: int, path: str, state: str):
        """Bind the listener.

        Args:
            host: Interface to bind (normally localhost)
            port: Port to bind, 0 for an ephemeral port
            path: Callback path registered as redirect URI
            state: Anti-forgery token every callback must echo

        Raises:
            OSError: If the port cannot be bound
        """
        self.host = host
        self.path = path
        self.codes: "queue.Queue[str]" = queue.Queue(maxsize=1)
        self._server: WSGIServer = make_server(
            host, port, _CallbackApp(path, state, self.codes), handler_class=_QuietRequestHandler
        )
        self._thread: Optional[threading.Thread] = None
        self._stopped = False

    @property
    def port(self) -> int:
        return self._server.server_port

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="oauth-callback", daemon=True
        )
        self._thread.start()
        logger.debug("Callback listener started on %s", self.redirect_uri)

    def stop(self, grace: float = SHUTDOWN_GRACE) -> None:
        """Stop serving, waiting at most ``grace`` seconds for in-flight requests."""
        if self._stopped:
            return
        self._stopped = True

        if self._thread is not None:
            stopper = threading.Thread(target=self._server.shutdown, daemon=True)
            stopper.start()
            stopper.join(grace)
            self._thread.join(grace)
            if self._thread.is_alive():
                logger.warning("Callback listener did not stop within %.1fs", grace)
        self._server.server_close()
        logger.debug("Callback listener stopped")


class AuthFlowEngine:
    """Obtains and caches the bearer credential for the Picker API."""

    def __init__(
        self,
        config: AppConfig,
        token_store: Optional[TokenStore] = None,
        prompt: Callable[[str], str] = input,
        cancel_event: Optional[threading.Event] = None,
        port: Optional[int] = None,
        callback_timeout: float = CALLBACK_TIMEOUT,
    ):
        """Initialize the engine.

        Args:
            config: OAuth client configuration
            token_store: Where credentials are cached between runs
            prompt: Reads the manually pasted authorization code
            cancel_event: Aborts the callback wait when set
            port: Callback port override (0 picks an ephemeral port)
            callback_timeout: Seconds to wait for the redirect before falling back
        """
        self.config = config
        self.token_store = token_store
        self.prompt = prompt
        self.cancel_event = cancel_event
        self.port = port
        self.callback_timeout = callback_timeout

    def get_credential(self) -> Credential:
        """Return the stored credential, refreshing or re-acquiring it as needed."""
        self.config.require_credentials()

        if self.token_store is None:
            return self.acquire()

        try:
            credential = self.token_store.load()
        except TokenNotFoundError:
            credential = None

        if credential is not None and not self._is_expired(credential):
            return credential

        if credential is not None and credential.refresh_token:
            credential = self._refresh(credential)
        else:
            credential = None

        if credential is None:
            credential = self.acquire()

        self.token_store.save(credential)
        return credential

    def acquire(self) -> Credential:
        """Run one interactive acquisition using the configured auth method.

        Raises:
            ConfigurationError: If client id or secret is missing
            AuthExchangeError: If the code exchange fails
            OperationCancelledError: If the callback wait is cancelled
        """
        self.config.require_credentials()
        method = self.config.resolve_auth_method()

        if method is AuthMethod.MANUAL_CODE:
            print("Using manual authentication (authorization code entry)")
            return self._acquire_manually()

        print("Using automatic authentication (local server)")
        state = secrets.token_urlsafe(16)
        host, port, path = self._callback_endpoint()
        try:
            listener = CallbackListener(host, port, path, state)
        except OSError as e:
            logger.warning("Could not start callback server on %s:%s: %s", host, port, e)
            print("Local server unavailable, switching to manual authentication")
            return self._acquire_manually()

        try:
            return self._acquire_with_local_server(listener, state)
        except AuthTimeoutError:
            print("Local server authentication timed out")
        return self._acquire_manually()

    def _callback_endpoint(self):
        redirect = self.config.google_redirect_uri
        if not redirect or redirect == OOB_REDIRECT_URI:
            redirect = DEFAULT_REDIRECT_URI
        parsed = urlparse(redirect)
        port = self.port if self.port is not None else (parsed.port or 8080)
        return parsed.hostname or "localhost", port, parsed.path or "/"

    def _acquire_with_local_server(self, listener: CallbackListener, state: str) -> Credential:
        listener.start()
        try:
            flow = self._build_flow(listener.redirect_uri)
            auth_url, _ = flow.authorization_url(access_type="offline", state=state)
            print(f"Open the following URL in your browser to authenticate:\n{auth_url}\n")
            print("Waiting for authentication to complete...")

            outcome = wait_for(listener.codes, self.callback_timeout, self.cancel_event)
            if outcome.status is WaitStatus.TIMEOUT:
                listener.stop(TIMEOUT_SHUTDOWN_GRACE)
                raise AuthTimeoutError("No OAuth callback received")
            if outcome.status is WaitStatus.CANCELLED:
                listener.stop(TIMEOUT_SHUTDOWN_GRACE)
                raise OperationCancelledError("Authentication cancelled")

            print("Authorization code received")
            listener.stop(SHUTDOWN_GRACE)
            return self._exchange(flow, outcome.value)
        finally:
            listener.stop(TIMEOUT_SHUTDOWN_GRACE)

    def _acquire_manually(self) -> Credential:
        flow = self._build_flow(OOB_REDIRECT_URI)
        auth_url, _ = flow.authorization_url(access_type="offline", state=secrets.token_urlsafe(16))

        print("\n=== Manual authentication ===")
        print(f"1. Open the following URL in your browser:\n{auth_url}\n")
        print("2. Complete the Google sign-in")
        print("3. Copy the authorization code that is displayed")

        try:
            code = self.prompt("\nEnter the authorization code: ").strip()
        except EOFError as e:
            raise AuthExchangeError("Failed to read the authorization code") from e
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise OperationCancelledError("Authentication cancelled")
        if not code:
            raise AuthExchangeError("No authorization code entered")
        return self._exchange(flow, code)

    def _build_flow(self, redirect_uri: str) -> Flow:
        client_config = {
            "installed": {
                "client_id": self.config.google_client_id,
                "client_secret": self.config.google_client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [redirect_uri],
            }
        }
        return Flow.from_client_config(
            client_config, scopes=[self.config.google_scope], redirect_uri=redirect_uri
        )

    @staticmethod
    def _exchange(flow: Flow, code: str) -> Credential:
        try:
            flow.fetch_token(code=code)
            creds = flow.credentials
            return Credential(
                access_token=creds.token,
                refresh_token=creds.refresh_token,
                expiry=creds.expiry,
            )
        except Exception as e:
            raise AuthExchangeError(f"Failed to obtain token: {e}") from e

    @staticmethod
    def _is_expired(credential: Credential) -> bool:
        if credential.expiry is None:
            return False
        expiry = credential.expiry
        # google-auth reports expiry as naive UTC
        if expiry.tzinfo is not None:
            expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)
        return expiry <= datetime.now(timezone.utc).replace(tzinfo=None)

    def _refresh(self, credential: Credential) -> Optional[Credential]:
        creds = to_google_credentials(credential, self.config)
        try:
            creds.refresh(Request())
        except RefreshError as e:
            logger.warning("Token refresh failed, re-authenticating: %s", e)
            return None
        except TransportError as e:
            raise NetworkError(f"Could not reach the Google token endpoint: {e}") from e
        return Credential(
            access_token=creds.token,
            refresh_token=creds.refresh_token or credential.refresh_token,
            expiry=creds.expiry,
        )


def to_google_credentials(credential: Credential, config: AppConfig) -> Credentials:
    """Wrap a Credential in a google-auth Credentials object."""
    return Credentials(
        token=credential.access_token,
        refresh_token=credential.refresh_token,
        expiry=credential.expiry,
        token_uri=TOKEN_URI,
        client_id=config.google_client_id,
        client_secret=config.google_client_secret,
        scopes=[config.google_scope],
    )


def describe_credential(credential: Credential) -> Dict[str, Any]:
    """Summarize a credential without exposing the token."""
    return {
        "has_refresh_token": bool(credential.refresh_token),
        "expiry": credential.expiry.isoformat() if credential.expiry else None,
    }
