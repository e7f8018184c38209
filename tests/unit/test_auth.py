"""Unit tests for authentication utilities."""
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests
from google.auth.exceptions import TransportError

from gphoto_cli.config import OOB_REDIRECT_URI, AppConfig
from gphoto_cli.models import (
    AuthExchangeError,
    ConfigurationError,
    Credential,
    NetworkError,
    OperationCancelledError,
)
from gphoto_cli.utils.auth import AuthFlowEngine, CallbackListener

STATE = "expected-state"


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


@pytest.fixture
def listener():
    """Start a callback listener on an ephemeral port."""
    server = CallbackListener("localhost", 0, "/auth/callback", STATE)
    server.start()
    yield server
    server.stop(1.0)


def _mock_flow(token="new_token"):
    flow = MagicMock()
    flow.authorization_url.return_value = ("https://accounts.example/auth", STATE)
    flow.credentials.token = token
    flow.credentials.refresh_token = "refresh"
    flow.credentials.expiry = None
    return flow


def _callback(redirect_uri, **params):
    return requests.get(redirect_uri, params=params, timeout=5)


def test_listener_rejects_mismatched_state(listener):
    """A wrong state is rejected and never reaches the waiter."""
    response = _callback(listener.redirect_uri, state="forged", code="abc")

    assert response.status_code == 400
    assert listener.codes.empty()


def test_listener_rejects_missing_code(listener):
    response = _callback(listener.redirect_uri, state=STATE)

    assert response.status_code == 400
    assert listener.codes.empty()


def test_listener_rejects_unknown_path(listener):
    response = requests.get(f"http://localhost:{listener.port}/other", timeout=5)

    assert response.status_code == 404


def test_listener_accepts_first_code_only(listener):
    """Only the first valid code is handed off; later ones are dropped."""
    first = _callback(listener.redirect_uri, state=STATE, code="first")
    second = _callback(listener.redirect_uri, state=STATE, code="second")

    assert first.status_code == 200
    assert second.status_code == 200
    assert listener.codes.get_nowait() == "first"
    assert listener.codes.empty()


def test_listener_keeps_waiting_after_bad_request(listener):
    _callback(listener.redirect_uri, state="forged", code="bad")
    _callback(listener.redirect_uri, state=STATE, code="good")

    assert listener.codes.get_nowait() == "good"


def test_listener_stop_is_idempotent():
    server = CallbackListener("localhost", 0, "/auth/callback", STATE)
    server.start()
    server.stop(1.0)
    server.stop(1.0)


def test_acquire_requires_client_credentials():
    engine = AuthFlowEngine(AppConfig())
    with pytest.raises(ConfigurationError):
        engine.acquire()


def test_acquire_with_local_server(app_config, mocker):
    """A valid callback is exchanged exactly once even if delivered twice."""
    mocker.patch("gphoto_cli.utils.auth.secrets.token_urlsafe", return_value=STATE)
    flow = _mock_flow()

    def build_flow(redirect_uri):
        def deliver():
            try:
                _callback(redirect_uri, state="forged", code="evil")
                _callback(redirect_uri, state=STATE, code="abc")
                _callback(redirect_uri, state=STATE, code="again")
            except requests.RequestException:
                pass  # listener may already be shut down

        threading.Thread(target=deliver, daemon=True).start()
        return flow

    mocker.patch.object(AuthFlowEngine, "_build_flow", side_effect=build_flow)
    engine = AuthFlowEngine(app_config, port=0, callback_timeout=10)

    credential = engine.acquire()

    assert credential == Credential(access_token="new_token", refresh_token="refresh")
    flow.fetch_token.assert_called_once_with(code="abc")
    flow.authorization_url.assert_called_once_with(access_type="offline", state=STATE)


def test_acquire_falls_back_to_manual_on_timeout(app_config, mocker):
    flow = _mock_flow()
    build_flow = mocker.patch.object(AuthFlowEngine, "_build_flow", return_value=flow)
    prompt = MagicMock(return_value="  manual-code \n")
    engine = AuthFlowEngine(app_config, prompt=prompt, port=0, callback_timeout=0.2)

    credential = engine.acquire()

    assert credential.access_token == "new_token"
    assert build_flow.call_args_list[-1].args == (OOB_REDIRECT_URI,)
    flow.fetch_token.assert_called_once_with(code="manual-code")
    prompt.assert_called_once()


def test_acquire_falls_back_to_manual_when_port_busy(app_config, mocker):
    mocker.patch("gphoto_cli.utils.auth.CallbackListener", side_effect=OSError("in use"))
    flow = _mock_flow()
    mocker.patch.object(AuthFlowEngine, "_build_flow", return_value=flow)
    engine = AuthFlowEngine(app_config, prompt=lambda _: "code")

    assert engine.acquire().access_token == "new_token"
    flow.fetch_token.assert_called_once_with(code="code")


def test_manual_method_never_starts_listener(app_config, mocker):
    app_config.auth_method = "oob"
    listener_cls = mocker.patch("gphoto_cli.utils.auth.CallbackListener")
    mocker.patch.object(AuthFlowEngine, "_build_flow", return_value=_mock_flow())
    engine = AuthFlowEngine(app_config, prompt=lambda _: "code")

    engine.acquire()

    listener_cls.assert_not_called()


def test_acquire_cancelled_during_callback_wait(app_config, mocker):
    mocker.patch.object(AuthFlowEngine, "_build_flow", return_value=_mock_flow())
    cancel = threading.Event()
    cancel.set()
    prompt = MagicMock()
    engine = AuthFlowEngine(app_config, prompt=prompt, cancel_event=cancel, port=0)

    with pytest.raises(OperationCancelledError):
        engine.acquire()
    prompt.assert_not_called()


def test_exchange_failure_is_fatal(app_config, mocker):
    flow = _mock_flow()
    flow.fetch_token.side_effect = ValueError("invalid_grant")
    mocker.patch.object(AuthFlowEngine, "_build_flow", return_value=flow)
    app_config.auth_method = "oob"
    engine = AuthFlowEngine(app_config, prompt=lambda _: "code")

    with pytest.raises(AuthExchangeError) as exc_info:
        engine.acquire()
    assert "invalid_grant" in str(exc_info.value)
    flow.fetch_token.assert_called_once()


def test_manual_empty_code_is_fatal(app_config, mocker):
    mocker.patch.object(AuthFlowEngine, "_build_flow", return_value=_mock_flow())
    app_config.auth_method = "oob"
    engine = AuthFlowEngine(app_config, prompt=lambda _: "   ")

    with pytest.raises(AuthExchangeError):
        engine.acquire()


def test_build_flow_uses_client_config(app_config):
    engine = AuthFlowEngine(app_config)
    flow = engine._build_flow(OOB_REDIRECT_URI)

    assert flow.redirect_uri == OOB_REDIRECT_URI
    assert flow.client_config["client_id"] == "test_client_id"


def test_get_credential_uses_stored_token(app_config, token_store, mocker):
    stored = Credential(access_token="stored", expiry=_utcnow() + timedelta(hours=1))
    token_store.save(stored)
    acquire = mocker.patch.object(AuthFlowEngine, "acquire")

    credential = AuthFlowEngine(app_config, token_store=token_store).get_credential()

    assert credential == stored
    acquire.assert_not_called()


def test_get_credential_acquires_and_saves_when_missing(app_config, token_store, mocker):
    mocker.patch.object(AuthFlowEngine, "acquire", return_value=Credential(access_token="fresh"))

    credential = AuthFlowEngine(app_config, token_store=token_store).get_credential()

    assert credential.access_token == "fresh"
    assert token_store.load().access_token == "fresh"


def test_get_credential_reacquires_on_corrupt_token(app_config, token_store, mocker):
    token_store.token_path.write_text("{broken")
    acquire = mocker.patch.object(
        AuthFlowEngine, "acquire", return_value=Credential(access_token="fresh")
    )

    AuthFlowEngine(app_config, token_store=token_store).get_credential()

    acquire.assert_called_once()


def test_get_credential_refreshes_expired_token(app_config, token_store, mocker):
    token_store.save(Credential(
        access_token="old",
        refresh_token="refresh",
        expiry=_utcnow() - timedelta(minutes=5),
    ))

    def refresh(creds, request):
        creds.token = "refreshed"

    mocker.patch("google.oauth2.credentials.Credentials.refresh", autospec=True, side_effect=refresh)
    acquire = mocker.patch.object(AuthFlowEngine, "acquire")

    credential = AuthFlowEngine(app_config, token_store=token_store).get_credential()

    assert credential.access_token == "refreshed"
    assert credential.refresh_token == "refresh"
    assert token_store.load().access_token == "refreshed"
    acquire.assert_not_called()


def test_get_credential_reports_unreachable_token_endpoint(app_config, token_store, mocker):
    """A refresh that cannot reach Google is reported instead of starting a new login."""
    token_store.save(Credential(
        access_token="old",
        refresh_token="refresh",
        expiry=_utcnow() - timedelta(minutes=5),
    ))
    mocker.patch(
        "google.oauth2.credentials.Credentials.refresh",
        autospec=True,
        side_effect=TransportError("offline"),
    )
    acquire = mocker.patch.object(AuthFlowEngine, "acquire")

    with pytest.raises(NetworkError) as exc_info:
        AuthFlowEngine(app_config, token_store=token_store).get_credential()

    assert "offline" in str(exc_info.value)
    acquire.assert_not_called()
    assert token_store.load().access_token == "old"


def test_manual_prompt_honours_cancel(app_config, mocker):
    flow = _mock_flow()
    mocker.patch.object(AuthFlowEngine, "_build_flow", return_value=flow)
    app_config.auth_method = "oob"
    cancel = threading.Event()

    def prompt(_):
        cancel.set()
        return "code"

    engine = AuthFlowEngine(app_config, prompt=prompt, cancel_event=cancel)

    with pytest.raises(OperationCancelledError):
        engine.acquire()
    flow.fetch_token.assert_not_called()
