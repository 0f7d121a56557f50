from __future__ import annotations

import json

import pytest
import requests

from npcdialogue.config import Settings
from npcdialogue.errors import EmptyResponseError, TransportError, UnconfiguredError
from npcdialogue.llm.gateway import DialogueGateway
from npcdialogue.llm.providers import OllamaAdapter, Provider


class FakeResponse:
    def __init__(self, status_code: int, payload: dict | None = None, text: str | None = None) -> None:
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload or {})
        self.closed = False

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc_info) -> None:
        self.closed = True


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or FakeResponse(200, {"response": "ok"})
        self.error = error
        self.calls: list[dict] = []
        self.closed = False

    def post(self, url: str, *, headers: dict, data: str, timeout) -> FakeResponse:
        self.calls.append({"url": url, "headers": headers, "payload": json.loads(data), "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self) -> None:
        self.closed = True


def _gateway(session: FakeSession, provider: str = "ollama", credential: str | None = "test-key") -> DialogueGateway:
    settings = Settings(llm_provider=provider, llm_api_key=credential)
    return DialogueGateway(settings, session=session)


def test_missing_credential_is_unconfigured_without_network():
    session = FakeSession()
    gateway = _gateway(session, credential=None)

    with pytest.raises(UnconfiguredError):
        gateway.send("hello")
    gateway.configure(Provider.OLLAMA, "")
    with pytest.raises(UnconfiguredError):
        gateway.send("hello")

    assert session.calls == []


def test_send_posts_json_with_bearer_credential_and_finite_timeout():
    session = FakeSession(FakeResponse(200, {"response": "Greetings, traveler."}))
    gateway = _gateway(session)

    text = gateway.send("Say hi")

    assert text == "Greetings, traveler."
    call = session.calls[0]
    assert call["url"] == "http://localhost:11434/api/generate"
    assert call["headers"]["Authorization"] == "Bearer test-key"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["payload"]["prompt"] == "Say hi"
    assert call["timeout"] == (30.0, 30.0)
    assert session.response.closed


def test_non_success_status_raises_transport_error_with_status():
    session = FakeSession(FakeResponse(503, {"error": "overloaded"}))
    gateway = _gateway(session, provider="openrouter")

    with pytest.raises(TransportError) as excinfo:
        gateway.send("hello")

    assert excinfo.value.status == 503
    assert excinfo.value.kind == "transport_error"
    assert session.response.closed


@pytest.mark.parametrize(
    "error, code",
    [
        (requests.ConnectionError("dns failure"), "ConnectionError"),
        (requests.ReadTimeout("read timed out"), "ReadTimeout"),
    ],
)
def test_transport_faults_are_wrapped(error, code):
    gateway = _gateway(FakeSession(error=error))

    with pytest.raises(TransportError) as excinfo:
        gateway.send("hello")

    assert excinfo.value.code == code
    assert excinfo.value.status is None
    assert isinstance(excinfo.value.__cause__, requests.RequestException)


def test_body_without_expected_field_is_empty_response():
    gateway = _gateway(FakeSession(FakeResponse(200, {"model": "llama2", "done": True})))

    with pytest.raises(EmptyResponseError):
        gateway.send("hello")


def test_configure_rejects_unknown_provider():
    gateway = _gateway(FakeSession())

    with pytest.raises(ValueError):
        gateway.configure("telepathy", "key")

    assert gateway.config.provider is Provider.OLLAMA


def test_configure_rejects_provider_without_adapter():
    settings = Settings(llm_provider="ollama", llm_api_key="test-key")
    gateway = DialogueGateway(
        settings,
        session=FakeSession(),
        adapters={Provider.OLLAMA: OllamaAdapter(settings)},
    )

    with pytest.raises(ValueError):
        gateway.configure(Provider.GEMINI, "key")


def test_unknown_provider_in_settings_fails_at_construction():
    with pytest.raises(ValueError):
        DialogueGateway(Settings(llm_provider="telepathy", llm_api_key="k"), session=FakeSession())


def test_configure_accepts_identifier_and_switches_schema():
    session = FakeSession(FakeResponse(200, {"choices": [{"message": {"content": "Aye."}}]}))
    gateway = _gateway(session)

    gateway.configure("openrouter", "other-key")

    assert gateway.send("hello") == "Aye."
    assert session.calls[0]["url"].endswith("/chat/completions")
    assert session.calls[0]["payload"]["messages"][0]["content"] == "hello"
    assert session.calls[0]["headers"]["Authorization"] == "Bearer other-key"


def test_reconfigure_during_send_uses_dispatch_snapshot():
    class ReconfiguringSession(FakeSession):
        gateway: DialogueGateway

        def post(self, url: str, *, headers: dict, data: str, timeout) -> FakeResponse:
            # Reconfiguring here would deadlock if send held the config lock.
            self.gateway.configure(Provider.OLLAMA, "rotated-key")
            return super().post(url, headers=headers, data=data, timeout=timeout)

    session = ReconfiguringSession(FakeResponse(200, {"response": "ok"}))
    gateway = _gateway(session, credential="original-key")
    session.gateway = gateway

    gateway.send("first")
    gateway.send("second")

    assert session.calls[0]["headers"]["Authorization"] == "Bearer original-key"
    assert session.calls[1]["headers"]["Authorization"] == "Bearer rotated-key"


def test_close_releases_session():
    session = FakeSession()
    _gateway(session).close()
    assert session.closed
