from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass

import requests

from npcdialogue.config import Settings
from npcdialogue.errors import EmptyResponseError, TransportError, UnconfiguredError
from npcdialogue.llm.providers import Provider, ProviderAdapter, build_adapters, encode_for

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayConfig:
    provider: Provider
    credential: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.credential)


class DialogueGateway:
    """Single dispatch point from prompts to the configured text-generation backend.

    The active provider and credential live in an immutable ``GatewayConfig`` that is
    swapped as a whole by ``configure``. ``send`` copies the current config once at
    dispatch and never holds the config lock while the request is on the wire.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        session: requests.Session | None = None,
        adapters: dict[Provider, ProviderAdapter] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.timeout = settings.llm_timeout
        self.log = logger or log
        self._adapters = adapters if adapters is not None else build_adapters(settings)
        self._session = session if session is not None else requests.Session()
        self._lock = threading.Lock()
        provider = Provider.from_identifier(settings.llm_provider)
        self._require_adapter(provider)
        self._config = GatewayConfig(provider=provider, credential=settings.llm_api_key)

    @property
    def config(self) -> GatewayConfig:
        with self._lock:
            return self._config

    def configure(self, provider: Provider | str, credential: str | None) -> None:
        if isinstance(provider, str):
            provider = Provider.from_identifier(provider)
        self._require_adapter(provider)
        with self._lock:
            self._config = GatewayConfig(provider=provider, credential=credential)
        self.log.info("gateway_configured provider=%s credential_set=%s", provider.identifier, bool(credential))

    def send(self, prompt: str) -> str:
        config = self.config
        if not config.configured:
            raise UnconfiguredError(f"gateway_unconfigured provider={config.provider.identifier}")

        payload = encode_for(self._adapters, config.provider, prompt)
        if not payload:
            raise UnconfiguredError(f"empty_payload provider={config.provider.identifier}")

        adapter = self._adapters[config.provider]
        url = adapter.endpoint()
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.credential}",
        }
        try:
            with self._session.post(url, headers=headers, data=json.dumps(payload), timeout=self.timeout) as response:
                status = response.status_code
                if not 200 <= status < 300:
                    raise TransportError(
                        f"http_status provider={config.provider.identifier} status={status}",
                        status=status,
                    )
                body = response.text
        except requests.RequestException as exc:
            raise TransportError(
                f"transport_fault provider={config.provider.identifier} error={type(exc).__name__}",
                code=type(exc).__name__,
            ) from exc

        text = adapter.decode(body)
        if not text:
            raise EmptyResponseError(f"empty_response provider={config.provider.identifier}")
        self.log.debug("gateway_send_ok provider=%s chars=%s", config.provider.identifier, len(text))
        return text

    def close(self) -> None:
        self._session.close()

    def _require_adapter(self, provider: Provider) -> None:
        if provider not in self._adapters:
            raise ValueError(f"no_adapter_for_provider provider={provider.identifier}")
