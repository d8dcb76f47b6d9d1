"""AI provider abstraction layer.

Supports multiple backends:
  - OpenAI (chat completions API)
  - LocalAI (any OpenAI-compatible server, e.g. LocalAI or vLLM)
  - NoOpAI (offline; returns a canned explanation, useful for dry runs)

Every provider exposes the same two operations, ``configure`` and
``complete``, so the explanation stage never needs to know which backend is
active.  Providers only ever receive masked text when anonymization is on.
"""

import logging
import os
from abc import ABC, abstractmethod

import httpx

from kubetriage.config import AI_KEY_ENV_VAR
from kubetriage.errors import CompletionError, ConfigurationError
from kubetriage.models import ProviderConfig, RunContext

logger = logging.getLogger(__name__)

_OPENAI_URL: str = "https://api.openai.com/v1"
_DEFAULT_OPENAI_MODEL: str = "gpt-4o-mini"
_REQUEST_TIMEOUT: float = 120.0


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


class AIProvider(ABC):
    """Abstract base class for all AI providers."""

    name: str = "base"

    def __init__(self) -> None:
        self.model: str = ""
        self.language: str = ""
        self._configured = False

    def configure(
        self,
        credential: str,
        model: str,
        target_language: str,
        base_url: str | None = None,
    ) -> None:
        """Validate and store vendor settings.  Must precede :meth:`complete`.

        Raises:
            ConfigurationError: If the settings are unusable for this vendor.
        """
        if not target_language:
            raise ConfigurationError(f"{self.name}: a target language is required")
        self._configure(credential, model, base_url)
        self.language = target_language
        self._configured = True

    @abstractmethod
    def _configure(self, credential: str, model: str, base_url: str | None) -> None:
        ...

    def complete(self, ctx: RunContext, prompt: str) -> str:
        """Send *prompt* and return the completion text.

        Raises:
            AnalysisCancelled: If the run has been cancelled.
            CompletionError: If the provider is not configured or the call fails,
                or the completion is empty.
        """
        ctx.check()
        if not self._configured:
            raise CompletionError(f"{self.name}: provider used before configure()")
        content = self._complete(prompt)
        if not isinstance(content, str) or not content:
            raise CompletionError(f"{self.name}: empty completion")
        return content

    @abstractmethod
    def _complete(self, prompt: str) -> str:
        ...


# ---------------------------------------------------------------------------
# OpenAI-compatible backends
# ---------------------------------------------------------------------------


class OpenAIProvider(AIProvider):
    """OpenAI chat completions API."""

    name = "openai"
    requires_credential: bool = True

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        super().__init__()
        self.base_url = _OPENAI_URL
        self._credential = ""
        self._transport = transport

    def _configure(self, credential: str, model: str, base_url: str | None) -> None:
        if self.requires_credential and not credential:
            raise ConfigurationError(
                f"{self.name}: no credential configured (set one with 'auth add' "
                f"or the {AI_KEY_ENV_VAR} environment variable)"
            )
        self._credential = credential
        self.model = model or _DEFAULT_OPENAI_MODEL
        if base_url:
            self.base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._credential:
            headers["Authorization"] = f"Bearer {self._credential}"
        return headers

    def _complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.7,
        }
        try:
            with httpx.Client(timeout=_REQUEST_TIMEOUT, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise CompletionError(
                f"{self.name}: HTTP {exc.response.status_code} from {exc.request.url}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise CompletionError(f"{self.name}: {exc}") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise CompletionError(f"{self.name}: unexpected response shape") from exc
        return content


class LocalAIProvider(OpenAIProvider):
    """Self-hosted OpenAI-compatible server; the credential is optional."""

    name = "localai"
    requires_credential = False

    def _configure(self, credential: str, model: str, base_url: str | None) -> None:
        if not base_url:
            raise ConfigurationError(f"{self.name}: a base_url is required")
        if not model:
            raise ConfigurationError(f"{self.name}: a model is required")
        super()._configure(credential, model, base_url)


# ---------------------------------------------------------------------------
# No-op
# ---------------------------------------------------------------------------


class NoOpProvider(AIProvider):
    """Returns a fixed explanation without any network traffic."""

    name = "noopai"

    def _configure(self, credential: str, model: str, base_url: str | None) -> None:
        self.model = model or "noop"

    def _complete(self, prompt: str) -> str:
        return "I am a noop response to the prompt " + prompt


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

PROVIDERS: dict[str, type[AIProvider]] = {
    OpenAIProvider.name: OpenAIProvider,
    LocalAIProvider.name: LocalAIProvider,
    NoOpProvider.name: NoOpProvider,
}


def resolve_provider(configs: list[ProviderConfig], name: str) -> AIProvider:
    """Select, build and configure the provider called *name*.

    Args:
        configs: Every configured provider.
        name: Requested provider name.

    Returns:
        A configured :class:`AIProvider`.

    Raises:
        ConfigurationError: If *name* is not configured, is not a known
            vendor, or its settings are invalid.
    """
    config = next((c for c in configs if c.name == name), None)
    if config is None:
        configured = ", ".join(c.name for c in configs) or "none"
        raise ConfigurationError(
            f"AI provider {name!r} is not configured (configured: {configured})"
        )
    provider_cls = PROVIDERS.get(config.name)
    if provider_cls is None:
        raise ConfigurationError(
            f"Unknown AI provider {config.name!r}; expected one of {', '.join(PROVIDERS)}"
        )

    provider = provider_cls()
    provider.configure(
        credential=config.credential or os.environ.get(AI_KEY_ENV_VAR, ""),
        model=config.model,
        target_language=config.target_language,
        base_url=config.base_url,
    )
    logger.debug("Using AI provider %s (model %s)", provider.name, provider.model)
    return provider
