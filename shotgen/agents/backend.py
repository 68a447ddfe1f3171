"""Backend adapters for the hosted Gemini API and Vertex AI.

Both backends are served by the Google Gen AI SDK (``google-genai``) but need
different client construction and credentials. Each adapter owns a single
long-lived ``genai.Client`` created once and reused for every call. SDK and
transport exceptions are translated into the engine's error taxonomy so the
retry policy can classify them.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from google import genai
from google.auth import exceptions as auth_exceptions
from google.genai import errors as genai_errors
from google.genai import types
from google.oauth2 import service_account

from shotgen.agents.base import (
    AgentExecutionError,
    AuthenticationError,
    ConfigurationError,
    MalformedRequestError,
    MalformedResponseError,
    NetworkError,
    RateLimitedError,
    ServerFaultError,
)
from shotgen.config import BackendSettings, load_settings, resolve_backend_kind
from shotgen.schemas.results import BackendCallResult
from shotgen.schemas.segment import BackendKind, GenerationOptions


logger = logging.getLogger(__name__)


CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def classify_backend_exception(exc: BaseException) -> AgentExecutionError:
    """Translate an SDK/transport exception into the engine's error taxonomy.

    Args:
        exc: Exception raised while calling the backend

    Returns:
        An AgentExecutionError subclass describing the failure
    """
    if isinstance(exc, AgentExecutionError):
        return exc

    if isinstance(exc, genai_errors.APIError):
        code = getattr(exc, 'code', None) or 0
        context: Dict[str, Any] = {
            "http_status": code,
            "status": getattr(exc, 'status', None),
        }
        message = getattr(exc, 'message', None) or str(exc)
        if code in (401, 403):
            return AuthenticationError(message, context)
        if code == 429:
            return RateLimitedError(message, context)
        if code == 408:
            return NetworkError(message, context, error_code="API_TIMEOUT")
        if code >= 500:
            return ServerFaultError(message, context)
        return MalformedRequestError(message, context)

    if isinstance(exc, (auth_exceptions.DefaultCredentialsError, auth_exceptions.RefreshError)):
        return AuthenticationError(str(exc), {"error_type": type(exc).__name__})

    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return NetworkError(
            str(exc) or "Backend call timed out",
            {"error_type": type(exc).__name__},
            error_code="API_TIMEOUT"
        )

    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return NetworkError(str(exc) or type(exc).__name__, {"error_type": type(exc).__name__})

    return AgentExecutionError(
        "UNEXPECTED_ERROR",
        f"Unexpected backend error: {exc}",
        {"error_type": type(exc).__name__}
    )


def extract_response_text(response: Any) -> str:
    """Pull the generated text out of a ``generate_content`` response.

    Falls back to joining candidate parts when ``response.text`` is empty.
    """
    text = getattr(response, 'text', None) or ""
    if text.strip():
        return text

    candidates = getattr(response, 'candidates', None) or []
    if not candidates:
        return text

    content = getattr(candidates[0], 'content', None)
    parts = getattr(content, 'parts', None) or []
    chunks = []
    for part in parts:
        part_text = getattr(part, 'text', None)
        if part_text is None and isinstance(part, dict):
            part_text = part.get('text')
        if part_text:
            chunks.append(part_text)
    return "".join(chunks)


class BackendAdapter(ABC):
    """Single call interface over a generative-AI backend.

    Subclasses build their client once in ``__init__`` and implement
    ``_generate``; ``call`` adds timing, empty-output detection, and error
    translation.
    """

    kind: BackendKind

    def __init__(self, model: str, temperature: float, max_output_tokens: int):
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    @property
    def backend_name(self) -> str:
        return self.kind.value

    def call(
        self,
        prompt_text: str,
        options: Optional[GenerationOptions] = None
    ) -> BackendCallResult:
        """Send one prompt to the backend.

        Args:
            prompt_text: Fully rendered prompt
            options: Generation options (unused by the adapters; generation
                parameters are fixed per adapter)

        Returns:
            BackendCallResult with the raw text, backend identity and latency

        Raises:
            AgentExecutionError: Classified backend failure
        """
        start_time = time.monotonic()
        try:
            text = self._generate(prompt_text)
        except AgentExecutionError:
            raise
        except Exception as e:
            raise classify_backend_exception(e) from e
        latency_ms = (time.monotonic() - start_time) * 1000

        if not text or not text.strip():
            raise MalformedResponseError(
                f"{self.backend_name} returned an empty response",
                {"model": self.model}
            )

        logger.debug(f"{self.backend_name}/{self.model} answered in {latency_ms:.0f}ms")

        return BackendCallResult(
            text=text,
            backend=self.kind,
            model=self.model,
            latency_ms=latency_ms
        )

    @abstractmethod
    def _generate(self, prompt_text: str) -> str:
        """Issue the outbound call and return the raw text."""
        pass


class _GenAIBackendAdapter(BackendAdapter):
    """Shared ``generate_content`` plumbing for both Google backends."""

    def __init__(self, client: genai.Client, model: str, temperature: float, max_output_tokens: int):
        super().__init__(model, temperature, max_output_tokens)
        self.client = client
        self._generation_config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            response_mime_type="application/json",
        )

    def _generate(self, prompt_text: str) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt_text,
            config=self._generation_config,
        )
        return extract_response_text(response)


def _http_options(settings: BackendSettings) -> types.HttpOptions:
    # HttpOptions.timeout is in milliseconds
    return types.HttpOptions(timeout=int(settings.request_timeout_seconds * 1000))


class GeminiBackendAdapter(_GenAIBackendAdapter):
    """Hosted Gemini API, authenticated with an API key."""

    kind = BackendKind.GEMINI

    def __init__(self, settings: BackendSettings):
        if not settings.has_gemini_credentials():
            raise ConfigurationError("GOOGLE_API_KEY / GEMINI_API_KEY is not set")
        client = genai.Client(
            api_key=settings.google_api_key,
            http_options=_http_options(settings),
        )
        super().__init__(
            client,
            settings.gemini_model,
            settings.temperature,
            settings.max_output_tokens
        )


class VertexBackendAdapter(_GenAIBackendAdapter):
    """Vertex AI, authenticated with ADC or a service-account file."""

    kind = BackendKind.VERTEX

    def __init__(self, settings: BackendSettings):
        if not settings.has_vertex_credentials():
            raise ConfigurationError("VERTEX_PROJECT / GCP_PROJECT_ID is not set")

        credentials = None
        if settings.google_application_credentials:
            try:
                credentials = service_account.Credentials.from_service_account_file(
                    settings.google_application_credentials,
                    scopes=[CLOUD_PLATFORM_SCOPE],
                )
            except (OSError, ValueError) as e:
                raise ConfigurationError(
                    f"Cannot load service account credentials: {e}",
                    {"credentials_path": settings.google_application_credentials}
                ) from e

        client = genai.Client(
            vertexai=True,
            project=settings.vertex_project,
            location=settings.vertex_location,
            credentials=credentials,
            http_options=_http_options(settings),
        )
        super().__init__(
            client,
            settings.vertex_model,
            settings.temperature,
            settings.max_output_tokens
        )
        self.project = settings.vertex_project
        self.location = settings.vertex_location


ADAPTER_CLASSES = {
    BackendKind.GEMINI: GeminiBackendAdapter,
    BackendKind.VERTEX: VertexBackendAdapter,
}


_adapters: Dict[BackendKind, BackendAdapter] = {}
_default_kind: Optional[BackendKind] = None
_adapters_lock = threading.Lock()


def create_backend_adapter(kind: BackendKind, settings: BackendSettings) -> BackendAdapter:
    """Construct a new adapter of the given kind (no caching)."""
    return ADAPTER_CLASSES[kind](settings)


def get_backend_adapter(
    kind: Optional[BackendKind] = None,
    settings: Optional[BackendSettings] = None
) -> BackendAdapter:
    """Return the process-wide adapter for a backend, creating it on first use.

    Args:
        kind: Backend to use; resolved from settings when omitted
        settings: Settings to resolve/construct with (loaded from the
            environment when omitted)

    Raises:
        ConfigurationError: If no backend can be resolved
    """
    global _default_kind

    with _adapters_lock:
        cached_kind = kind if kind is not None else _default_kind
        if cached_kind is not None and cached_kind in _adapters:
            return _adapters[cached_kind]

        settings = settings or load_settings()
        resolved = resolve_backend_kind(settings, kind)
        if resolved not in _adapters:
            logger.info(f"Initialising {resolved.value} backend adapter")
            _adapters[resolved] = create_backend_adapter(resolved, settings)
        if kind is None:
            _default_kind = resolved
        return _adapters[resolved]


def reset_backend_adapters() -> None:
    """Drop cached adapters so the next lookup re-reads configuration."""
    global _default_kind

    with _adapters_lock:
        _adapters.clear()
        _default_kind = None
