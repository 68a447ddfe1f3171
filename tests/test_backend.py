"""Unit tests for the backend adapters.

Tests cover:
- SDK / transport exception classification
- Response text extraction
- Gemini and Vertex client construction (SDK client mocked)
- BackendAdapter.call timing, empty-output detection and error translation
- The process-wide adapter registry
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest
from google.auth import exceptions as auth_exceptions
from google.genai import errors as genai_errors

from shotgen.agents import backend as backend_module
from shotgen.agents.backend import (
    BackendAdapter,
    GeminiBackendAdapter,
    VertexBackendAdapter,
    classify_backend_exception,
    extract_response_text,
    get_backend_adapter,
    reset_backend_adapters,
)
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
from shotgen.config import BackendSettings
from shotgen.schemas.segment import BackendKind


CLIENT_TARGET = "shotgen.agents.backend.genai.Client"


# Helper Functions

def make_settings(**values) -> BackendSettings:
    return BackendSettings(_env_file=None, **values)


def api_error(error_class, code: int, status: str, message: str):
    return error_class(code, {"error": {"code": code, "status": status, "message": message}})


def fake_response(text=None, parts=None):
    content = SimpleNamespace(parts=parts or [])
    return SimpleNamespace(text=text, candidates=[SimpleNamespace(content=content)])


class ScriptedAdapter(BackendAdapter):
    """Adapter whose _generate returns or raises scripted values."""

    kind = BackendKind.GEMINI

    def __init__(self, outcome):
        super().__init__("test-model", 0.0, 128)
        self.outcome = outcome

    def _generate(self, prompt_text: str) -> str:
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


@pytest.fixture(autouse=True)
def fresh_registry(monkeypatch):
    for name in ("GOOGLE_API_KEY", "GEMINI_API_KEY", "VERTEX_PROJECT", "GCP_PROJECT_ID",
                 "SHOTGEN_BACKEND", "GOOGLE_APPLICATION_CREDENTIALS"):
        monkeypatch.delenv(name, raising=False)
    reset_backend_adapters()
    yield
    reset_backend_adapters()


@pytest.mark.unit
class TestClassifyBackendException:
    """Tests for exception translation."""

    @pytest.mark.parametrize("code, status, expected", [
        (401, "UNAUTHENTICATED", AuthenticationError),
        (403, "PERMISSION_DENIED", AuthenticationError),
        (429, "RESOURCE_EXHAUSTED", RateLimitedError),
        (400, "INVALID_ARGUMENT", MalformedRequestError),
        (404, "NOT_FOUND", MalformedRequestError),
    ])
    def test_client_errors(self, code, status, expected):
        error = classify_backend_exception(
            api_error(genai_errors.ClientError, code, status, "details")
        )

        assert isinstance(error, expected)
        assert error.context["http_status"] == code
        assert error.context["status"] == status
        assert error.message == "details"

    def test_request_timeout_status(self):
        error = classify_backend_exception(
            api_error(genai_errors.ClientError, 408, "DEADLINE_EXCEEDED", "slow")
        )

        assert isinstance(error, NetworkError)
        assert error.error_code == "API_TIMEOUT"

    @pytest.mark.parametrize("code", [500, 502, 503, 504])
    def test_server_errors(self, code):
        error = classify_backend_exception(
            api_error(genai_errors.ServerError, code, "UNAVAILABLE", "try later")
        )

        assert isinstance(error, ServerFaultError)

    def test_httpx_timeout(self):
        error = classify_backend_exception(httpx.ReadTimeout("slow"))

        assert isinstance(error, NetworkError)
        assert error.error_code == "API_TIMEOUT"

    def test_builtin_timeout(self):
        assert classify_backend_exception(TimeoutError()).error_code == "API_TIMEOUT"

    def test_httpx_transport_error(self):
        error = classify_backend_exception(httpx.ConnectError("boom"))

        assert isinstance(error, NetworkError)
        assert error.error_code == "NETWORK_ERROR"

    def test_connection_error(self):
        error = classify_backend_exception(ConnectionResetError("reset by peer"))
        assert error.error_code == "NETWORK_ERROR"

    @pytest.mark.parametrize("exc", [
        auth_exceptions.DefaultCredentialsError("no ADC"),
        auth_exceptions.RefreshError("token expired"),
    ])
    def test_google_auth_errors(self, exc):
        assert isinstance(classify_backend_exception(exc), AuthenticationError)

    def test_engine_errors_pass_through(self):
        original = RateLimitedError("already classified")
        assert classify_backend_exception(original) is original

    def test_unknown_errors(self):
        error = classify_backend_exception(RuntimeError("surprise"))

        assert type(error) is AgentExecutionError
        assert error.error_code == "UNEXPECTED_ERROR"
        assert error.context["error_type"] == "RuntimeError"


@pytest.mark.unit
class TestExtractResponseText:
    """Tests for response text extraction."""

    def test_uses_text_property(self):
        assert extract_response_text(fake_response(text='{"shots": []}')) == '{"shots": []}'

    def test_falls_back_to_parts(self):
        response = fake_response(
            text=None,
            parts=[SimpleNamespace(text='{"sh'), SimpleNamespace(text='ots": []}')]
        )

        assert extract_response_text(response) == '{"shots": []}'

    def test_no_candidates(self):
        assert extract_response_text(SimpleNamespace(text="", candidates=None)) == ""


@pytest.mark.unit
class TestBackendAdapterCall:
    """Tests for the shared call() behaviour."""

    def test_successful_call(self):
        result = ScriptedAdapter('{"shots": []}').call("prompt")

        assert result.text == '{"shots": []}'
        assert result.backend == BackendKind.GEMINI
        assert result.model == "test-model"
        assert result.latency_ms >= 0.0

    @pytest.mark.parametrize("text", ["", "   \n"])
    def test_empty_output_is_malformed_response(self, text):
        with pytest.raises(MalformedResponseError):
            ScriptedAdapter(text).call("prompt")

    def test_sdk_errors_are_classified(self):
        adapter = ScriptedAdapter(api_error(genai_errors.ClientError, 429, "RESOURCE_EXHAUSTED", "slow down"))

        with pytest.raises(RateLimitedError) as exc_info:
            adapter.call("prompt")

        assert isinstance(exc_info.value.__cause__, genai_errors.ClientError)

    def test_engine_errors_are_reraised_unchanged(self):
        original = ServerFaultError("already classified")

        with pytest.raises(ServerFaultError) as exc_info:
            ScriptedAdapter(original).call("prompt")

        assert exc_info.value is original

    def test_backend_name(self):
        assert ScriptedAdapter("x").backend_name == "gemini"


@pytest.mark.unit
class TestGeminiBackendAdapter:
    """Tests for the hosted API adapter."""

    def test_builds_one_client_with_api_key(self):
        with patch(CLIENT_TARGET) as mock_client:
            adapter = GeminiBackendAdapter(make_settings(google_api_key="key-1", request_timeout_seconds=12))

        mock_client.assert_called_once()
        kwargs = mock_client.call_args.kwargs
        assert kwargs["api_key"] == "key-1"
        assert kwargs["http_options"].timeout == 12000
        assert adapter.model == "gemini-2.5-flash"
        assert adapter.kind == BackendKind.GEMINI

    def test_generate_content_arguments(self):
        with patch(CLIENT_TARGET) as mock_client:
            client = mock_client.return_value
            client.models.generate_content.return_value = fake_response(text='{"shots": []}')
            adapter = GeminiBackendAdapter(make_settings(google_api_key="key", temperature=0.2))

            result = adapter.call("Describe the shots")
            adapter.call("Again")

        assert result.text == '{"shots": []}'
        assert mock_client.call_count == 1
        call_kwargs = client.models.generate_content.call_args.kwargs
        assert call_kwargs["model"] == "gemini-2.5-flash"
        assert call_kwargs["contents"] == "Again"
        assert call_kwargs["config"].temperature == 0.2
        assert call_kwargs["config"].response_mime_type == "application/json"

    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            GeminiBackendAdapter(make_settings())


@pytest.mark.unit
class TestVertexBackendAdapter:
    """Tests for the Vertex AI adapter."""

    def test_uses_application_default_credentials(self):
        with patch(CLIENT_TARGET) as mock_client:
            adapter = VertexBackendAdapter(make_settings(vertex_project="proj", vertex_location="europe-west1"))

        kwargs = mock_client.call_args.kwargs
        assert kwargs["vertexai"] is True
        assert kwargs["project"] == "proj"
        assert kwargs["location"] == "europe-west1"
        assert kwargs["credentials"] is None
        assert adapter.model == "gemini-2.5-pro"
        assert adapter.kind == BackendKind.VERTEX

    def test_loads_service_account_file(self):
        credentials = MagicMock(name="credentials")
        with patch(CLIENT_TARGET) as mock_client, patch(
            "shotgen.agents.backend.service_account.Credentials.from_service_account_file",
            return_value=credentials
        ) as mock_loader:
            VertexBackendAdapter(make_settings(
                vertex_project="proj",
                google_application_credentials="/secrets/sa.json"
            ))

        mock_loader.assert_called_once_with(
            "/secrets/sa.json",
            scopes=[backend_module.CLOUD_PLATFORM_SCOPE]
        )
        assert mock_client.call_args.kwargs["credentials"] is credentials

    def test_unreadable_service_account_file(self):
        with patch(CLIENT_TARGET), patch(
            "shotgen.agents.backend.service_account.Credentials.from_service_account_file",
            side_effect=FileNotFoundError("missing")
        ):
            with pytest.raises(ConfigurationError) as exc_info:
                VertexBackendAdapter(make_settings(
                    vertex_project="proj",
                    google_application_credentials="/nope.json"
                ))

        assert exc_info.value.context["credentials_path"] == "/nope.json"

    def test_missing_project_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            VertexBackendAdapter(make_settings())


@pytest.mark.unit
class TestAdapterRegistry:
    """Tests for the lazily created, shared adapters."""

    def test_default_adapter_is_created_once(self):
        settings = make_settings(google_api_key="key")

        with patch(CLIENT_TARGET) as mock_client:
            first = get_backend_adapter(settings=settings)
            second = get_backend_adapter()

        assert first is second
        assert isinstance(first, GeminiBackendAdapter)
        assert mock_client.call_count == 1

    def test_adapters_are_cached_per_kind(self):
        settings = make_settings(google_api_key="key", vertex_project="proj")

        with patch(CLIENT_TARGET):
            gemini = get_backend_adapter(settings=settings)
            vertex = get_backend_adapter(BackendKind.VERTEX, settings)
            vertex_again = get_backend_adapter(BackendKind.VERTEX, settings)

        assert isinstance(gemini, GeminiBackendAdapter)
        assert isinstance(vertex, VertexBackendAdapter)
        assert vertex is vertex_again

    def test_reset_rebuilds_adapters(self):
        settings = make_settings(google_api_key="key")

        with patch(CLIENT_TARGET):
            first = get_backend_adapter(settings=settings)
            reset_backend_adapters()
            second = get_backend_adapter(settings=settings)

        assert first is not second

    def test_unconfigured_environment_raises(self):
        with pytest.raises(ConfigurationError):
            get_backend_adapter(settings=make_settings())
