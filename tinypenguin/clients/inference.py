"""Client for the local OpenAI-compatible inference endpoint."""

from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from tinypenguin.config import DEFAULT_TINYLLAMA_URL, Settings, get_settings
from tinypenguin.errors import TransportError
from tinypenguin.models.chat import ChatRequest, ChatResponse, ModelInfo
from tinypenguin.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class InferenceConfig:
    """Configuration for the inference client."""

    base_url: str = DEFAULT_TINYLLAMA_URL
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "InferenceConfig":
        return cls(base_url=settings.tinyllama_url, timeout=settings.request_timeout)


class InferenceClient:
    """Low-level chat-completion client.

    Failures are never retried: every transport problem surfaces as a
    ``TransportError`` and aborts the current task.
    """

    def __init__(self, config: InferenceConfig | None = None, http_client: httpx.Client | None = None):
        """Initialize inference client.

        Args:
            config: Client configuration
            http_client: Pre-built httpx client (mainly for tests)
        """
        self.config = config or InferenceConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.client = http_client or httpx.Client(timeout=self.config.timeout)

    def chat(self, request: ChatRequest) -> ChatResponse:
        """Create a chat completion.

        Raises:
            TransportError: If the endpoint is unreachable, answers non-200 or
                returns a body that cannot be decoded
        """
        logger.debug(
            f"Creating chat completion with model {request.model}, {len(request.messages)} messages, "
            f"{len(request.tools or [])} tools"
        )
        data = self._request("POST", "/chat/completions", json=request.to_wire())

        try:
            response = ChatResponse.model_validate(data)
        except ValidationError as e:
            raise TransportError(f"failed to decode response: {e}") from e

        logger.debug(
            f"Response received - choices: {len(response.choices)}, "
            f"tokens: {response.usage.prompt_tokens} in / {response.usage.completion_tokens} out"
        )
        return response

    def list_models(self) -> list[ModelInfo]:
        """List models served by the endpoint.

        Accepts both the OpenAI shape (``data: [{id}]``) and the Ollama shape
        (``models: [{name}]``).
        """
        data = self._request("GET", "/models")

        models: list[ModelInfo] = []
        for item in data.get("models") or []:
            models.append(ModelInfo.model_validate(item))
        for item in data.get("data") or []:
            models.append(ModelInfo(name=item.get("id", "")))
        return models

    def check_connection(self) -> bool:
        """Return True if the endpoint answers the model listing."""
        try:
            self._request("GET", "/models")
        except TransportError as e:
            logger.warning(f"Inference endpoint not reachable: {e}")
            return False
        return True

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"failed to execute request to {url}: {e}") from e

        if response.status_code != 200:
            raise TransportError(
                f"API error (status {response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"failed to decode response: {e}") from e

        if not isinstance(data, dict):
            raise TransportError("failed to decode response: expected a JSON object")
        return data


_inference_client: InferenceClient | None = None


def get_inference_client() -> InferenceClient:
    """Get or create inference client instance."""
    global _inference_client
    if _inference_client is None:
        _inference_client = InferenceClient(InferenceConfig.from_settings(get_settings()))
    return _inference_client
