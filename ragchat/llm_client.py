"""HTTP client for the embedding and chat-completion services."""
from typing import Dict, List, Optional

import httpx
import structlog

from ragchat import config

logger = structlog.get_logger()


class LLMClient:
    """Async client for Ollama embeddings and OpenAI-compatible streamed chat.

    One ``httpx.AsyncClient`` is shared by all calls; it is created on first use
    and released by ``aclose()``.
    """

    def __init__(
        self,
        ollama_base_url: str = None,
        completion_base_url: str = None,
        api_key: str = None,
        timeout: float = None,
        completion_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            ollama_base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            completion_base_url: Chat completions base URL (defaults to config.COMPLETION_BASE_URL)
            api_key: Bearer token for the completion provider (defaults to config.COMPLETION_API_KEY)
            timeout: Timeout for embedding and listing requests, in seconds
            completion_timeout: Read timeout for the completion stream (defaults to
                config.COMPLETION_TIMEOUT; None = no limit)
            transport: Optional httpx transport (used by tests)
        """
        self.ollama_base_url = (ollama_base_url or config.OLLAMA_BASE_URL).rstrip("/")
        self.completion_base_url = (completion_base_url or config.COMPLETION_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.COMPLETION_API_KEY
        self.timeout = timeout or config.EMBEDDING_TIMEOUT
        self.completion_timeout = (
            completion_timeout if completion_timeout is not None else config.COMPLETION_TIMEOUT
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.info("llm_client_closed")

    async def embeddings(self, prompt: str, model: str = None) -> List[float]:
        """Generate an embedding for a text prompt.

        Args:
            prompt: Text to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            Embedding vector (empty if the service returned none)

        Raises:
            httpx.HTTPError: On API errors
        """
        model = model or config.EMBEDDING_MODEL

        try:
            logger.debug(
                "ollama_embedding_request",
                model=model,
                prompt_length=len(prompt),
            )

            response = await self._get_client().post(
                f"{self.ollama_base_url}/api/embeddings",
                json={"model": model, "prompt": prompt},
                timeout=self.timeout,
            )
            response.raise_for_status()

            embedding = response.json().get("embedding", [])

            logger.debug(
                "ollama_embedding_response",
                model=model,
                dimension=len(embedding),
            )

            return embedding

        except httpx.HTTPError as e:
            logger.error("ollama_embedding_error", error=str(e), error_type=type(e).__name__)
            raise

    async def open_chat_stream(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
    ) -> httpx.Response:
        """Start a streamed chat completion.

        The response is returned as soon as headers arrive; its body has not
        been read. The caller owns the response and must ``aclose()`` it.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)

        Returns:
            Open httpx.Response (status not checked)

        Raises:
            httpx.HTTPError: If the request cannot be sent
        """
        model = model or config.CHAT_MODEL

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        client = self._get_client()
        request = client.build_request(
            "POST",
            f"{self.completion_base_url}/chat/completions",
            json={"model": model, "messages": messages, "stream": True},
            headers=headers,
            timeout=httpx.Timeout(self.timeout, read=self.completion_timeout),
        )

        logger.info(
            "chat_completion_request",
            model=model,
            message_count=len(messages),
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error("chat_completion_connection_error", error=str(e), base_url=self.completion_base_url)
            raise

        logger.info("chat_completion_stream_opened", status_code=response.status_code)
        return response

    async def list_models(self) -> List[str]:
        """List all available Ollama models.

        Raises:
            httpx.HTTPError: On API errors
        """
        try:
            response = await self._get_client().get(
                f"{self.ollama_base_url}/api/tags", timeout=5.0
            )
            response.raise_for_status()
            data = response.json()
            return [m["name"] for m in data.get("models", [])]
        except httpx.HTTPError as e:
            logger.error("ollama_list_models_error", error=str(e))
            raise
