"""Shared pytest fixtures for the ragchat test suite."""
import json
from typing import List, Optional

import httpx
import pytest

from ragchat import config
from ragchat.llm_client import LLMClient
from ragchat.rag.documents import Document, DocumentMetadata, StorageMode
from ragchat.services import RagServices

OLLAMA_URL = "http://ollama.test"
COMPLETION_URL = "http://llm.test/v1"


def make_doc(
    doc_id: str,
    embedding: List[float],
    mode: StorageMode = StorageMode.EPHEMERAL,
    filename: Optional[str] = None,
    text: Optional[str] = None,
) -> Document:
    return Document(
        id=doc_id,
        text=text or f"text of {doc_id}",
        embedding=embedding,
        metadata=DocumentMetadata(
            filename=filename or f"{doc_id}.txt",
            uploaded_at=1_700_000_000_000,
            mode=mode,
        ),
    )


def keyword_embedding(text: str) -> List[float]:
    """Deterministic 3-d embedding: cats, dogs, anything else."""
    lowered = text.lower()
    if "cat" in lowered:
        return [1.0, 0.0, 0.0]
    if "dog" in lowered:
        return [0.0, 1.0, 0.0]
    return [0.0, 0.0, 1.0]


def sse(*contents: str) -> List[bytes]:
    """Encode text deltas as OpenAI-style SSE chunks ending with [DONE]."""
    chunks = [
        f"data: {json.dumps({'choices': [{'delta': {'content': c}}]})}\n\n".encode()
        for c in contents
    ]
    chunks.append(b"data: [DONE]\n\n")
    return chunks


class FakeUpstream:
    """Stands in for the Ollama embedding API and the chat completion API."""

    def __init__(self):
        self.chat_status = 200
        self.chat_error_body = "rate limited"
        self.chat_chunks: List[bytes] = sse("Hel", "lo")
        self.embedding_status = 200
        self.models = [config.EMBEDDING_MODEL]

        self.chat_requests: List[dict] = []
        self.chat_headers: List[httpx.Headers] = []
        self.embedding_prompts: List[str] = []

    async def _stream(self):
        for chunk in self.chat_chunks:
            yield chunk

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path

        if path == "/api/embeddings":
            prompt = json.loads(request.content)["prompt"]
            self.embedding_prompts.append(prompt)
            if self.embedding_status != 200:
                return httpx.Response(self.embedding_status, text="embedding failure")
            return httpx.Response(200, json={"embedding": keyword_embedding(prompt)})

        if path == "/v1/chat/completions":
            self.chat_requests.append(json.loads(request.content))
            self.chat_headers.append(request.headers)
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, text=self.chat_error_body)
            return httpx.Response(
                200,
                content=self._stream(),
                headers={"content-type": "text/event-stream"},
            )

        if path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": m} for m in self.models]})

        return httpx.Response(404)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def llm_client(upstream: FakeUpstream) -> LLMClient:
    return LLMClient(
        ollama_base_url=OLLAMA_URL,
        completion_base_url=COMPLETION_URL,
        api_key="test-key",
        transport=httpx.MockTransport(upstream.handler),
    )


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "vector-store.json"


@pytest.fixture
def services(llm_client: LLMClient, store_path) -> RagServices:
    return RagServices.create(llm_client=llm_client, durable_path=store_path, top_k=3)


@pytest.fixture
def app(services: RagServices):
    from ragchat.main import create_app

    return create_app(services)


@pytest.fixture
def client(app):
    return app.test_client()
