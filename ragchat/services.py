"""Service container shared by the HTTP handlers."""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog

from ragchat.embeddings import Embedder
from ragchat.llm_client import LLMClient
from ragchat.rag.retriever import RetrievalOrchestrator
from ragchat.rag.store import HybridStore

logger = structlog.get_logger()


@dataclass
class RagServices:
    """Everything a request handler needs, built once per process."""

    llm_client: LLMClient
    embedder: Embedder
    store: HybridStore
    orchestrator: RetrievalOrchestrator

    @classmethod
    def create(
        cls,
        llm_client: Optional[LLMClient] = None,
        durable_path: Optional[Path] = None,
        top_k: Optional[int] = None,
    ) -> "RagServices":
        """Wire up the default services.

        Args:
            llm_client: HTTP client (a default LLMClient if not provided)
            durable_path: JSON file for the durable partition (default from config)
            top_k: Number of documents retrieved per question (default from config)
        """
        llm_client = llm_client or LLMClient()
        embedder = Embedder(llm_client)
        store = HybridStore(durable_path=durable_path)
        orchestrator = RetrievalOrchestrator(store, embedder, top_k=top_k)
        return cls(
            llm_client=llm_client,
            embedder=embedder,
            store=store,
            orchestrator=orchestrator,
        )

    async def startup(self) -> None:
        logger.info("services_started", embedding_model=self.embedder.model)

    async def shutdown(self) -> None:
        await self.llm_client.aclose()
        logger.info("services_stopped")
