"""Retrieval orchestration for chat requests.

Handles:
- Query embedding generation
- Hybrid store search
- Context formatting and system-prompt injection
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from ragchat import config
from ragchat.embeddings import Embedder
from ragchat.rag.documents import ScoredDocument
from ragchat.rag.store import HybridStore

logger = structlog.get_logger()

CONTEXT_DELIMITER = "\n\n---\n\n"

RAG_INSTRUCTIONS = """You have access to documents uploaded by the user. Relevant excerpts are provided below.

INSTRUCTIONS:
- Prefer the document context when it is relevant to the question
- If the context does not contain the answer, you may answer from your general knowledge
- When you use information from a document, name the source document it came from

DOCUMENT CONTEXT:
{context}"""


@dataclass
class AugmentedPrompt:
    """Messages to send upstream and the filenames retrieval drew on."""

    messages: List[Dict[str, str]]
    sources: List[str] = field(default_factory=list)


def format_context(hits: List[ScoredDocument]) -> str:
    """Join retrieved documents into a single context block."""
    parts = [
        f"[Source: {hit.document.metadata.filename}]\n{hit.document.text.strip()}"
        for hit in hits
    ]
    return CONTEXT_DELIMITER.join(parts)


def merge_system_message(
    messages: List[Dict[str, str]], instruction: str
) -> List[Dict[str, str]]:
    """Append ``instruction`` to the leading system message, or prepend a new one."""
    if messages and messages[0].get("role") == "system":
        head = dict(messages[0])
        existing = head.get("content") or ""
        head["content"] = f"{existing}\n\n{instruction}" if existing else instruction
        return [head] + [dict(m) for m in messages[1:]]

    return [{"role": "system", "content": instruction}] + [dict(m) for m in messages]


class RetrievalOrchestrator:
    """Augments a conversation with context retrieved from the hybrid store.

    Retrieval is best effort: any failure is logged and the conversation is
    forwarded unchanged.
    """

    def __init__(
        self,
        store: HybridStore,
        embedder: Embedder,
        top_k: Optional[int] = None,
    ):
        self.store = store
        self.embedder = embedder
        self.top_k = top_k or config.RETRIEVAL_TOP_K

        logger.info("retrieval_orchestrator_initialized", top_k=self.top_k)

    async def retrieve(self, question: str) -> List[ScoredDocument]:
        """Embed ``question`` and return the top matches.

        Raises:
            EmbeddingError: If the question cannot be embedded
            DimensionMismatchError: If stored embeddings do not match the query
        """
        embedding = await self.embedder.embed(question)
        return await self.store.search(embedding, self.top_k)

    async def augment(
        self, question: str, history: List[Dict[str, str]]
    ) -> AugmentedPrompt:
        """Build the outgoing message list for ``question``.

        Args:
            question: The user's latest question
            history: Conversation so far, including the question

        Returns:
            AugmentedPrompt with the final messages and ordered source filenames
        """
        unchanged = AugmentedPrompt(messages=[dict(m) for m in history])

        if not question or not question.strip():
            logger.info("empty_question_retrieval_skipped")
            return unchanged

        try:
            hits = await self.retrieve(question)
        except Exception as e:
            # Graceful degradation: continue without context
            logger.error(
                "rag_retrieval_failed",
                error=str(e),
                error_type=type(e).__name__,
                query_preview=question[:100],
            )
            return unchanged

        if not hits:
            logger.info("no_relevant_context_found")
            return unchanged

        context = format_context(hits)
        messages = merge_system_message(history, RAG_INSTRUCTIONS.format(context=context))

        sources: List[str] = []
        for hit in hits:
            filename = hit.document.metadata.filename
            if filename not in sources:
                sources.append(filename)

        logger.info(
            "rag_retrieval_completed",
            num_sources=len(sources),
            context_length=len(context),
            top_score=round(hits[0].score, 3),
        )

        return AugmentedPrompt(messages=messages, sources=sources)
