"""Hybrid vector store combining an ephemeral and a durable partition.

Mutations are routed to the partition named by the caller's mode. Search
fans out to both partitions and merges their results.
"""
import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import structlog

from ragchat import config
from ragchat.rag.documents import Document, ScoredDocument, StorageMode
from ragchat.rag.partition import DocumentPartition, DurablePartition, EphemeralPartition
from ragchat.rag.ranking import merge_ranked

logger = structlog.get_logger()


@dataclass
class PartitionListing:
    """Contents of both partitions, kept apart so callers can tell them apart."""

    ephemeral: List[Document]
    durable: List[Document]

    def to_dict(self) -> Dict[str, List[dict]]:
        return {
            StorageMode.EPHEMERAL.value: [doc.summary() for doc in self.ephemeral],
            StorageMode.DURABLE.value: [doc.summary() for doc in self.durable],
        }


class HybridStore:
    """Vector store over one ephemeral and one durable partition."""

    def __init__(
        self,
        ephemeral: Optional[DocumentPartition] = None,
        durable: Optional[DocumentPartition] = None,
        durable_path: Optional[Path] = None,
    ):
        """Initialize the hybrid store.

        Args:
            ephemeral: In-memory partition (created if not provided)
            durable: Persisted partition (created if not provided)
            durable_path: JSON file for the durable partition (default from config)
        """
        self.ephemeral = ephemeral or EphemeralPartition()
        self.durable = durable or DurablePartition(durable_path or config.DURABLE_STORE_PATH)

        logger.info(
            "hybrid_store_initialized",
            durable_path=str(getattr(self.durable, "path", "")),
        )

    def partition(self, mode: StorageMode) -> DocumentPartition:
        """Return the partition for ``mode``."""
        if mode == StorageMode.EPHEMERAL:
            return self.ephemeral
        if mode == StorageMode.DURABLE:
            return self.durable
        raise ValueError(f"Unknown storage mode: {mode!r}")

    async def add(self, doc: Document, mode: StorageMode) -> bool:
        return await self.partition(mode).add(doc)

    async def delete(self, doc_id: str, mode: StorageMode) -> bool:
        return await self.partition(mode).delete(doc_id)

    async def clear(self, mode: StorageMode) -> bool:
        return await self.partition(mode).clear()

    async def clear_all(self) -> bool:
        """Clear both partitions.

        The durable partition goes first: if its persist fails the error
        propagates and the ephemeral partition is left untouched.
        """
        await self.durable.clear()
        await self.ephemeral.clear()
        return True

    async def list(self) -> PartitionListing:
        ephemeral_docs, durable_docs = await asyncio.gather(
            self.ephemeral.list(), self.durable.list()
        )
        return PartitionListing(ephemeral=ephemeral_docs, durable=durable_docs)

    async def search(self, query_vector: Sequence[float], top_k: int) -> List[ScoredDocument]:
        """Search both partitions and merge their results.

        Each partition contributes its own top ``top_k``; the concatenation is
        re-ranked and truncated. A document ranked below ``top_k`` inside its
        own partition is never considered, even if it would beat a hit from the
        other partition.
        """
        ephemeral_hits, durable_hits = await asyncio.gather(
            self.ephemeral.search(query_vector, top_k),
            self.durable.search(query_vector, top_k),
        )
        results = merge_ranked([ephemeral_hits, durable_hits], top_k)

        logger.info(
            "hybrid_search_completed",
            top_k=top_k,
            ephemeral_hits=len(ephemeral_hits),
            durable_hits=len(durable_hits),
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )
        return results
