"""Document partitions: an isolated, searchable collection of documents.

Handles:
- Lazy loading from the storage backend
- Add/delete/clear with persistence after every mutation
- Cosine-similarity search over all stored embeddings
"""
import asyncio
from pathlib import Path
from typing import List, Optional, Sequence

import structlog

from ragchat import config
from ragchat.errors import DimensionMismatchError, PartitionMismatchError
from ragchat.rag.backends import JsonFileBackend, MemoryBackend, StorageBackend
from ragchat.rag.documents import Document, ScoredDocument, StorageMode
from ragchat.rag.ranking import rank_documents

logger = structlog.get_logger()


class DocumentPartition:
    """A named collection of documents backed by a storage backend.

    Every load-mutate-persist sequence runs under a per-partition lock so
    concurrent writers are serialized. If persisting fails, the in-memory
    state is rolled back and the error propagates to the caller.
    """

    def __init__(self, mode: StorageMode, backend: StorageBackend):
        self.mode = mode
        self.backend = backend

        self._documents: List[Document] = []
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.mode.value

    async def _ensure_loaded(self) -> None:
        # Caller must hold self._lock
        if not self._loaded:
            self._documents = await self.backend.load()
            self._loaded = True

    async def _commit(self, documents: List[Document]) -> None:
        # Caller must hold self._lock
        await self.backend.persist(documents)
        self._documents = documents

    async def add(self, doc: Document) -> bool:
        """Append a document. Duplicate ids are not rejected.

        Raises:
            PartitionMismatchError: If the document's mode names another partition
            DimensionMismatchError: If its embedding length differs from stored ones
            PersistenceError: If the backend write fails
        """
        if doc.metadata.mode != self.mode:
            raise PartitionMismatchError(
                f"Document {doc.id} has mode '{doc.metadata.mode.value}' "
                f"but was added to the '{self.name}' partition"
            )

        async with self._lock:
            await self._ensure_loaded()

            if self._documents:
                expected = len(self._documents[0].embedding)
                if len(doc.embedding) != expected:
                    raise DimensionMismatchError(expected, len(doc.embedding))

            await self._commit(self._documents + [doc])

        logger.info(
            "document_added",
            partition=self.name,
            document_id=doc.id,
            filename=doc.metadata.filename,
        )
        return True

    async def delete(self, doc_id: str) -> bool:
        """Remove the first document with ``doc_id``; absent ids are a no-op."""
        async with self._lock:
            await self._ensure_loaded()

            index = next(
                (i for i, doc in enumerate(self._documents) if doc.id == doc_id),
                None,
            )
            if index is None:
                logger.info("document_not_found", partition=self.name, document_id=doc_id)
                return True

            await self._commit(self._documents[:index] + self._documents[index + 1:])

        logger.info("document_deleted", partition=self.name, document_id=doc_id)
        return True

    async def clear(self) -> bool:
        """Remove every document."""
        async with self._lock:
            await self._ensure_loaded()
            removed = len(self._documents)
            await self._commit([])

        logger.info("partition_cleared", partition=self.name, removed=removed)
        return True

    async def list(self) -> List[Document]:
        """Snapshot of current contents in insertion order."""
        async with self._lock:
            await self._ensure_loaded()
            return list(self._documents)

    async def search(self, query_vector: Sequence[float], top_k: int) -> List[ScoredDocument]:
        """Return up to ``top_k`` documents ranked by cosine similarity.

        Raises:
            DimensionMismatchError: If the query length differs from a stored embedding
        """
        documents = await self.list()
        results = rank_documents(query_vector, documents, top_k)

        logger.debug(
            "partition_search_completed",
            partition=self.name,
            candidates=len(documents),
            results_found=len(results),
        )
        return results


class EphemeralPartition(DocumentPartition):
    """Partition held in process memory only."""

    def __init__(self):
        super().__init__(StorageMode.EPHEMERAL, MemoryBackend())


class DurablePartition(DocumentPartition):
    """Partition persisted to a JSON file that survives restarts."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or config.DURABLE_STORE_PATH)
        super().__init__(StorageMode.DURABLE, JsonFileBackend(self.path))
