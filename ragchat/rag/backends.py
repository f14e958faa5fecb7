"""Storage backends for document partitions.

A backend only knows how to load the full document list and persist it
again; ranking and mutation live in the partition.
"""
import asyncio
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

import structlog
from pydantic import ValidationError

from ragchat.errors import PersistenceError
from ragchat.rag.documents import Document

logger = structlog.get_logger()


class StorageBackend(ABC):
    """Load/persist hooks used by a partition."""

    @abstractmethod
    async def load(self) -> List[Document]:
        """Return the stored documents (empty list if nothing stored yet)."""

    @abstractmethod
    async def persist(self, documents: List[Document]) -> None:
        """Replace the stored documents with ``documents``."""


class MemoryBackend(StorageBackend):
    """Process-lifetime storage: nothing to load, nothing to write."""

    async def load(self) -> List[Document]:
        return []

    async def persist(self, documents: List[Document]) -> None:
        return None


class JsonFileBackend(StorageBackend):
    """Stores the whole partition as one JSON array on disk.

    Each persist overwrites the file with the full contents. The write goes to
    a temporary sibling first and is renamed over the target.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> List[Document]:
        """Read documents from disk.

        Raises:
            PersistenceError: If the file exists but cannot be read or parsed
        """
        return await asyncio.to_thread(self._read)

    async def persist(self, documents: List[Document]) -> None:
        """Write documents to disk.

        Raises:
            PersistenceError: If the file cannot be written
        """
        payload = [doc.model_dump(mode="json", by_alias=True) for doc in documents]
        await asyncio.to_thread(self._write, payload)

        logger.info(
            "durable_partition_persisted",
            path=str(self.path),
            document_count=len(documents),
        )

    def _read(self) -> List[Document]:
        if not self.path.exists():
            logger.info("durable_partition_file_missing", path=str(self.path))
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read {self.path}: {e}") from e

        if not isinstance(records, list):
            raise PersistenceError(f"Expected a JSON array in {self.path}")

        try:
            documents = [Document.model_validate(record) for record in records]
        except ValidationError as e:
            raise PersistenceError(f"Invalid document record in {self.path}: {e}") from e

        logger.info(
            "durable_partition_loaded",
            path=str(self.path),
            document_count=len(documents),
        )
        return documents

    def _write(self, payload: list) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e
