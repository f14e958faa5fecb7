"""Document records stored in the vector partitions."""
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class StorageMode(str, Enum):
    """Which partition a document belongs to.

    The values are the names used on the wire ("temporary"/"permanent").
    """

    EPHEMERAL = "temporary"
    DURABLE = "permanent"


class DocumentMetadata(BaseModel):
    """Descriptive fields attached to every stored document."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    filename: str
    uploaded_at: int = Field(alias="uploadedAt")  # epoch milliseconds
    mode: StorageMode


class Document(BaseModel):
    """An embedded document. Immutable once created; updates are delete + add."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    embedding: List[float]
    metadata: DocumentMetadata

    @classmethod
    def create(
        cls,
        text: str,
        embedding: List[float],
        filename: str,
        mode: StorageMode,
    ) -> "Document":
        """Build a new document with a generated id and the current timestamp."""
        return cls(
            id=uuid.uuid4().hex,
            text=text,
            embedding=list(embedding),
            metadata=DocumentMetadata(
                filename=filename,
                uploaded_at=int(time.time() * 1000),
                mode=mode,
            ),
        )

    def summary(self) -> dict:
        """Listing view without text or embedding."""
        return {
            "id": self.id,
            "filename": self.metadata.filename,
            "mode": self.metadata.mode.value,
            "uploadedAt": self.metadata.uploaded_at,
        }


@dataclass(frozen=True)
class ScoredDocument:
    """A search hit: the document and its cosine similarity to the query."""

    document: Document
    score: float
