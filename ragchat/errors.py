"""Exception types raised across the RAG pipeline."""


class RagChatError(Exception):
    """Base class for all application errors."""


class DimensionMismatchError(RagChatError, ValueError):
    """Two embeddings of different length were compared or mixed."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )


class PartitionMismatchError(RagChatError, ValueError):
    """A document's metadata mode does not match the partition it was added to."""


class PersistenceError(RagChatError):
    """Reading or writing the durable partition failed."""


class ExtractionError(RagChatError):
    """Text could not be extracted from an uploaded file."""


class EmbeddingError(RagChatError):
    """The embedding provider failed or returned an unusable vector."""
