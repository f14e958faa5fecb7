"""Document chat service with hybrid retrieval and streamed completions."""

__version__ = "0.1.0"
