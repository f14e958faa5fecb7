"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document records and storage modes
- Cosine-similarity ranking
- Ephemeral and durable document partitions
- The hybrid store over both partitions
- Retrieval orchestration for chat requests
"""
