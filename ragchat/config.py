"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

# Ensure data directory exists
DATA_DIR.mkdir(parents=True, exist_ok=True)

# Ollama configuration (embeddings)
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "all-minilm:latest")
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "60.0"))

# Completion provider (any OpenAI-compatible /chat/completions endpoint)
COMPLETION_BASE_URL = os.getenv("COMPLETION_BASE_URL", f"{OLLAMA_BASE_URL}/v1")
COMPLETION_API_KEY = os.getenv("COMPLETION_API_KEY", "")
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama3.1:8b")

# Unset = no read timeout on the upstream stream
_completion_timeout = os.getenv("COMPLETION_TIMEOUT")
COMPLETION_TIMEOUT = float(_completion_timeout) if _completion_timeout else None

# RAG parameters
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "3"))

# Storage
DURABLE_STORE_PATH = Path(
    os.getenv("DURABLE_STORE_PATH", str(DATA_DIR / "vector-store.json"))
)

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(16 * 1024 * 1024)))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
