"""Request models validated at the HTTP boundary."""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ragchat.rag.documents import StorageMode


class ChatMessage(BaseModel):
    role: str = Field(min_length=1)
    content: str

    def to_wire(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class ChatRequest(BaseModel):
    """Body of ``POST /chat``. Unknown message fields are dropped."""

    messages: List[ChatMessage] = Field(min_length=1)

    def latest_question(self) -> Optional[str]:
        """Content of the last user message, if any."""
        for message in reversed(self.messages):
            if message.role == "user":
                return message.content
        return None


class DeleteRequest(BaseModel):
    id: str = Field(min_length=1)
    mode: StorageMode


class ClearMode(str, Enum):
    TEMPORARY = "temporary"
    PERMANENT = "permanent"
    ALL = "all"


class ClearRequest(BaseModel):
    mode: ClearMode


class UploadForm(BaseModel):
    mode: StorageMode = StorageMode.EPHEMERAL
