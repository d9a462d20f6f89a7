from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Sender(str, Enum):
    USER = "user"
    AGENT = "agent"


class Attachment(BaseModel):
    name: str
    type: str
    url: Optional[str] = None
    size: int


class MessageClosedError(RuntimeError):
    """Se intentó modificar un mensaje que ya no está en curso."""


class ChatMessage(BaseModel):
    id: str
    content: str = ""
    sender: Sender
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    agent_id: str
    conversation_id: Optional[str] = None
    attachments: List[Attachment] = []
    audio_url: Optional[str] = None
    in_progress: bool = False

    def append(self, text: str):
        if not self.in_progress:
            raise MessageClosedError(f"Message {self.id} is no longer streaming")
        self.content += text

    def close(self):
        self.in_progress = False


class ConversationSummary(BaseModel):
    id: str
    session_id: Optional[str] = None
    email: str
    agent_id: Optional[str] = None
    title: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConversationPage(BaseModel):
    items: List[ConversationSummary] = []
    page: int = 1
    has_more: bool = False


class ConversationMessages(BaseModel):
    messages: List[ChatMessage] = []
    session_id: Optional[str] = None


class RenameConversation(BaseModel):
    title: str


class StoreResult(BaseModel):
    success: bool
    error: Optional[str] = None
    # validation | not_found | database
    reason: Optional[str] = Field(None, exclude=True)

    @classmethod
    def ok(cls) -> "StoreResult":
        return cls(success=True)

    @classmethod
    def failure(cls, error: str, reason: str) -> "StoreResult":
        return cls(success=False, error=error, reason=reason)
