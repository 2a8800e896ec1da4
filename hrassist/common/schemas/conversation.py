"""
Conversation Schemas

Chat messages and the conversation snapshot the budget manager reads.
The hosting application owns and mutates ConversationState between turns.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    """Author of a chat message"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class AssistantType(str, Enum):
    """Domain handler selected for a query"""
    EMPLOYEE = "employee"
    TALENT = "talent"
    UNIFIED = "unified"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    """One message in the conversation history"""
    id: str = Field(default_factory=lambda: f"msg_{uuid.uuid4().hex[:12]}")
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_now)
    assistant_type: Optional[AssistantType] = None

    def to_api(self) -> Dict[str, str]:
        """Role/content pair in the shape LLM transports expect"""
        return {"role": self.role.value, "content": self.content}


class ConversationState(BaseModel):
    """Snapshot of a conversation at the start of a turn"""
    messages: List[ChatMessage] = Field(default_factory=list)
    active_assistant_type: AssistantType = AssistantType.UNIFIED
    preferences: Dict[str, Any] = Field(default_factory=dict)
    referenced_data: Dict[str, Any] = Field(default_factory=dict)


class ContextMetadata(BaseModel):
    """Token accounting for one turn, recomputed every call"""
    total_tokens: int = 0
    message_count: int = 0
    last_updated: datetime = Field(default_factory=_now)
