"""Messaging schemas."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .common import BaseSchema


class ConversationCreate(BaseSchema):
    participant_ids: List[str] = Field(..., min_length=1, description="Other participants")
    title: Optional[str] = Field(None, description="Defaults to the participants' names")


class ConversationResponse(BaseSchema):
    id: str
    participants: List[str]
    title: str
    last_message: Optional[Dict[str, Any]] = None
    last_activity: Optional[datetime] = None
    created_at: Optional[datetime] = None


class MessageCreate(BaseSchema):
    content: str = Field(..., min_length=1, max_length=5000)
    type: str = Field("text", description="Message type")


class MessageResponse(BaseSchema):
    id: str
    conversation_id: str
    sender_id: str
    sender_name: Optional[str] = None
    content: str
    type: str = "text"
    timestamp: datetime
    read: bool = False


class UnreadResponse(BaseSchema):
    unread: int
