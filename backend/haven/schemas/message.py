"""
Handcrafted Haven Backend — Contact Message Schemas
===================================================
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class ContactMessageRequest(BaseModel):
    """Contact-the-seller form; checked field by field in ContactService."""
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


class ContactMessageResponse(BaseModel):
    id: uuid.UUID
    seller_id: uuid.UUID
    sender_id: Optional[uuid.UUID] = None
    sender_name: str
    sender_email: str
    subject: str
    message: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ContactMessageSentResponse(BaseModel):
    message: str
    message_id: uuid.UUID


class ContactMessageListResponse(BaseModel):
    messages: List[ContactMessageResponse]
    count: int


class UnreadCountResponse(BaseModel):
    count: int
