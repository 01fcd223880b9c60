"""
Handcrafted Haven Backend — Seller Inbox Route Handlers
=======================================================

What:  The signed-in artisan's contact messages.
Security:
    Every handler scopes by the caller's id; another seller's message
    answers 404, never 403, so message ids cannot be probed.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from haven.database import get_db_session
from haven.deps import current_user
from haven.models.user_profile import UserProfile
from haven.schemas.common import ErrorResponse, MessageResponse
from haven.schemas.message import ContactMessageListResponse, UnreadCountResponse
from haven.services.contact_service import contact_service

router = APIRouter(prefix="/api/messages", tags=["Messages"])


@router.get(
    "",
    response_model=ContactMessageListResponse,
    summary="Your inbox, newest first",
)
async def list_messages(
    response: Response,
    unread_only: bool = Query(default=False),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ContactMessageListResponse:
    result = await contact_service.get_seller_messages(
        db, user.id, unread_only=unread_only, limit=limit
    )
    response.headers["X-Total-Count"] = str(result.count)
    return result


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Number of unread messages",
)
async def unread_count(
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UnreadCountResponse:
    return await contact_service.get_unread_message_count(db, user.id)


@router.post(
    "/{message_id}/read",
    response_model=MessageResponse,
    responses={404: {"description": "Message not found", "model": ErrorResponse}},
    summary="Mark a message as read",
)
async def mark_read(
    message_id: UUID,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await contact_service.mark_message_as_read(db, message_id, user.id)


@router.delete(
    "/{message_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Message not found", "model": ErrorResponse}},
    summary="Delete a message",
)
async def delete_message(
    message_id: UUID,
    user: UserProfile = Depends(current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await contact_service.delete_message(db, message_id, user.id)
