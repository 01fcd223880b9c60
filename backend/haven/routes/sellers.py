"""
Handcrafted Haven Backend — Seller Directory Route Handlers
===========================================================

What:  The "Meet our artisans" directory and the contact-an-artisan form.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from haven.database import get_db_session
from haven.deps import optional_user
from haven.models.user_profile import UserProfile
from haven.schemas.common import ErrorResponse
from haven.schemas.message import ContactMessageRequest, ContactMessageSentResponse
from haven.schemas.profile import SellerListResponse
from haven.services.contact_service import contact_service
from haven.services.profile_service import profile_service

router = APIRouter(prefix="/api/sellers", tags=["Sellers"])


@router.get(
    "",
    response_model=SellerListResponse,
    summary="List artisans",
    description="Active artisans, verified first, then by name. Each carries its product count.",
)
async def list_sellers(
    response: Response,
    search: Optional[str] = Query(
        default=None, description="Case-insensitive match on name, shop name or location"
    ),
    db: AsyncSession = Depends(get_db_session),
) -> SellerListResponse:
    result = await profile_service.list_sellers(db, search=search)
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.post(
    "/{seller_id}/messages",
    status_code=201,
    response_model=ContactMessageSentResponse,
    responses={
        400: {"description": "Form validation failed", "model": ErrorResponse},
        404: {"description": "Seller not found", "model": ErrorResponse},
    },
    summary="Send a message to an artisan",
    description="Guests may send messages; signed-in senders are linked to their profile.",
)
async def contact_seller(
    seller_id: UUID,
    body: ContactMessageRequest,
    sender: Optional[UserProfile] = Depends(optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> ContactMessageSentResponse:
    return await contact_service.send_contact_message(
        db, seller_id, body, sender_id=sender.id if sender else None
    )
