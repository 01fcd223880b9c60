"""
Handcrafted Haven Backend — Contact Service
===========================================

What:  "Contact the artisan" messages and the seller's inbox.
Who:   POST /api/sellers/{id}/messages (anyone) and /api/messages (the seller).

Form checks run in a fixed order so the shopper sees one problem at a time:
    name → email present → email shape → subject → message → message length
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from haven.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from haven.models.contact_message import MAX_MESSAGE_LENGTH, ContactMessage
from haven.models.user_profile import UserProfile
from haven.schemas.common import MessageResponse
from haven.schemas.message import (
    ContactMessageListResponse,
    ContactMessageRequest,
    ContactMessageResponse,
    ContactMessageSentResponse,
    UnreadCountResponse,
)
from haven.services.error_messages import contact_error_message
from haven.utils.limits import check_length

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ContactService:

    def validate_message(self, data: ContactMessageRequest) -> ContactMessageRequest:
        """Return a trimmed copy of the form, or raise on the first problem."""
        name = (data.sender_name or "").strip()
        if not name:
            raise ValidationError(message="Your name is required", field="sender_name")
        check_length(ContactMessage.sender_name, name, "Your name")

        email = (data.sender_email or "").strip().lower()
        if not email:
            raise ValidationError(message="Your email is required", field="sender_email")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError(message="Please enter a valid email address", field="sender_email")
        check_length(ContactMessage.sender_email, email, "Your email")

        subject = (data.subject or "").strip()
        if not subject:
            raise ValidationError(message="Subject is required", field="subject")
        check_length(ContactMessage.subject, subject, "Subject")

        body = (data.message or "").strip()
        if not body:
            raise ValidationError(message="Message content is required", field="message")
        if len(body) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                message=f"Message is too long (maximum {MAX_MESSAGE_LENGTH} characters)",
                field="message",
                context={"length": len(body)},
            )

        return ContactMessageRequest(
            sender_name=name, sender_email=email, subject=subject, message=body
        )

    async def send_contact_message(
        self,
        db: AsyncSession,
        seller_id: UUID,
        data: ContactMessageRequest,
        sender_id: Optional[UUID] = None,
    ) -> ContactMessageSentResponse:
        """
        Deliver a message to an artisan's inbox.

        Raises:
            ValidationError: form problems, see module docstring
            NotFoundError: seller does not exist
        """
        clean = self.validate_message(data)

        seller = await db.get(UserProfile, seller_id)
        if seller is None or not seller.is_active:
            raise NotFoundError(
                resource="seller",
                resource_id=str(seller_id),
                message=contact_error_message("foreign key"),
            )

        message = ContactMessage(
            seller_id=seller_id,
            sender_id=sender_id,
            sender_name=clean.sender_name,
            sender_email=clean.sender_email,
            subject=clean.subject,
            message=clean.message,
            is_read=False,
        )
        db.add(message)
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Contact message rejected for seller %s: %s", seller_id, e.orig)
            raise ConflictError(message=contact_error_message(str(e.orig)))
        except SQLAlchemyError as e:
            logger.error("Database error sending contact message: %s", e, exc_info=True)
            raise DatabaseError(message=contact_error_message(str(e)))

        logger.info("Contact message %s sent to seller %s", message.id, seller_id)
        return ContactMessageSentResponse(
            message="Thank you for reaching out! Your message has been sent successfully.",
            message_id=message.id,
        )

    async def get_seller_messages(
        self,
        db: AsyncSession,
        seller_id: UUID,
        unread_only: bool = False,
        limit: Optional[int] = None,
    ) -> ContactMessageListResponse:
        """The seller's inbox, newest first."""
        query = select(ContactMessage).where(ContactMessage.seller_id == seller_id)
        if unread_only:
            query = query.where(ContactMessage.is_read.is_(False))
        query = query.order_by(desc(ContactMessage.created_at), desc(ContactMessage.id))
        if limit:
            query = query.limit(limit)

        messages = (await db.execute(query)).scalars().all()
        return ContactMessageListResponse(
            messages=[ContactMessageResponse.model_validate(m) for m in messages],
            count=len(messages),
        )

    async def _get_own_message(
        self, db: AsyncSession, message_id: UUID, seller_id: UUID
    ) -> ContactMessage:
        # Someone else's message is reported as missing rather than forbidden
        message = await db.get(ContactMessage, message_id)
        if message is None or message.seller_id != seller_id:
            raise NotFoundError(resource="message", resource_id=str(message_id), message="Message not found")
        return message

    async def mark_message_as_read(
        self, db: AsyncSession, message_id: UUID, seller_id: UUID
    ) -> MessageResponse:
        message = await self._get_own_message(db, message_id, seller_id)
        if not message.is_read:
            message.is_read = True
            message.read_at = datetime.now(timezone.utc)
            await db.flush()
        return MessageResponse(message="Message marked as read")

    async def get_unread_message_count(self, db: AsyncSession, seller_id: UUID) -> UnreadCountResponse:
        result = await db.execute(
            select(func.count())
            .select_from(ContactMessage)
            .where(ContactMessage.seller_id == seller_id, ContactMessage.is_read.is_(False))
        )
        return UnreadCountResponse(count=result.scalar_one())

    async def delete_message(
        self, db: AsyncSession, message_id: UUID, seller_id: UUID
    ) -> MessageResponse:
        message = await self._get_own_message(db, message_id, seller_id)
        await db.delete(message)
        await db.flush()
        logger.info("Contact message %s deleted by seller %s", message_id, seller_id)
        return MessageResponse(message="Message deleted successfully")


# ── Singleton Instance ────────────────────────────────────────────────────
contact_service = ContactService()
