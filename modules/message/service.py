"""
Message Service - Business Logic
==================================
Send direct messages, list conversation partners, and read a thread.
Clients poll; nothing is pushed.
"""

import logging
from typing import List

from sqlalchemy import or_, and_, asc
from sqlalchemy.orm import Session, joinedload

from common.exceptions import ValidationError, NotFoundError
from common.helpers import clean_str, iso
from modules.message.models import Message
from modules.user.models import User

logger = logging.getLogger("remarket.message")

MAX_MESSAGE_LENGTH = 5000


def message_to_dict(msg: Message) -> dict:
    return {
        "id": msg.id,
        "sender_id": msg.sender_id,
        "receiver_id": msg.receiver_id,
        "sender_name": msg.sender.username if msg.sender else None,
        "content": msg.content,
        "created_at": iso(msg.created_at),
    }


class MessageService:

    def send(self, db: Session, sender_id: int, receiver_id: int, content: str) -> Message:
        content = clean_str(content)
        if not receiver_id or not content:
            raise ValidationError("Missing fields")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Message too long (max {MAX_MESSAGE_LENGTH} characters)")
        if receiver_id == sender_id:
            raise ValidationError("Cannot message yourself")
        if not db.query(User.id).filter(User.id == receiver_id).first():
            raise NotFoundError("User not found")

        msg = Message(sender_id=sender_id, receiver_id=receiver_id, content=content)
        db.add(msg)
        db.flush()
        return msg

    def get_conversation_partners(self, db: Session, user_id: int) -> List[User]:
        """Everyone the user has sent a message to or received one from."""
        sent_to = db.query(Message.receiver_id).filter(Message.sender_id == user_id)
        received_from = db.query(Message.sender_id).filter(Message.receiver_id == user_id)
        return (
            db.query(User)
            .filter(or_(User.id.in_(sent_to), User.id.in_(received_from)))
            .order_by(User.username)
            .all()
        )

    def get_history(self, db: Session, user_id: int, other_id: int) -> List[Message]:
        """All messages between two users, oldest first."""
        return (
            db.query(Message)
            .options(joinedload(Message.sender))
            .filter(or_(
                and_(Message.sender_id == user_id, Message.receiver_id == other_id),
                and_(Message.sender_id == other_id, Message.receiver_id == user_id),
            ))
            .order_by(asc(Message.created_at), asc(Message.id))
            .all()
        )


# Singleton
message_service = MessageService()
