"""
Message Routes
================
Conversation list, thread history (`?action=history&user_id=N`) and send.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, Depends, Body, Query
from sqlalchemy.orm import Session

from config.database import get_db
from common.security import csrf_check
from common.helpers import safe_id
from common.exceptions import ValidationError
from modules.auth.deps import require_login
from modules.message.service import message_service, message_to_dict

router = APIRouter(tags=["messages"])


@router.get("/messages")
async def messages(
    action: str = Query(""),
    user_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    if action == "history":
        other_id = safe_id(user_id)
        if not other_id:
            raise ValidationError("User ID required")
        return [message_to_dict(m) for m in message_service.get_history(db, me.id, other_id)]

    return [
        {"id": u.id, "username": u.username}
        for u in message_service.get_conversation_partners(db, me.id)
    ]


@router.post("/messages")
async def send_message(
    request: Request,
    data: Dict[str, Any] = Body(default={}),
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)
    message_service.send(db, me.id, safe_id(data.get("receiver_id")), data.get("content"))
    db.commit()
    return {"success": True}
