"""
Profile Routes
================
View and edit the saved shipping profile (`/settings`).
"""

from typing import Any, Dict

from fastapi import APIRouter, Request, Depends, Body
from sqlalchemy.orm import Session

from config.database import get_db
from common.security import csrf_check
from modules.auth.deps import require_login
from modules.customer.service import profile_service, profile_to_dict

router = APIRouter(tags=["profile"])


@router.get("/settings")
async def profile_page(me=Depends(require_login)):
    return profile_to_dict(me)


@router.post("/settings")
async def profile_update(
    request: Request,
    data: Dict[str, Any] = Body(default={}),
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)
    profile_service.update_shipping_profile(
        db, me, data.get("real_name"), data.get("phone"), data.get("address"),
    )
    db.commit()
    return {"success": True, "message": "Profile updated"}
