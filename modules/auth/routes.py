"""
Auth Module - Routes
=====================
Register, login, logout and session check on a single action-dispatched
endpoint (`/auth?action=...`).
"""

from typing import Any, Dict

from fastapi import APIRouter, Request, Depends, Body, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import SESSION_COOKIE
from common.security import csrf_check, get_cookie_kwargs
from common.exceptions import ValidationError
from modules.auth.service import auth_service
from modules.auth.deps import get_current_active_user

router = APIRouter(tags=["auth"])


def _user_summary(user) -> dict:
    return {"id": user.id, "username": user.username}


@router.post("/auth")
async def auth_action(
    request: Request,
    action: str = Query(""),
    data: Dict[str, Any] = Body(default={}),
    db: Session = Depends(get_db),
):
    csrf_check(request)

    if action == "register":
        auth_service.register(db, data.get("username"), data.get("email"), data.get("password"))
        db.commit()
        return {"success": True, "message": "Registration successful"}

    if action == "login":
        user, token = auth_service.login(db, data.get("username"), data.get("password"))
        db.commit()
        response = JSONResponse({
            "success": True,
            "message": "Login successful",
            "user": _user_summary(user),
        })
        response.set_cookie(SESSION_COOKIE, token, **get_cookie_kwargs())
        return response

    raise ValidationError("Unknown action")


@router.get("/auth")
async def auth_query(
    request: Request,
    action: str = Query(""),
    db: Session = Depends(get_db),
    user=Depends(get_current_active_user),
):
    if action == "logout":
        auth_service.logout(db, request.cookies.get(SESSION_COOKIE))
        db.commit()
        response = JSONResponse({"success": True, "message": "Logged out"})
        response.delete_cookie(SESSION_COOKIE)
        return response

    if action == "check":
        if user:
            return {"authenticated": True, "user": _user_summary(user)}
        return {"authenticated": False}

    raise ValidationError("Unknown action")
