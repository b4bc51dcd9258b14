"""
Cookie-held JWTs for the two staff roles.

admin   -> admin_token,   signed with ADMIN_SECRET,   valid 1 day
kitchen -> kitchen_token, signed with KITCHEN_SECRET, valid 7 days
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Cookie, HTTPException
from fastapi.responses import Response
from jose import JWTError, jwt
from pydantic import BaseModel

import config

logger = logging.getLogger(__name__)

ADMIN_COOKIE = "admin_token"
KITCHEN_COOKIE = "kitchen_token"


class AdminLoginBody(BaseModel):
    name: str
    dob: str
    aadhaar: str
    pan: str
    phone: str


class KitchenLoginBody(BaseModel):
    name: str
    number: str
    pin: str


def _same(given: Optional[str], expected: Optional[str]) -> bool:
    if not given or not expected:
        return False
    return secrets.compare_digest(given.encode(), expected.encode())


def check_admin_credentials(body: AdminLoginBody) -> bool:
    # every field is compared, no short circuit
    checks = [
        _same(body.name, config.ADMIN_NAME),
        _same(body.dob, config.ADMIN_DOB),
        _same(body.aadhaar, config.ADMIN_AADHAAR),
        _same(body.pan, config.ADMIN_PAN),
        _same(body.phone, config.ADMIN_PHONE),
    ]
    return all(checks)


def check_kitchen_credentials(body: KitchenLoginBody) -> bool:
    checks = [
        _same(body.name, config.KITCHEN_NAME),
        _same(body.number, config.KITCHEN_NUMBER),
        _same(body.pin, config.KITCHEN_PIN),
    ]
    return all(checks)


def create_jwt(role: str, secret: str, expire_minutes: int) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expire_minutes)
    return jwt.encode({"role": role, "iat": now, "exp": exp}, secret, algorithm=config.JWT_ALG)


def decode_jwt(token: str, secret: str, role: str) -> Dict[str, Any]:
    try:
        data = jwt.decode(token, secret, algorithms=[config.JWT_ALG])
    except JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {str(e)}")
    if data.get("role") != role:
        raise HTTPException(status_code=401, detail="Invalid role")
    return data


def issue_admin_token() -> str:
    return create_jwt("admin", config.ADMIN_SECRET, config.ADMIN_TOKEN_EXPIRE_MIN)


def issue_kitchen_token() -> str:
    return create_jwt("kitchen", config.KITCHEN_SECRET, config.KITCHEN_TOKEN_EXPIRE_MIN)


def set_token_cookie(response: Response, name: str, token: str, max_age: int, strict: bool = False) -> None:
    same_site = "strict" if strict and config.IS_PRODUCTION else "lax"
    response.set_cookie(name, token, max_age=max_age, path="/", httponly=True,
                        secure=config.IS_PRODUCTION, samesite=same_site)


def clear_token_cookie(response: Response, name: str) -> None:
    response.delete_cookie(name, path="/", httponly=True, secure=config.IS_PRODUCTION)


# ---------------------- Request gates ----------------------
def require_admin(admin_token: Optional[str] = Cookie(None)) -> Dict[str, Any]:
    if not admin_token:
        raise HTTPException(status_code=401, detail="Admin login required")
    return decode_jwt(admin_token, config.ADMIN_SECRET, "admin")


def require_kitchen(kitchen_token: Optional[str] = Cookie(None)) -> Dict[str, Any]:
    if not kitchen_token:
        raise HTTPException(status_code=401, detail="Kitchen login required")
    return decode_jwt(kitchen_token, config.KITCHEN_SECRET, "kitchen")


def require_staff(admin_token: Optional[str] = Cookie(None),
                  kitchen_token: Optional[str] = Cookie(None)) -> Dict[str, Any]:
    """Either role will do; admin is tried first."""
    if admin_token:
        try:
            return decode_jwt(admin_token, config.ADMIN_SECRET, "admin")
        except HTTPException:
            if not kitchen_token:
                raise
    if kitchen_token:
        return decode_jwt(kitchen_token, config.KITCHEN_SECRET, "kitchen")
    raise HTTPException(status_code=401, detail="Staff login required")
