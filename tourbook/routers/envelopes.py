"""
Response envelopes and the session cookie shared by the routers.

Successful responses are wrapped as:

    {"status": "success", "data": {"tour": {...}}}
    {"status": "success", "results": 3, "data": {"tours": [...]}}

Login-like endpoints also return the token and set it as the "jwt" cookie.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Response

from tourbook.config import settings
from tourbook.dependencies import AUTH_COOKIE
from tourbook.services.handler_factory import ListResult


def item_envelope(name: str, item: Any) -> dict:
    return {"status": "success", "data": {name: item}}


def list_envelope(plural: str, listing: ListResult) -> dict:
    return {
        "status": "success",
        "results": listing.results,
        "data": {plural: listing.items},
    }


def set_auth_cookie(response: Response, token: str) -> None:
    """HttpOnly cookie carrying the session token; secure in production."""
    expires = datetime.now(timezone.utc) + timedelta(days=settings.JWT_COOKIE_EXPIRE_DAYS)
    response.set_cookie(
        AUTH_COOKIE,
        token,
        expires=expires,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_auth_cookie(response: Response) -> None:
    """Overwrite the session cookie with a dummy value that expires in 10s."""
    response.set_cookie(
        AUTH_COOKIE,
        "loggedout",
        max_age=10,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
