"""
Identity comes from the upstream auth proxy, which authenticates the session
and forwards the user in trusted headers. This module only reads them.
"""
from typing import Optional

from fastapi import Depends, Request

from booking_schemas import AuthUser, Profile
from errors import Forbidden, Unauthorized
from services import Services, get_services

USER_ID_HEADER = "X-User-Id"
USER_EMAIL_HEADER = "X-User-Email"


def current_user(request: Request) -> Optional[AuthUser]:
    user_id = request.headers.get(USER_ID_HEADER)
    if not user_id:
        return None
    return AuthUser(id=user_id, email=request.headers.get(USER_EMAIL_HEADER))


def require_user(request: Request) -> AuthUser:
    user = current_user(request)
    if user is None:
        raise Unauthorized("Please sign in to continue")
    return user


def require_admin(user: AuthUser = Depends(require_user), services: Services = Depends(get_services)) -> AuthUser:
    record = services.store.get("profiles", user.id)
    profile = Profile.model_validate(record) if record is not None else None
    if profile is None or profile.role != "admin":
        raise Forbidden("Unauthorized: Admin access required")
    return user
