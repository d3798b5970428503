"""
Caller identity and admin guard

Users are authenticated upstream; the gateway forwards the user id in
X-User-Id. Admin routes require the shared ADMIN_API_TOKEN.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from tutorgen.config import get_settings

USER_ID_HEADER = "X-User-Id"
ADMIN_TOKEN_HEADER = "X-Admin-Token"


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
) -> str:
    """Dependency returning the calling user's id"""
    user_id = (x_user_id or "").strip()
    if not user_id or len(user_id) > 64:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing or invalid {USER_ID_HEADER} header",
        )
    return user_id


async def require_admin(
    x_admin_token: Optional[str] = Header(None, alias=ADMIN_TOKEN_HEADER),
) -> None:
    settings = get_settings()
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API disabled: ADMIN_API_TOKEN not configured",
        )
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin token")
