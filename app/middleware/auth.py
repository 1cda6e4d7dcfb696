"""Caller identity.

Authentication itself happens upstream; the session layer forwards the
authenticated user id in the X-User-Id header.
"""

from fastapi import Header

from app.utils.exceptions import AuthenticationError


async def get_current_user_id(x_user_id: str = Header(None, alias="X-User-Id")) -> str:
    """
    Resolve the caller's user id.

    Raises:
        AuthenticationError: If the header is missing or blank
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise AuthenticationError("Missing user identity. Provide the X-User-Id header.")
    return user_id
