"""Request authentication against Supabase auth."""

import logging
from typing import Optional

from fastapi import Header, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .supabase import supabase_client

logger = logging.getLogger(__name__)


class JWTBearer(HTTPBearer):
    """Resolves the bearer token to the calling user as ``{"id", "email"}``."""

    def __init__(self, auto_error: bool = True):
        super().__init__(auto_error=auto_error)

    async def __call__(self, request: Request) -> dict:
        credentials: Optional[HTTPAuthorizationCredentials] = await super().__call__(request)
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(status_code=403, detail="Invalid authentication scheme")

        try:
            response = supabase_client.auth.get_user(credentials.credentials)
        except Exception as e:
            logger.info("Token rejected: %s", e)
            raise HTTPException(status_code=401, detail="Invalid or expired token")

        user = getattr(response, "user", None)
        if user is None:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        return {"id": str(user.id), "email": getattr(user, "email", None)}


async def get_org_id(x_org_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Optional organization scope for profiles and runs."""
    return x_org_id or None
