"""Bearer token verification for feedback submission.

Tokens are issued by the authentication collaborator; this service only
verifies them and trusts the identity they carry.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from forecast_feedback.config import Settings

TOKEN_LIFETIME = timedelta(days=7)

security = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    id: str
    display_name: str


def create_access_token(settings: Settings, user_id: str, display_name: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "displayName": display_name,
        "iat": now,
        "exp": now + TOKEN_LIFETIME,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> AuthenticatedUser:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token subject")
    return AuthenticatedUser(id=str(user_id), display_name=payload.get("displayName") or "User")


async def require_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AuthenticatedUser:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    token = (credentials.credentials or "").strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing token")
    return decode_access_token(request.app.state.settings, token)
