from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from jose import jwt, JWTError

from permitted.config.settings import JWT_SECRET, JWT_ALGORITHM


@dataclass
class TokenClaims:
    user_id: str
    tenant_id: Optional[str]
    sub_tenant_id: Optional[str]


def decode_token(token: str) -> dict:
    """Decode and verify a bearer token issued by the embedding application."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def extract_claims(token: str) -> TokenClaims:
    """Extract the principal claims.

    - sub: user id (required)
    - tid: tenant id
    - stid: sub-tenant id
    """
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user identifier",
        )
    return TokenClaims(user_id=user_id, tenant_id=payload.get("tid"), sub_tenant_id=payload.get("stid"))


def create_access_token(user_id: str, expires_in: int = 3600, **claims) -> str:
    """Issue a token for a user; used by tooling and tests."""
    payload = {"sub": user_id, "exp": datetime.utcnow() + timedelta(seconds=expires_in), **claims}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)
