"""API key authentication.

API keys are hashed with SHA256 and looked up on an indexed column. The
same check backs REST requests (``x-api-key`` header) and the WebSocket
handshake (``?token=`` query parameter or ``x-api-key`` header).

Note: API keys use SHA256 (not bcrypt) because they are high-entropy
random strings, not user-chosen passwords, and every request needs a
fast deterministic lookup.
"""
import hashlib
import secrets
from fastapi import HTTPException, Security, Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session
from typing import Optional, Tuple

from alumni_chat.database import get_db
from alumni_chat.models.user import User
from alumni_chat.middleware.logging import bind_user

# API key header
api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


def hash_api_key(api_key: str) -> str:
    """
    Hash an API key for storage using SHA256.

    Args:
        api_key: Plain text API key

    Returns:
        SHA256 hex digest of the API key
    """
    return hashlib.sha256(api_key.encode()).hexdigest()


def authenticate_api_key(db: Session, api_key: Optional[str]) -> Optional[User]:
    """Return the active user owning ``api_key``, or None."""
    if not api_key:
        return None

    return db.query(User).filter(
        User.api_key_hash == hash_api_key(api_key),
        User.is_active == True
    ).first()


async def get_current_user(
    api_key: Optional[str] = Security(api_key_header),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to validate API key and get current user.

    Usage:
        @router.get("/protected")
        def protected_route(user: User = Depends(get_current_user)):
            return {"user_id": user.id}

    Raises:
        HTTPException: 401 if API key is invalid or missing
    """
    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    user = authenticate_api_key(db, api_key)

    if not user:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    bind_user(user.id)
    return user


def create_user_with_api_key(
    db: Session,
    name: str,
    api_key: Optional[str] = None,
    **profile
) -> Tuple[User, str]:
    """
    Helper to register a directory user with an API key.

    Args:
        db: Database session
        name: Display name
        api_key: Plain text API key; generated when omitted
        **profile: Optional profile fields (email, profile_image, batch, branch)

    Returns:
        Tuple of (created User, plain text API key)
    """
    api_key = api_key or secrets.token_urlsafe(32)

    user = User(
        name=name,
        api_key_hash=hash_api_key(api_key),
        **profile
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, api_key
