"""Quluub Payments - Clerk authentication dependencies."""

import logging
from typing import Annotated

from clerk_backend_api import AuthenticateRequestOptions, Clerk, authenticate_request
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.config import get_settings
from src.db import get_db
from src.models.user import User, UserRole

logger = logging.getLogger(__name__)


class ClerkAuth:
    """Clerk authentication handler.

    Verifies session tokens issued by Clerk and provisions a local user
    row the first time a Clerk identity is seen.
    """

    def __init__(self) -> None:
        settings = get_settings()
        self._client = Clerk(bearer_auth=settings.clerk_secret_key)

    async def verify_token(self, request: Request) -> dict:
        """Verify the Clerk session token on a request.

        Args:
            request: FastAPI request object

        Returns:
            Decoded JWT claims

        Raises:
            HTTPException: If token is invalid or missing
        """
        try:
            request_state = authenticate_request(
                request,
                AuthenticateRequestOptions(secret_key=get_settings().clerk_secret_key),
            )
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not verify session token",
            ) from e

        if not request_state.is_signed_in:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not signed in",
            )
        return request_state.payload or {}

    def get_user_info(self, clerk_id: str) -> dict:
        """Fetch profile fields from the Clerk API.

        Returns:
            Dict with email, name and role (from public metadata)
        """
        try:
            user = self._client.users.get(user_id=clerk_id)
        except Exception as e:
            logger.warning(f"Clerk user lookup failed for {clerk_id}: {e}")
            return {"email": "", "name": None, "role": UserRole.CLIENT}

        email = ""
        if user.email_addresses:
            primary = next(
                (e for e in user.email_addresses if e.id == user.primary_email_address_id),
                user.email_addresses[0],
            )
            email = primary.email_address

        name = " ".join(part for part in (user.first_name, user.last_name) if part) or None

        metadata = user.public_metadata or {}
        try:
            role = UserRole(metadata.get("role", UserRole.CLIENT.value))
        except ValueError:
            role = UserRole.CLIENT

        return {"email": email, "name": name, "role": role}


# Singleton instance
_clerk_auth: ClerkAuth | None = None


def get_clerk_auth() -> ClerkAuth:
    """Get Clerk auth singleton."""
    global _clerk_auth
    if _clerk_auth is None:
        _clerk_auth = ClerkAuth()
    return _clerk_auth


async def _provision_user(db: AsyncSession, clerk: ClerkAuth, clerk_id: str) -> User:
    info = clerk.get_user_info(clerk_id)
    user = User(clerk_id=clerk_id, email=info["email"], name=info["name"], role=info["role"])
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent first request for the same identity
        await db.rollback()
        result = await db.execute(select(User).where(User.clerk_id == clerk_id))
        return result.scalar_one()
    await db.refresh(user)
    logger.info(f"Provisioned user {user.id} ({user.role.value}) for Clerk id {clerk_id}")
    return user


async def get_current_user(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    clerk: Annotated[ClerkAuth, Depends(get_clerk_auth)],
) -> User:
    """FastAPI dependency to get current authenticated user.

    Usage:
        @router.get("/wallet")
        async def get_wallet(user: CurrentUser):
            ...
    """
    claims = await clerk.verify_token(request)

    clerk_id = claims.get("sub")
    if not clerk_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session token has no subject",
        )

    result = await db.execute(select(User).where(User.clerk_id == clerk_id))
    user = result.scalar_one_or_none()
    if user is None:
        user = await _provision_user(db, clerk, clerk_id)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    return user


def require_role(*roles: UserRole):
    """Factory for role-based access control dependency.

    Usage:
        @router.post("/bank/withdraw")
        async def withdraw(user: User = Depends(require_role(UserRole.COUNSELOR))):
            ...
    """

    async def role_checker(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Required role: {', '.join(r.value for r in roles)}",
            )
        return user

    return role_checker
