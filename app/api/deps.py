"""API dependencies for authentication, sessions and services."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import verify_token
from app.services.container import ServiceContainer

# Security scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, taken from the bearer token claims."""

    user_id: UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_container(request: Request) -> ServiceContainer:
    """Services built in the application lifespan."""
    return request.app.state.container


def get_session_factory(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> async_sessionmaker[AsyncSession]:
    return container.session_factory


async def get_db(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Handlers commit explicitly; anything uncommitted is rolled back."""
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Principal:
    """Get the caller from the JWT access token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = verify_token(credentials.credentials, token_type="access")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")
    try:
        return Principal(user_id=UUID(str(user_id)), role=str(payload.get("role") or "guest"))
    except ValueError:
        raise AuthenticationError("Invalid token subject")


async def get_current_host(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Get the caller and verify they are a host."""
    if principal.role not in ("host", "admin"):
        raise AuthorizationError("Host access required")
    return principal


async def get_current_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Get the caller and verify they are an admin."""
    if not principal.is_admin:
        raise AuthorizationError("Admin access required")
    return principal

