from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from invgen.core.config import settings
from invgen.core.database import get_db
from invgen.core.middleware import ANONYMOUS, RequestContext
from invgen.core.storage import ObjectStorage, get_storage
from invgen.models.user import User
from invgen.repositories import DataStore, build_store
from invgen.services.email_service import EmailService, get_email_service
from invgen.utils.exceptions import UnauthorizedException


async def get_store(db: AsyncSession = Depends(get_db)) -> DataStore:
    """Persistence adapter bound to the request's session."""
    return build_store(settings.PERSISTENCE_BACKEND, db)


def get_request_context(request: Request) -> RequestContext:
    return getattr(request.state, "context", ANONYMOUS)


def require_context(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not context.is_authenticated:
        raise UnauthorizedException("Not authenticated")
    return context


async def get_current_user(
    context: RequestContext = Depends(require_context),
    store: DataStore = Depends(get_store),
) -> User:
    """Get current authenticated user."""
    user = await store.get_user_by_id(context.user_id)
    if user is None or not user.is_active:
        raise UnauthorizedException()
    return user


class UnifiedLoginRequest:
    """Unified login request that handles both JSON and form-encoded data."""
    def __init__(self, email: str, password: str):
        self.email = email
        self.password = password


async def get_login_data(
    request: Request
) -> UnifiedLoginRequest:
    """
    Dependency that handles both JSON and form-encoded login requests.
    Checks content-type header to determine which format to parse.
    """
    content_type = request.headers.get("content-type", "").lower()

    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid JSON format: {str(e)}"
            )
        email = body.get("email") if isinstance(body, dict) else None
        password = body.get("password") if isinstance(body, dict) else None
        if not email or not password:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Missing 'email' or 'password' in request body"
            )
        return UnifiedLoginRequest(email=email, password=password)

    # Form-encoded, as sent by Swagger UI
    form_data = await request.form()
    username = form_data.get("username") or form_data.get("email")
    password = form_data.get("password")

    if not username or not password:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Missing 'username' (or 'email') or 'password' in form data"
        )

    return UnifiedLoginRequest(email=username, password=password)


__all__ = [
    "ObjectStorage",
    "EmailService",
    "get_storage",
    "get_email_service",
    "get_store",
    "get_request_context",
    "require_context",
    "get_current_user",
    "get_login_data",
    "UnifiedLoginRequest",
]
