from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from invgen.core.config import settings
from invgen.core.security import REFRESH_TOKEN_TYPE, decoded_token
from invgen.repositories import DataStore
from invgen.schemas.auth import RefreshTokenRequest, RegisterResponse, Token
from invgen.schemas.user import UserCreate
from invgen.services.email_service import EmailService, get_email_service
from invgen.services.user_service import UserService
from invgen.utils.dependencies import UnifiedLoginRequest, get_login_data, get_store
from invgen.utils.exceptions import UnauthorizedException

router = APIRouter(tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_info: UserCreate,
    request: Request,
    store: DataStore = Depends(get_store),
    email_service: EmailService = Depends(get_email_service),
):
    """Register a new user and send the verification email."""
    verify_url = str(request.url_for("verify_email"))
    await UserService(store).register(user_info, email_service, verify_url)
    return RegisterResponse(message="User created. Please check your email to verify your account.")


@router.get("/verify-email", name="verify_email")
async def verify_email(
    token: Optional[str] = None,
    store: DataStore = Depends(get_store),
):
    """Consume a verification token and send the browser back to the frontend."""
    await UserService(store).verify_email(token)
    return RedirectResponse(
        url=f"{settings.FRONTEND_URL.rstrip('/')}/auth/verified",
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )


@router.post(
    "/login",
    response_model=Token,
    summary="User login",
    description="""
    Login endpoint that supports both JSON and form-encoded requests.

    **JSON Request** (Content-Type: application/json):
    ```json
    {
        "email": "user@example.com",
        "password": "yourpassword"
    }
    ```

    **Form-encoded Request** (Content-Type: application/x-www-form-urlencoded):
    - username: user@example.com (email address)
    - password: yourpassword
    """,
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": {
                        "type": "object",
                        "properties": {
                            "email": {"type": "string", "format": "email"},
                            "password": {"type": "string", "format": "password"}
                        },
                        "required": ["email", "password"]
                    }
                },
                "application/x-www-form-urlencoded": {
                    "schema": {
                        "type": "object",
                        "properties": {
                            "username": {"type": "string", "description": "Email address"},
                            "password": {"type": "string", "format": "password"}
                        },
                        "required": ["username", "password"]
                    }
                }
            }
        }
    }
)
async def login(
    login_data: UnifiedLoginRequest = Depends(get_login_data),
    store: DataStore = Depends(get_store),
):
    """Login and get access and refresh tokens. Unverified accounts are refused."""
    return await UserService(store).authenticate(login_data.email, login_data.password)


@router.post("/refresh", response_model=Token)
async def refresh_token(
    token_data: RefreshTokenRequest,
    store: DataStore = Depends(get_store),
):
    """Refresh access token using refresh token."""
    payload = decoded_token(token_data.refresh_token)
    if payload is None or payload.get("type") != REFRESH_TOKEN_TYPE:
        raise UnauthorizedException("Invalid refresh token")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise UnauthorizedException("Invalid refresh token")

    return await UserService(store).refresh(user_id)
