from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID
import logging
import os

from invgen.core.config import settings
from invgen.core.security import (
    create_access_token,
    create_refresh_token,
    generate_verification_token,
    get_password_hash,
    verify_password,
)
from invgen.core.storage import ObjectStorage
from invgen.models.user import User
from invgen.repositories.base import DataStore
from invgen.schemas.auth import Token
from invgen.schemas.user import UserCreate, UserUpdate, UserUpdatePassword
from invgen.services.branding import is_known_theme
from invgen.services.email_service import EmailService
from invgen.utils.exceptions import (
    BadRequestException,
    DuplicateRecordError,
    ForbiddenException,
    MailDeliveryError,
    UnauthorizedException,
)

logger = logging.getLogger(__name__)

UPLOAD_FOLDERS = {
    "avatars": "avatar",
    "logos": "logo",
}


def issue_tokens(user_id: UUID) -> Token:
    return Token(
        access_token=create_access_token(data={"sub": str(user_id)}),
        refresh_token=create_refresh_token(data={"sub": str(user_id)}),
    )


def token_expired(sent_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if sent_at is None:
        return False
    now = now or datetime.utcnow()
    return now - sent_at > timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS)


class UserService:
    def __init__(self, store: DataStore):
        self.store = store

    async def register(self, user_info: UserCreate, email_service: EmailService, verify_url: str) -> User:
        """Create an unverified account and mail its verification link.

        A mail failure is logged; the account stays.
        """
        email = user_info.email.lower()
        if await self.store.get_user_by_email(email):
            raise BadRequestException("User already exists")

        token = generate_verification_token()
        try:
            user = await self.store.create_user(
                email=email,
                password_hash=get_password_hash(user_info.password),
                name=user_info.name,
                verification_token=token,
                verification_sent_at=datetime.utcnow(),
            )
        except DuplicateRecordError:
            raise BadRequestException("User already exists")
        logger.info(f"Registered user {user.id}")

        rendered = email_service.render_verification_email(f"{verify_url}?token={token}", name=user.name)
        try:
            await email_service.send_email(user.email, rendered.subject, rendered.html, rendered.text)
        except MailDeliveryError as e:
            logger.error(f"Could not send verification email to user {user.id}: {e}")

        return user

    async def verify_email(self, token: Optional[str]) -> User:
        if not token:
            raise BadRequestException("Verification token is required")

        user = await self.store.get_user_by_verification_token(token)
        if user is None:
            raise BadRequestException("Invalid or already used verification token")
        if token_expired(user.verification_sent_at):
            raise BadRequestException("Verification token has expired")

        verified = await self.store.verify_email_token(token)
        if verified is None:
            raise BadRequestException("Invalid or already used verification token")
        logger.info(f"Verified email for user {verified.id}")
        return verified

    async def authenticate(self, email: str, password: str) -> Token:
        user = await self.store.get_user_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            raise UnauthorizedException("Incorrect email or password")
        if not user.is_verified:
            raise ForbiddenException("Please verify your email before logging in")
        if not user.is_active:
            raise ForbiddenException("Inactive user")
        return issue_tokens(user.id)

    async def refresh(self, user_id: UUID) -> Token:
        user = await self.store.get_user_by_id(user_id)
        if not user or not user.is_active:
            raise UnauthorizedException("User not found or inactive")
        return issue_tokens(user.id)

    async def update_profile(self, user: User, user_update: UserUpdate) -> User:
        update_data = user_update.model_dump(exclude_unset=True)
        if "name" in update_data and update_data["name"] is None:
            raise BadRequestException("name cannot be empty")
        theme = update_data.get("brand_theme")
        if theme is not None and not is_known_theme(theme):
            raise BadRequestException(f"Unknown brand theme: {theme}")
        if not update_data:
            return user
        return await self.store.update_user(user.id, update_data)

    async def change_password(self, user: User, password_update: UserUpdatePassword) -> None:
        if not verify_password(password_update.current_password, user.hashed_password):
            raise BadRequestException("Incorrect current password")
        await self.store.update_user(user.id, {"hashed_password": get_password_hash(password_update.new_password)})
        logger.info(f"Password changed for user {user.id}")

    async def create_signed_upload(
        self,
        user: User,
        filename: str,
        folder: str,
        storage: ObjectStorage,
    ) -> dict:
        """Signed URL for a direct browser upload of an avatar or a company logo."""
        if folder not in UPLOAD_FOLDERS:
            raise BadRequestException(f"Folder must be one of: {', '.join(UPLOAD_FOLDERS)}")
        ext = os.path.splitext(filename)[1].lstrip(".").lower()
        if not ext:
            raise BadRequestException("Filename must have an extension")

        path = f"{folder}/{user.id}/{UPLOAD_FOLDERS[folder]}.{ext}"
        signed = await storage.create_signed_upload_url(path)
        signed["public_url"] = await storage.get_public_url(path)
        return signed
