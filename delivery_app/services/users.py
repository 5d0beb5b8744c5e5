"""
Account Service

Creates accounts with a role, checks login credentials and looks
callers up by id. Issuing session tokens happens outside this service.
Passwords are stored as PBKDF2-SHA256 hashes.
"""

import logging

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_app.models import User, UserRole
from delivery_app.services.errors import (
    ConflictError,
    NotFoundError,
    OperationResult,
    ValidationFailedError,
    service_operation,
)

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class UserService:
    """Account operations for one request."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @service_operation
    async def create_account(self, email: str, password: str, role: UserRole) -> OperationResult:
        """Create an account; fails with a conflict if the email is taken."""
        email = email.lower()
        existing = await self.session.scalar(select(User.id).where(User.email == email))
        if existing is not None:
            raise ConflictError("User already exists")

        user = User(email=email, password_hash=hash_password(password), role=role)
        self.session.add(user)
        await self.session.commit()

        logger.info(f"Account #{user.id} created ({role.value})")
        return OperationResult(success=True, data=user)

    @service_operation
    async def get_user(self, user_id: int) -> OperationResult:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User #{user_id} not found")
        return OperationResult(success=True, data=user)

    @service_operation
    async def login(self, email: str, password: str) -> OperationResult:
        """
        Check credentials.

        Returns:
            OperationResult: ``data`` is the user. NotFound for an unknown
            email, ValidationFailed for a wrong password.
        """
        user = await self.session.scalar(select(User).where(User.email == email.lower()))
        if user is None:
            raise NotFoundError("User not found")
        if not verify_password(password, user.password_hash):
            raise ValidationFailedError("Wrong password")

        logger.info(f"Account #{user.id} logged in")
        return OperationResult(success=True, data=user)
