"""UserService: register, login, refresh.

register() writes the users row and a zero-balance accounts row; the router
wraps the call in `async with db.begin()` so both land or neither does.
"""

import logging

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    UsernameExistsError,
)
from src.pm_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.pm_gateway.auth.password import hash_password, verify_password
from src.pm_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)

_CREATE_ACCOUNT_SQL = text(
    "INSERT INTO accounts (user_id, balance, version) VALUES (:user_id, 0, 0)"
)


class UserService:
    async def register(
        self,
        username: str,
        email: str,
        password: str,
        db: AsyncSession,
    ) -> UserModel:
        # Friendly errors first; the UNIQUE constraints remain the real guard
        taken = await db.execute(select(UserModel.id).where(UserModel.username == username))
        if taken.scalar_one_or_none() is not None:
            raise UsernameExistsError()
        taken = await db.execute(select(UserModel.id).where(UserModel.email == email))
        if taken.scalar_one_or_none() is not None:
            raise EmailExistsError()

        user = UserModel(
            username=username,
            email=email,
            password_hash=hash_password(password),
            is_active=True,
            is_admin=False,
        )
        db.add(user)
        await db.flush()  # populate user.id and created_at
        await db.refresh(user)

        await db.execute(_CREATE_ACCOUNT_SQL, {"user_id": str(user.id)})
        logger.info("User registered id=%s username=%s", user.id, username)
        return user

    async def login(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> tuple[UserModel, str, str]:
        """Return (user, access_token, refresh_token).

        Unknown user and wrong password raise the same error.
        """
        result = await db.execute(select(UserModel).where(UserModel.username == username))
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login username=%s", username)
            raise InvalidCredentialsError()
        if not user.is_active:
            raise AccountDisabledError()

        user_id = str(user.id)
        return user, create_access_token(user_id), create_refresh_token(user_id)

    async def refresh(self, refresh_token: str) -> str:
        claims = decode_token(refresh_token, expected_type="refresh")
        return create_access_token(str(claims["sub"]))
