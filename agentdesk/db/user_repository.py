"""
UserRepository — async CRUD for tenant users.
OpenAI API keys are encrypted before they reach the database.
"""
import logging
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.db.models import UserModel
from agentdesk.utils.crypto import encrypt, decrypt

logger = logging.getLogger(__name__)


class UserRepository:
    """Async CRUD operations for users."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, email: str, name: str = "", openai_api_key: str = "") -> UserModel:
        row = UserModel(
            email=email.strip(),
            name=name.strip(),
            openai_api_key=encrypt(openai_api_key),
        )
        self._session.add(row)
        await self._session.flush()
        logger.info(f"Created user {row.id} ({row.email})")
        return row

    async def get(self, user_id: str) -> Optional[UserModel]:
        result = await self._session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[UserModel]:
        """Exact match on the stored email address."""
        result = await self._session.execute(
            select(UserModel).where(UserModel.email == email)
        )
        return result.scalar_one_or_none()

    async def find_by_name(self, name: str) -> Optional[UserModel]:
        """Case-insensitive match on the display name (public chat URLs)."""
        result = await self._session.execute(
            select(UserModel)
            .where(func.lower(UserModel.name) == name.lower())
            .order_by(UserModel.created_at)
        )
        return result.scalars().first()

    async def set_openai_api_key(self, user_id: str, api_key: str) -> Optional[UserModel]:
        row = await self.get(user_id)
        if not row:
            return None
        row.openai_api_key = encrypt(api_key)
        await self._session.flush()
        logger.info(f"Updated OpenAI API key for user {user_id}")
        return row

    async def get_openai_api_key(self, user_id: str) -> Optional[str]:
        """Decrypted key, or None when the user or key is missing."""
        row = await self.get(user_id)
        if not row or not row.openai_api_key:
            return None
        return decrypt(row.openai_api_key)
