"""Data access for user progression records."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rpg_social.database.models.user_account import UserAccount
from rpg_social.modules.shared.base_repository import BaseRepository


class UserAccountRepository(BaseRepository[UserAccount]):
    async def find_by_username(self, session: AsyncSession, username: str) -> Optional[UserAccount]:
        return await self.find_one_where(session, UserAccount.username == username)
