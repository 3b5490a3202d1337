# signfast/users/repository.py

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from signfast.users.models import User


class UserRepository:
    """
    Data Access Layer for the User model.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Fetch a user by email address, ignoring case."""
        stmt = select(User).where(func.lower(User.email_address) == email.lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int, for_update: bool = False) -> Optional[User]:
        """Fetch a user by ID, optionally locking the row."""
        stmt = select(User).where(User.id == user_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_customer_id(self, customer_id: str) -> Optional[User]:
        """Fetch a user by their Stripe customer ID."""
        stmt = select(User).where(User.stripe_customer_id == customer_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_subscription_id(self, subscription_id: str) -> Optional[User]:
        """Fetch a user by their Stripe subscription ID."""
        stmt = select(User).where(User.subscription_id == subscription_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def update(self, user: User) -> User:
        """Persist changes to an existing user."""
        self.db.add(user)
        await self.db.flush()
        return user

    async def commit(self):
        await self.db.commit()
