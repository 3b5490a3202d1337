# signfast/billing/repository.py

from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from signfast.billing.models import SignatureUsage
from signfast.utils.logger import get_logger

logger = get_logger(__name__)


class BillingRepository:
    """
    Data Access Layer for signature usage records.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_usage_by_signature(self, signature_id: int) -> Optional[SignatureUsage]:
        stmt = select(SignatureUsage).where(SignatureUsage.signature_id == signature_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_usage(self, usage: SignatureUsage) -> SignatureUsage:
        self.db.add(usage)
        await self.db.flush()
        logger.info(
            "Signature usage recorded",
            user_id=usage.user_id,
            signature_id=usage.signature_id,
            source=usage.source,
            billed=usage.billed,
        )
        return usage

    async def count_usage(
        self, user_id: int, since: Optional[datetime] = None, billed: Optional[bool] = None
    ) -> int:
        conditions = [SignatureUsage.user_id == user_id]
        if since is not None:
            conditions.append(SignatureUsage.recorded_at >= since)
        if billed is not None:
            conditions.append(SignatureUsage.billed.is_(billed))

        stmt = select(func.count(SignatureUsage.id)).where(*conditions)
        return (await self.db.execute(stmt)).scalar_one()

    async def commit(self):
        await self.db.commit()

    async def rollback(self):
        await self.db.rollback()
