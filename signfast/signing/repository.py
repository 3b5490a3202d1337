# signfast/signing/repository.py

"""
Data Access Layer for Signatures.

Status changes are conditional updates so concurrent submissions and
withdrawals cannot overwrite a terminal state.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from signfast.documents.models import Document
from signfast.signing.models import Signature
from signfast.signing.state import SignatureStatus
from signfast.utils.logger import get_logger

logger = get_logger(__name__)


class SignatureRepository:
    """
    Data Access Layer for Signature operations.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        logger.debug("SignatureRepository initialized", session_id=id(db))

    async def create_signatures(self, signatures: List[Signature]) -> List[Signature]:
        self.db.add_all(signatures)
        await self.db.flush()
        return signatures

    async def get_by_token(self, token: str) -> Optional[Signature]:
        """Resolve a signing token with its document, regions and owner."""
        stmt = (
            select(Signature)
            .options(
                selectinload(Signature.document).selectinload(Document.regions),
                selectinload(Signature.document).selectinload(Document.owner),
            )
            .where(Signature.token == token)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    def request_signatures_stmt(
        self, request_id: str, include_deleted: bool = False, for_update: bool = False
    ) -> Select:
        conditions = [Signature.request_id == request_id]
        if not include_deleted:
            conditions.append(Signature.status != SignatureStatus.DELETED.value)

        stmt = (
            select(Signature)
            .where(*conditions)
            .order_by(Signature.signer_index)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return stmt

    async def get_request_signatures(
        self, request_id: str, include_deleted: bool = False, for_update: bool = False
    ) -> List[Signature]:
        """
        All members of a request in signer order.

        With for_update the rows are read with a locking read, which sees the
        latest committed state rather than the transaction snapshot.
        """
        stmt = self.request_signatures_stmt(request_id, include_deleted, for_update)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def mark_signed(
        self,
        signature_id: int,
        signer_name: str,
        signer_date: Optional[str],
        signature_data: str,
        signed_file_key: str,
        signed_at: datetime,
    ) -> bool:
        """
        Move a pending signature to signed.

        Returns False when the row was no longer pending, leaving it untouched.
        """
        stmt = (
            update(Signature)
            .where(
                Signature.id == signature_id,
                Signature.status == SignatureStatus.PENDING.value,
            )
            .values(
                status=SignatureStatus.SIGNED.value,
                signer_name=signer_name,
                signer_date=signer_date,
                signature_data=signature_data,
                signed_file_key=signed_file_key,
                signed_at=signed_at,
            )
        )
        result = await self.db.execute(stmt)
        updated = result.rowcount == 1
        logger.info("Signature status update", signature_id=signature_id, updated=updated)
        return updated

    async def mark_request_deleted(self, request_id: str) -> int:
        """Withdraw every pending member of a request. Returns the number of rows changed."""
        stmt = (
            update(Signature)
            .where(
                Signature.request_id == request_id,
                Signature.status == SignatureStatus.PENDING.value,
            )
            .values(status=SignatureStatus.DELETED.value)
        )
        result = await self.db.execute(stmt)
        logger.info("Signature request withdrawn", request_id=request_id, deleted_count=result.rowcount)
        return result.rowcount

    async def commit(self):
        await self.db.commit()

    async def rollback(self):
        await self.db.rollback()
