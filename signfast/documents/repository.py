# signfast/documents/repository.py

"""
Data Access Layer for Documents and their region layouts.
"""

from typing import List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from signfast.documents.models import Document
from signfast.regions.models import SignatureArea
from signfast.signing.state import DocumentStatus
from signfast.utils.logger import get_logger

logger = get_logger(__name__)


class DocumentRepository:
    """
    Data Access Layer for Document operations.
    Flushes only; the service layer owns commit and rollback.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        logger.debug("DocumentRepository initialized", session_id=id(db))

    async def create_document(self, document: Document) -> Document:
        """Insert a new document."""
        self.db.add(document)
        await self.db.flush()
        await self.db.refresh(document, ["created_on"])
        logger.info("Document created", document_id=document.id, owner_id=document.owner_id)
        return document

    async def get_document_by_id(
        self, document_id: int, for_update: bool = False
    ) -> Optional[Document]:
        """
        Fetch a document with its regions and signatures.

        With for_update the document row is locked until the transaction ends,
        which serializes completion checks and request deletion per document.
        """
        stmt = (
            select(Document)
            .options(
                selectinload(Document.regions),
                selectinload(Document.signatures),
                selectinload(Document.owner),
            )
            .where(Document.id == document_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        document = result.scalar_one_or_none()
        if not document:
            logger.warning("Document not found", document_id=document_id)
        return document

    async def list_documents(
        self, owner_id: int, status: Optional[str] = None
    ) -> Tuple[List[Document], int]:
        """List an owner's documents, newest first."""
        conditions = [Document.owner_id == owner_id]
        if status:
            conditions.append(Document.status == status)

        stmt = (
            select(Document)
            .options(selectinload(Document.regions), selectinload(Document.signatures))
            .where(*conditions)
            .order_by(Document.id.desc())
        )
        count_stmt = select(func.count(Document.id)).where(*conditions)

        documents = (await self.db.execute(stmt)).scalars().all()
        total = (await self.db.execute(count_stmt)).scalar_one()
        return list(documents), total

    async def replace_layout(
        self, document: Document, regions: List[SignatureArea], number_of_signers: int
    ) -> Document:
        """
        Swap the document's regions for a new set.

        All signature rows go with the old layout, since their tokens and
        stored values refer to regions that no longer exist.
        """
        document.regions.clear()
        document.signatures.clear()
        await self.db.flush()

        document.regions.extend(regions)
        document.number_of_signers = number_of_signers
        document.status = DocumentStatus.DRAFT.value
        document.final_file_key = None
        await self.db.flush()

        logger.info(
            "Document layout replaced",
            document_id=document.id,
            region_count=len(regions),
            number_of_signers=number_of_signers,
        )
        return document

    async def set_status(self, document: Document, status: str) -> Document:
        document.status = status
        await self.db.flush()
        return document

    async def set_final_file_key(self, document: Document, key: str) -> Document:
        document.final_file_key = key
        await self.db.flush()
        return document

    async def claim_completion(self, document_id: int) -> bool:
        """
        Mark the document completed unless it already is.

        Returns True only for the caller whose update changed the row, so a
        request is finalized once even when its last signers race.
        """
        stmt = (
            update(Document)
            .where(
                Document.id == document_id,
                Document.status != DocumentStatus.COMPLETED.value,
            )
            .values(status=DocumentStatus.COMPLETED.value)
        )
        result = await self.db.execute(stmt)
        claimed = result.rowcount == 1
        logger.info("Completion claim", document_id=document_id, claimed=claimed)
        return claimed

    async def delete_document(self, document: Document) -> None:
        await self.db.delete(document)
        await self.db.flush()
        logger.info("Document deleted", document_id=document.id)

    async def commit(self):
        await self.db.commit()

    async def rollback(self):
        await self.db.rollback()
