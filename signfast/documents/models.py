# signfast/documents/models.py

from typing import List, Optional

from sqlalchemy import String, Integer, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

from signfast.core.db import Base
from signfast.users.models import AuditMixin


class Document(Base, AuditMixin):
    """
    An uploaded PDF and its signing layout.

    Blob references are object store keys. The original file is never
    modified; rendered artifacts are stored under their own keys.
    """
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    original_file_key: Mapped[str] = mapped_column(String(512), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(128), default="application/pdf")
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, comment="Size in bytes")
    number_of_signers: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default="draft", nullable=False, index=True,
        comment="draft, sent or completed"
    )
    final_file_key: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    owner: Mapped["User"] = relationship(foreign_keys=[owner_id])
    regions: Mapped[List["SignatureArea"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="SignatureArea.id",
    )
    signatures: Mapped[List["Signature"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="Signature.signer_index",
    )

    def __repr__(self):
        return f"<Document(id={self.id}, title='{self.title}', status='{self.status}')>"
