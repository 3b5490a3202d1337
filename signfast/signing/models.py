# signfast/signing/models.py

import json
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

from signfast.core.db import Base
from signfast.users.models import AuditMixin


class Signature(Base, AuditMixin):
    """
    One signer's slot in a signature request.

    Signatures created together share a request_id. The token is the signer's
    only credential and is unique across all rows.
    """
    __tablename__ = "signatures"
    __table_args__ = (
        Index("ix_signatures_request_status", "request_id", "status"),
        UniqueConstraint("request_id", "signer_index", name="uq_signatures_request_signer"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    document_id: Mapped[int] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    signer_index: Mapped[int] = mapped_column(Integer, nullable=False)
    signer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    signer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    signer_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(
        String(16), default="pending", nullable=False,
        comment="pending, signed or deleted"
    )
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    signature_data: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="Submitted values keyed by region id, JSON encoded"
    )
    signed_file_key: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    document: Mapped["Document"] = relationship(back_populates="signatures")

    @property
    def area_data(self) -> dict:
        """Decoded submitted values, empty when unsigned"""
        if not self.signature_data:
            return {}
        return json.loads(self.signature_data)

    def __repr__(self):
        return (
            f"<Signature(id={self.id}, request_id='{self.request_id}', "
            f"signer_index={self.signer_index}, status='{self.status}')>"
        )
