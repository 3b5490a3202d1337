# signfast/regions/models.py

from typing import Optional

from sqlalchemy import String, Integer, Float, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

from signfast.core.db import Base
from signfast.users.models import AuditMixin


class SignatureArea(Base, AuditMixin):
    """
    A rectangle on one page of a document that receives one value.

    Coordinates are in PDF points measured from the top-left corner of the page.
    A null signer_index means every signer fills this region.
    """
    __tablename__ = "signature_areas"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    document_id: Mapped[int] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )

    type: Mapped[str] = mapped_column(
        String(32), nullable=False, comment="signature, name, date or business"
    )
    x: Mapped[float] = mapped_column(Float, nullable=False)
    y: Mapped[float] = mapped_column(Float, nullable=False)
    width: Mapped[float] = mapped_column(Float, nullable=False)
    height: Mapped[float] = mapped_column(Float, nullable=False)
    page_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    signer_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    document: Mapped["Document"] = relationship(back_populates="regions")
