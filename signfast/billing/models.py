# signfast/billing/models.py

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from signfast.core.db import Base


class SignatureUsage(Base):
    """
    One metered unit per completed signature.

    signature_id is not a foreign key: usage history outlives
    the signature rows, which are removed with their document.
    """
    __tablename__ = "signature_usage"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document_id: Mapped[int] = mapped_column(Integer, nullable=False)
    signature_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    source: Mapped[str] = mapped_column(
        String(16), nullable=False, comment="free, unlimited or metered"
    )
    billed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    provider_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
