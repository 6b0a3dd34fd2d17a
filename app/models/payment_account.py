"""Payout destination model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.database import Base, JSONType, UTCDateTime, utc_now


class PaymentAccount(Base):
    """A user's registered payout destination."""

    __tablename__ = "payment_accounts"
    __table_args__ = (
        # At most one default account per user
        Index(
            "uq_payment_accounts_one_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    method: Mapped[str] = mapped_column(String(30), nullable=False)
    account_holder_name: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_validated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    validated_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    validated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, server_default=func.now()
    )
