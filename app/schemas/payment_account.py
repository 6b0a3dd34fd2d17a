"""Payment account schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.domain.payment_details import describe_destination


class PaymentAccountCreate(BaseModel):
    """Schema for registering a payout destination.

    ``details`` holds ``method`` plus exactly that method's fields, e.g.
    ``{"method": "BANK_TRANSFER", "account_holder_name": "...", "iban": "..."}``.
    """

    details: dict[str, Any] = Field(..., description="Method-keyed payout details")


class PaymentAccountUpdate(BaseModel):
    details: dict[str, Any]


class PaymentAccountResponse(BaseModel):
    """Schema for payment account response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    method: str
    account_holder_name: str
    details: dict[str, Any] = Field(exclude=True)
    is_default: bool
    is_validated: bool
    validated_by: UUID | None
    validated_at: datetime | None
    created_at: datetime

    @computed_field
    @property
    def destination(self) -> str:
        """Masked destination, e.g. ``IBAN ******************3000``."""
        return describe_destination(self.details)


class PaymentAccountListResponse(BaseModel):
    accounts: list[PaymentAccountResponse]
