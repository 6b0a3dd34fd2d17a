"""Payout destination details, one closed field set per payout method.

Each method accepts exactly its own fields: unknown keys, missing keys or
malformed values are rejected. The validated variant is what gets stored on
the account and copied into withdrawal snapshots.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from app.config import settings
from app.core.exceptions import InvalidPaymentAccountFields
from app.utils.validators import (
    mask_sensitive_data,
    normalize_iban,
    validate_bic,
    validate_card_number,
    validate_iban,
    validate_mobile_money_number,
    validate_phone,
)


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    MOBILE_MONEY = "MOBILE_MONEY"
    DIGITAL_WALLET = "DIGITAL_WALLET"
    CASH_TRANSFER_NETWORK = "CASH_TRANSFER_NETWORK"
    CARD_PAYOUT = "CARD_PAYOUT"


Name = Annotated[str, Field(min_length=1, max_length=255)]


class _Details(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)

    @property
    def holder_name(self) -> str:
        return self.account_holder_name


class BankTransferDetails(_Details):
    method: Literal["BANK_TRANSFER"]
    account_holder_name: Name
    iban: str
    bic: str | None = None

    @field_validator("iban")
    @classmethod
    def check_iban(cls, v: str) -> str:
        if not validate_iban(v):
            raise ValueError("invalid IBAN")
        return normalize_iban(v)

    @field_validator("bic")
    @classmethod
    def check_bic(cls, v: str | None) -> str | None:
        if v is not None and not validate_bic(v):
            raise ValueError("invalid BIC")
        return v.replace(" ", "").upper() if v else v


class MobileMoneyDetails(_Details):
    method: Literal["MOBILE_MONEY"]
    account_holder_name: Name
    mobile_number: str

    @field_validator("mobile_number")
    @classmethod
    def check_mobile_number(cls, v: str) -> str:
        if not validate_mobile_money_number(v, settings.mobile_money_pattern):
            raise ValueError("mobile number does not match the expected format")
        return v


class DigitalWalletDetails(_Details):
    method: Literal["DIGITAL_WALLET"]
    account_holder_name: Name
    wallet_email: EmailStr | None = None
    wallet_handle: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = None

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str | None) -> str | None:
        if v is not None and not validate_phone(v):
            raise ValueError("invalid phone number")
        return v

    @model_validator(mode="after")
    def require_wallet_identity(self) -> "DigitalWalletDetails":
        if not self.wallet_email and not self.wallet_handle:
            raise ValueError("wallet_email or wallet_handle is required")
        return self


class CashTransferNetworkDetails(_Details):
    method: Literal["CASH_TRANSFER_NETWORK"]
    recipient_full_name: Name
    phone: str

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        if not validate_phone(v):
            raise ValueError("invalid phone number")
        return v

    @property
    def holder_name(self) -> str:
        return self.recipient_full_name


class CardPayoutDetails(_Details):
    method: Literal["CARD_PAYOUT"]
    account_holder_name: Name
    card_number: str
    card_email: EmailStr

    @field_validator("card_number")
    @classmethod
    def check_card_number(cls, v: str) -> str:
        if not validate_card_number(v):
            raise ValueError("invalid card number")
        return v.replace(" ", "").replace("-", "")


PaymentDetails = Annotated[
    Union[
        BankTransferDetails,
        MobileMoneyDetails,
        DigitalWalletDetails,
        CashTransferNetworkDetails,
        CardPayoutDetails,
    ],
    Field(discriminator="method"),
]

_details_adapter: TypeAdapter[PaymentDetails] = TypeAdapter(PaymentDetails)


def parse_payment_details(data: dict[str, Any]) -> PaymentDetails:
    """Validate raw details into their method's variant.

    Raises:
        InvalidPaymentAccountFields: If the field set does not fit the method
    """
    try:
        return _details_adapter.validate_python(data)
    except PydanticValidationError as exc:
        errors = [
            {
                "loc": [str(part) for part in err["loc"]],
                "msg": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        raise InvalidPaymentAccountFields(errors=errors) from exc


def details_to_json(details: PaymentDetails) -> dict[str, Any]:
    return details.model_dump(mode="json", exclude_none=True)


def describe_destination(details: dict[str, Any]) -> str:
    """Short destination label with the sensitive part masked.

    Works on stored details without re-validating them.
    """
    method = details.get("method")
    if method == PaymentMethod.BANK_TRANSFER:
        return f"IBAN {mask_sensitive_data(details.get('iban', ''))}"
    if method == PaymentMethod.MOBILE_MONEY:
        return f"Mobile {mask_sensitive_data(details.get('mobile_number', '').replace(' ', ''))}"
    if method == PaymentMethod.DIGITAL_WALLET:
        return f"Wallet {details.get('wallet_email') or details.get('wallet_handle')}"
    if method == PaymentMethod.CASH_TRANSFER_NETWORK:
        return f"Cash pickup {mask_sensitive_data(details.get('phone', ''))}"
    if method == PaymentMethod.CARD_PAYOUT:
        return f"Card {mask_sensitive_data(details.get('card_number', ''))}"
    return str(method)
