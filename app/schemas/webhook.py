"""Payment provider event schemas.

Verified webhook bodies are parsed into one model per recognized event type.
Anything else becomes an ``UnknownEvent`` that is recorded and acknowledged.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import MissingEventMetadata


# ============ Provider objects ============


class _ProviderObject(BaseModel):
    model_config = ConfigDict(extra="allow")


class PaymentIntentObject(_ProviderObject):
    id: str
    status: str | None = None
    amount: int | None = None
    currency: str | None = None
    receipt_email: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class CheckoutSessionObject(_ProviderObject):
    id: str
    status: str | None = None
    payment_intent: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    customer_email: str | None = None
    customer_details: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def payment_ref(self) -> str:
        """Payment intent id, or the session id for sessions without one."""
        return self.payment_intent or self.id

    @property
    def email(self) -> str | None:
        if self.customer_details and self.customer_details.get("email"):
            return self.customer_details["email"]
        return self.customer_email


class DisputeObject(_ProviderObject):
    id: str
    status: str | None = None
    reason: str | None = None
    charge: str | None = None
    payment_intent: str | None = None


class ChargeObject(_ProviderObject):
    id: str
    payment_intent: str | None = None
    amount: int | None = None
    amount_refunded: int = 0
    refunded: bool = False
    receipt_email: str | None = None


class PaymentIntentData(BaseModel):
    object: PaymentIntentObject


class CheckoutSessionData(BaseModel):
    object: CheckoutSessionObject


class DisputeData(BaseModel):
    object: DisputeObject


class ChargeData(BaseModel):
    object: ChargeObject


# ============ Events ============


class _Event(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    created: int | None = None
    livemode: bool = False

    @property
    def payment_ref(self) -> str | None:
        return None


class _PaymentIntentEvent(_Event):
    data: PaymentIntentData

    @property
    def payment_ref(self) -> str:
        return self.data.object.id


class PaymentIntentCreated(_PaymentIntentEvent):
    type: Literal["payment_intent.created"]


class PaymentIntentSucceeded(_PaymentIntentEvent):
    type: Literal["payment_intent.succeeded"]


class PaymentIntentCaptured(_PaymentIntentEvent):
    type: Literal["payment_intent.captured"]


class PaymentIntentFailed(_PaymentIntentEvent):
    type: Literal["payment_intent.payment_failed"]


class CheckoutSessionCompleted(_Event):
    type: Literal["checkout.session.completed"]
    data: CheckoutSessionData

    @property
    def payment_ref(self) -> str:
        return self.data.object.payment_ref


class _DisputeEvent(_Event):
    data: DisputeData

    @property
    def payment_ref(self) -> str | None:
        return self.data.object.payment_intent


class DisputeCreated(_DisputeEvent):
    type: Literal["charge.dispute.created"]


class DisputeClosed(_DisputeEvent):
    type: Literal["charge.dispute.closed"]

    @property
    def won(self) -> bool:
        return self.data.object.status == "won"


class ChargeRefunded(_Event):
    type: Literal["charge.refunded"]
    data: ChargeData

    @property
    def payment_ref(self) -> str | None:
        return self.data.object.payment_intent


class UnknownEvent(_Event):
    """An event type nothing here acts on. It may arrive without an id."""

    id: str | None = None
    type: str = "unknown"
    data: Any = None


KnownEvent = Annotated[
    Union[
        PaymentIntentCreated,
        PaymentIntentSucceeded,
        PaymentIntentCaptured,
        PaymentIntentFailed,
        CheckoutSessionCompleted,
        DisputeCreated,
        DisputeClosed,
        ChargeRefunded,
    ],
    Field(discriminator="type"),
]

ProviderEvent = Union[
    PaymentIntentCreated,
    PaymentIntentSucceeded,
    PaymentIntentCaptured,
    PaymentIntentFailed,
    CheckoutSessionCompleted,
    DisputeCreated,
    DisputeClosed,
    ChargeRefunded,
    UnknownEvent,
]

KNOWN_EVENT_TYPES = frozenset({
    "payment_intent.created",
    "payment_intent.succeeded",
    "payment_intent.captured",
    "payment_intent.payment_failed",
    "checkout.session.completed",
    "charge.dispute.created",
    "charge.dispute.closed",
    "charge.refunded",
})

_known_event_adapter: TypeAdapter[KnownEvent] = TypeAdapter(KnownEvent)


def parse_event(payload: dict[str, Any]) -> ProviderEvent:
    """Parse a verified event body.

    Raises:
        MissingEventMetadata: If a recognized event is malformed
    """
    event_type = payload.get("type")
    if not isinstance(event_type, str) or event_type not in KNOWN_EVENT_TYPES:
        try:
            return UnknownEvent.model_validate(payload)
        except PydanticValidationError:
            event_id = payload.get("id")
            return UnknownEvent(
                id=event_id if isinstance(event_id, str) else None,
                type=event_type if isinstance(event_type, str) else "unknown",
            )
    try:
        return _known_event_adapter.validate_python(payload)
    except PydanticValidationError as exc:
        raise MissingEventMetadata(
            detail=f"Malformed {payload.get('type')} event",
            errors=_errors(exc),
        ) from exc


# ============ Booking metadata ============


class BookingMetadata(BaseModel):
    """Booking details carried in checkout session / payment intent metadata.

    Accepts the storefront's camelCase keys as well.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    product_id: UUID = Field(validation_alias=AliasChoices("product_id", "productId"))
    guest_id: UUID = Field(validation_alias=AliasChoices("guest_id", "guestId", "userId"))
    host_id: UUID = Field(validation_alias=AliasChoices("host_id", "hostId"))
    check_in: date = Field(validation_alias=AliasChoices("check_in", "arrivingDate"))
    check_out: date = Field(validation_alias=AliasChoices("check_out", "leavingDate"))
    guest_count: int = Field(ge=1, validation_alias=AliasChoices("guest_count", "peopleNumber"))
    price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    commission_rate: Decimal | None = Field(
        default=None,
        ge=0,
        lt=100,
        validation_alias=AliasChoices("commission_rate", "commissionRate"),
    )
    guest_email: EmailStr | None = Field(
        default=None, validation_alias=AliasChoices("guest_email", "userEmail")
    )
    currency: str | None = Field(default=None, min_length=3, max_length=3)

    @model_validator(mode="after")
    def check_dates(self) -> "BookingMetadata":
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


def parse_booking_metadata(metadata: dict[str, Any], payment_ref: str) -> BookingMetadata:
    """Validate booking metadata.

    Raises:
        MissingEventMetadata: If required keys are missing or malformed
    """
    try:
        return BookingMetadata.model_validate(metadata)
    except PydanticValidationError as exc:
        raise MissingEventMetadata(
            detail=f"Missing or invalid booking metadata for payment {payment_ref}",
            errors=_errors(exc),
        ) from exc


def _errors(exc: PydanticValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str
