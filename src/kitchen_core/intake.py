"""
Ticket ingestion payloads.

The ingestion source hands over JSON-like dicts. They are validated here
with pydantic models and turned into NEW Ticket dataclasses carrying their
``create`` timeline event. Anything that fails validation becomes a
MalformedTicket and is never stored.

Per project patterns:
- Pydantic BaseModel at the wire boundary only
- Field() with descriptions for documentation
"""

from datetime import datetime, timedelta
from typing import Any

from pydantic import AwareDatetime, BaseModel, Field, ValidationError, model_validator

from kitchen_core.exceptions import MalformedTicket
from kitchen_core.types import (
    Channel,
    FulfillmentType,
    Ticket,
    TicketItem,
    TicketStatus,
    TimelineAction,
    TimelineEvent,
    new_id,
    utc_now,
)

INTAKE_OPERATOR = "intake"


class TicketItemPayload(BaseModel):
    """One ticket line as submitted by the ingestion source."""

    id: str | None = Field(default=None, description="Item id; generated when omitted")
    name: str = Field(..., min_length=1, description="Menu item name")
    station: str = Field(..., min_length=1, description="Station the item is cooked at")
    quantity: int = Field(default=1, ge=1, description="Portions of this item")
    modifiers: list[str] = Field(default_factory=list, description="Display modifiers")
    notes: str | None = Field(default=None, description="Free-text item notes")


class TicketPayload(BaseModel):
    """
    A ticket as submitted by the ingestion source.

    Either ``promised_at`` or ``promised_in_minutes`` must be given; the
    latter is relative to ``created_at``.
    """

    id: str | None = Field(default=None, description="Ticket id; generated when omitted")
    order_number: str = Field(..., min_length=1, description="Display order number")
    channel: Channel = Field(default=Channel.POS, description="Where the order came from")
    fulfillment_type: FulfillmentType = Field(
        default=FulfillmentType.DINE_IN, description="How the order leaves the kitchen"
    )
    table_number: str | None = Field(default=None, description="Table for dine-in orders")
    created_at: AwareDatetime | None = Field(
        default=None, description="Creation time; defaults to intake time"
    )
    promised_at: AwareDatetime | None = Field(default=None, description="Due time")
    promised_in_minutes: float | None = Field(
        default=None, ge=0, description="Due time relative to created_at"
    )
    items: list[TicketItemPayload] = Field(..., min_length=1, description="Ticket lines")
    allergen_notes: str = Field(default="", description="Allergen free text")
    customer_notes: str = Field(default="", description="Customer free text")

    @model_validator(mode="after")
    def _check_due_time(self) -> "TicketPayload":
        if self.promised_at is None and self.promised_in_minutes is None:
            raise ValueError("promised_at or promised_in_minutes is required")
        if (
            self.promised_at is not None
            and self.created_at is not None
            and self.promised_at < self.created_at
        ):
            raise ValueError("promised_at is before created_at")
        return self


def _describe(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(p) for p in detail["loc"]) or "ticket"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)


def parse_ticket(payload: dict[str, Any], now: datetime | None = None) -> Ticket:
    """
    Validate a payload and build a NEW ticket.

    Args:
        payload: JSON-like ticket dict
        now: Intake time used when the payload has no created_at

    Returns:
        Ticket in status NEW with a single ``create`` timeline event

    Raises:
        MalformedTicket: If the payload fails validation
    """
    try:
        model = TicketPayload.model_validate(payload)
    except ValidationError as e:
        ticket_id = payload.get("id") if isinstance(payload, dict) else None
        raise MalformedTicket(_describe(e), ticket_id=ticket_id) from e

    created_at = model.created_at or now or utc_now()
    promised_at = model.promised_at or created_at + timedelta(
        minutes=model.promised_in_minutes
    )
    if promised_at < created_at:
        raise MalformedTicket("promised_at is before created_at", ticket_id=model.id)

    return Ticket(
        id=model.id or new_id("t"),
        order_number=model.order_number,
        channel=model.channel,
        fulfillment_type=model.fulfillment_type,
        table_number=model.table_number,
        created_at=created_at,
        promised_at=promised_at,
        items=[
            TicketItem(
                id=item.id or new_id("i"),
                name=item.name,
                station=item.station,
                quantity=item.quantity,
                modifiers=list(item.modifiers),
                notes=item.notes,
            )
            for item in model.items
        ],
        status=TicketStatus.NEW,
        allergen_notes=model.allergen_notes.strip(),
        customer_notes=model.customer_notes,
        timeline=[
            TimelineEvent(
                id=new_id("ev"),
                action=TimelineAction.CREATE,
                timestamp=created_at,
                performed_by=INTAKE_OPERATOR,
            )
        ],
    )
