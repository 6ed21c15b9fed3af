"""
Demo ticket simulator.

Manufactures realistic ingestion payloads for rush-mode demos:
- 1-4 items per ticket drawn from a small menu catalog
- promised time = longest cook time on the ticket + 5-15 minutes
- occasional modifiers, item notes, allergen and customer notes
- a table number for dine-in orders

All randomness comes from one seeded random.Random, so a seed reproduces
the same stream of orders. Ticket and item ids are always fresh, so runs
sharing a seed never collide in the history database.
"""

import itertools
import random
from dataclasses import dataclass
from typing import Any, Sequence

from kitchen_protocols import StationId
from kitchen_core.types import Channel, Clock, FulfillmentType, new_id, utc_now


@dataclass(frozen=True)
class MenuItem:
    """Catalog entry: name, station and base cook time."""

    name: str
    station: StationId
    cook_minutes: int


DEFAULT_MENU: tuple[MenuItem, ...] = (
    MenuItem("Classic Burger", "grill", 12),
    MenuItem("Mixed Grill Platter", "grill", 18),
    MenuItem("Chicken Tikka", "grill", 14),
    MenuItem("Loaded Fries", "fry", 7),
    MenuItem("Onion Bhaji", "fry", 6),
    MenuItem("Lamb Biryani", "curry", 16),
    MenuItem("Butter Chicken", "curry", 14),
    MenuItem("Chana Masala", "curry", 12),
    MenuItem("Garden Salad", "prep", 5),
    MenuItem("Garlic Naan", "prep", 4),
    MenuItem("Mango Lassi", "bar", 3),
    MenuItem("House Lemonade", "bar", 2),
    MenuItem("Gulab Jamun", "dessert", 5),
    MenuItem("Chocolate Brownie", "dessert", 6),
)

_CHANNELS = (Channel.WEB, Channel.APP, Channel.QR, Channel.POS)
_FULFILLMENT = (FulfillmentType.DINE_IN, FulfillmentType.PICKUP, FulfillmentType.DELIVERY)

# Empty entries weight the draw towards "nothing special"
_MODIFIERS: tuple[tuple[str, ...], ...] = (
    ("Medium Well",),
    ("Extra Spicy",),
    ("No Pickles",),
    ("No Onion",),
    ("Medium Rare",),
    ("Extra Cheese",),
    (),
    (),
    (),
)
_ITEM_NOTES = ("", "", "", "no sauce please", "extra crispy", "gluten free", "mild please")
_ALLERGEN_NOTES = (
    "",
    "",
    "",
    "",
    "",
    "NUT ALLERGY - allergic to tree nuts",
    "GLUTEN FREE - coeliac",
    "DAIRY FREE - lactose intolerant",
)
_CUSTOMER_NOTES = (
    "",
    "",
    "",
    "Please include cutlery",
    "Birthday celebration",
    "Ring doorbell on arrival",
)


class TicketSimulator:
    """
    TicketSourceProtocol implementation producing random payloads.

    Example:
        simulator = TicketSimulator(seed=7)
        payloads = await simulator.poll()
        for payload in payloads:
            engine.submit_payload(payload)
    """

    def __init__(
        self,
        seed: int | None = None,
        menu: Sequence[MenuItem] = DEFAULT_MENU,
        tickets_per_poll: int = 1,
        clock: Clock = utc_now,
    ) -> None:
        """
        Initialize the simulator.

        Args:
            seed: RNG seed for a reproducible ticket stream
            menu: Catalog to draw items from
            tickets_per_poll: Tickets produced by each poll()
            clock: Source of created_at for new tickets
        """
        if not menu:
            raise ValueError("menu must not be empty")
        self.menu = tuple(menu)
        self.tickets_per_poll = tickets_per_poll
        self.clock = clock
        self._rng = random.Random(seed)
        self._order_numbers = itertools.count(self._rng.randint(100, 899))

    def generate(self) -> dict[str, Any]:
        """Build one ticket payload."""
        rng = self._rng
        created_at = self.clock()
        fulfillment = rng.choice(_FULFILLMENT)
        order_number = next(self._order_numbers)

        chosen = [rng.choice(self.menu) for _ in range(rng.randint(1, 4))]
        items = []
        for menu_item in chosen:
            items.append(
                {
                    "id": new_id("i"),
                    "name": menu_item.name,
                    "station": menu_item.station,
                    "quantity": rng.randint(1, 3),
                    "modifiers": list(rng.choice(_MODIFIERS)),
                    "notes": rng.choice(_ITEM_NOTES) or None,
                }
            )

        longest = max(m.cook_minutes for m in chosen)
        return {
            "id": new_id("t"),
            "order_number": f"ORD-{order_number}",
            "channel": rng.choice(_CHANNELS).value,
            "fulfillment_type": fulfillment.value,
            "table_number": (
                str(rng.randint(1, 20)) if fulfillment is FulfillmentType.DINE_IN else None
            ),
            "created_at": created_at.isoformat(),
            "promised_in_minutes": longest + rng.randint(5, 15),
            "items": items,
            "allergen_notes": rng.choice(_ALLERGEN_NOTES),
            "customer_notes": rng.choice(_CUSTOMER_NOTES),
        }

    async def poll(self) -> list[dict[str, Any]]:
        """Tickets manufactured since the last poll."""
        return [self.generate() for _ in range(self.tickets_per_poll)]
