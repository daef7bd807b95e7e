"""Consumable inventory attached to recurring tasks.

Users describe items one per line (or separated by ";"):

    Water filter, stock 3, consume 1
    Descaler, stock=2, consume=1
"""

from __future__ import annotations

import re

from remindlist.core.errors import ValidationError
from remindlist.data.models import InventoryItem

_LINE_SPLIT_RE = re.compile(r"\r?\n|;")


def _parse_labeled_number(token: str, label: str) -> int | None:
    match = re.fullmatch(rf"{label}\s*[:=]?\s*(\d+)", token, flags=re.IGNORECASE)
    return int(match.group(1)) if match else None


def parse_inventory_input(text: str) -> list[InventoryItem]:
    """Parse user text into inventory items.

    Raises:
        ValidationError: on a missing stock/consume value, consume < 1,
            or a duplicated item name.
    """
    lines = [line.strip() for line in _LINE_SPLIT_RE.split(text or "")]
    items: list[InventoryItem] = []
    seen: set[str] = set()

    for line in filter(None, lines):
        tokens = [t.strip() for t in line.split(",") if t.strip()]
        if len(tokens) < 2:
            raise ValidationError(f"Invalid inventory line: {line!r}")

        name = tokens[0]
        stock: int | None = None
        consume: int | None = None
        for token in tokens[1:]:
            if stock is None:
                stock = _parse_labeled_number(token, "stock")
                if stock is not None:
                    continue
            if consume is None:
                consume = _parse_labeled_number(token, "consume")

        if stock is None:
            raise ValidationError(f"Missing stock for {name!r}")
        if consume is None:
            raise ValidationError(f"Missing consume for {name!r}")
        if consume < 1:
            raise ValidationError(f"Consume for {name!r} must be at least 1")
        if name in seen:
            raise ValidationError(f"Duplicate inventory item: {name!r}")

        seen.add(name)
        items.append(InventoryItem(name=name, stock=stock, consume=consume))

    return items


def insufficient_inventory_items(items: list[InventoryItem]) -> list[InventoryItem]:
    """Items that cannot cover one more completion."""
    return [item for item in items if item.stock < item.consume]


def consume_inventory(items: list[InventoryItem]) -> list[InventoryItem]:
    """Return new items with one completion's consumption deducted, floored at 0."""
    return [
        InventoryItem(name=item.name, stock=max(0, item.stock - item.consume), consume=item.consume)
        for item in items
    ]


def format_inventory_summary(items: list[InventoryItem], max_items: int = 3) -> str | None:
    if not items:
        return None
    shown = ", ".join(f"{item.name} {item.stock}" for item in items[:max_items])
    suffix = "..." if len(items) > max_items else ""
    return f"Stock: {shown}{suffix}"


def format_inventory_shortage(items: list[InventoryItem]) -> str:
    return ", ".join(
        f"{item.name} (stock {item.stock}/consume {item.consume})" for item in items
    )


def format_inventory_input(items: list[InventoryItem]) -> str:
    return "\n".join(f"{item.name}, stock {item.stock}, consume {item.consume}" for item in items)
