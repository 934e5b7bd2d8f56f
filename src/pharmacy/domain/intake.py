"""
Validation des commandes à l'admission.

validate_order vérifie la forme d'une demande de commande brute
(dictionnaire JSON, clés camelCase) avant toute écriture, et la
traduit en command CreateOrder.
"""

from __future__ import annotations

from typing import Any, Mapping

from pharmacy.domain import commands


class InvalidOrder(Exception):
    """Levée quand une demande de commande est mal formée."""

    def __init__(self, field: str, reason: str):
        super().__init__(reason)
        self.field = field
        self.reason = reason


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_order(raw: Any) -> commands.CreateOrder:
    if not isinstance(raw, Mapping):
        raise InvalidOrder("body", "Order payload must be an object")

    user_id = raw.get("userId")
    if user_id is None or user_id == "":
        raise InvalidOrder("userId", "User ID is required")

    items = raw.get("items")
    if not isinstance(items, list) or not items:
        raise InvalidOrder("items", "Order must contain at least one item")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise InvalidOrder(f"items[{index}]", f"Item at index {index} is not an object")
        for key in ("id", "medicineId", "name"):
            if not item.get(key):
                raise InvalidOrder(
                    f"items[{index}].{key}", f"Item at index {index} is missing {key}"
                )
        if not _is_positive_int(item.get("quantity")):
            raise InvalidOrder(
                f"items[{index}].quantity", f"Item {item['name']} has invalid quantity"
            )
        price = item.get("price")
        if price is None:
            price = 0
        elif not _is_non_negative_int(price):
            raise InvalidOrder(
                f"items[{index}].price", f"Item {item['name']} has invalid price"
            )
        lines.append(
            commands.OrderLine(
                id=str(item["id"]),
                medicine_id=str(item["medicineId"]),
                name=item["name"],
                quantity=item["quantity"],
                price=price,
            )
        )

    return commands.CreateOrder(
        user_id=str(user_id),
        user_name=raw.get("userName") or str(user_id),
        lines=tuple(lines),
        id=raw.get("id") or None,
        notes=raw.get("notes") or "",
    )
