"""
Views (lecture) pour le pattern CQRS.

Les views sont des fonctions de lecture pure : elles ne passent pas
par le message bus et ne modifient rien. Elles produisent les
documents JSON exposés par l'API (clés camelCase).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pharmacy.domain import model
from pharmacy.service_layer import inventory, unit_of_work


def _iso(value: Optional[date | datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# --- Sérialisation ---


def medicine_to_dict(medicine: model.Medicine) -> dict[str, Any]:
    return {
        "id": medicine.id,
        "name": medicine.name,
        "category": medicine.category,
        "origin": medicine.origin,
        "stock": medicine.stock,
        "vialName": medicine.vial_name,
        "expirationDate": _iso(medicine.expiration_date),
        "notes": medicine.notes,
        "createdDate": _iso(medicine.created_date),
        "createdAt": _iso(medicine.created_at),
        "history": [
            {
                "id": entry.id,
                "date": _iso(entry.date),
                "quantity": entry.quantity,
                "type": entry.type,
                "note": entry.note,
            }
            for entry in medicine.history
        ],
    }


def order_to_dict(order: model.Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "userId": order.user_id,
        "userName": order.user_name,
        "items": [
            {
                "id": item.id,
                "medicineId": item.medicine_id,
                "name": item.name,
                "quantity": item.quantity,
                "price": item.price,
            }
            for item in order.items
        ],
        "status": order.status,
        "total": order.total,
        "notes": order.notes,
        "orderDate": _iso(order.order_date),
        "completionDate": _iso(order.completion_date),
    }


def adjustment_to_dict(result: inventory.AdjustmentResult) -> dict[str, Any]:
    return {
        "previousStatus": result.previous_status,
        "newStatus": result.new_status,
        "partial": result.is_partial,
        "items": [
            {
                "medicineId": outcome.medicine_id,
                "quantity": outcome.quantity,
                "type": outcome.direction,
                "outcome": outcome.status,
                "stock": outcome.stock,
                "error": outcome.error,
            }
            for outcome in result.outcomes
        ],
    }


# --- Médicaments ---


def medicine(medicine_id: str, uow: unit_of_work.AbstractUnitOfWork) -> Optional[dict]:
    with uow:
        found = uow.medicines.get(medicine_id)
        return medicine_to_dict(found) if found is not None else None


def medicines(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    with uow:
        return [medicine_to_dict(m) for m in uow.medicines.list()]


def low_stock_medicines(threshold: int, uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """Médicaments dont le stock est strictement sous le seuil, du plus bas au plus haut."""
    with uow:
        low = [m for m in uow.medicines.list() if m.stock < threshold]
        return [medicine_to_dict(m) for m in sorted(low, key=lambda m: (m.stock, m.id))]


# --- Commandes ---


def order(order_id: str, uow: unit_of_work.AbstractUnitOfWork) -> Optional[dict]:
    with uow:
        found = uow.orders.get(order_id)
        return order_to_dict(found) if found is not None else None


def orders(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    with uow:
        return [order_to_dict(o) for o in uow.orders.list()]


def orders_for_user(user_id: str, uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    with uow:
        return [order_to_dict(o) for o in uow.orders.list_by_user(user_id)]


def order_summary(uow: unit_of_work.AbstractUnitOfWork) -> dict[str, Any]:
    """Nombre de commandes par statut et unités sorties par les commandes complétées."""
    with uow:
        all_orders = uow.orders.list()
        counts = {status: 0 for status in model.ORDER_STATUSES}
        for o in all_orders:
            counts[o.status] = counts.get(o.status, 0) + 1
        return {
            "total": len(all_orders),
            "byStatus": counts,
            "unitsDispensed": sum(o.total for o in all_orders if o.status == model.COMPLETED),
        }
