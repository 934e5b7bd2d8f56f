"""
Handlers pour les commands et events.

Les handlers sont les fonctions qui traitent les commands et events
transitant par le message bus.

- Command handlers : exécutent une action (peuvent échouer)
- Event handlers : réagissent à un fait passé (ne doivent pas échouer)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pharmacy.domain import commands, events, model
from pharmacy.service_layer import inventory
from pharmacy.service_layer.unit_of_work import DuplicateKey

if TYPE_CHECKING:
    from pharmacy.adapters.notifications import AbstractNotifications
    from pharmacy.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


# --- Exceptions ---


class NotFound(Exception):
    """Levée quand l'identifiant demandé n'existe pas."""
    pass


# --- Command Handlers : médicaments ---


def create_medicine(
    cmd: commands.CreateMedicine,
    uow: AbstractUnitOfWork,
) -> str:
    with uow:
        if uow.medicines.get(cmd.id) is not None:
            raise DuplicateKey(f"Medicine with this ID already exists: {cmd.id}")
        uow.medicines.add(
            model.Medicine(
                id=cmd.id,
                name=cmd.name,
                category=cmd.category,
                origin=cmd.origin,
                stock=cmd.stock,
                vial_name=cmd.vial_name,
                expiration_date=cmd.expiration_date,
                notes=cmd.notes,
                created_date=cmd.created_date,
            )
        )
        uow.commit()
    return cmd.id


def update_medicine(
    cmd: commands.UpdateMedicine,
    uow: AbstractUnitOfWork,
) -> str:
    """Mise à jour partielle ; le stock n'est jamais touché ici."""
    with uow:
        medicine = uow.medicines.get(cmd.id)
        if medicine is None:
            raise NotFound(f"Medicine not found: {cmd.id}")
        medicine.update(**cmd.changes)
        uow.commit()
    return cmd.id


def adjust_stock(
    cmd: commands.AdjustStock,
    uow: AbstractUnitOfWork,
) -> int:
    """Ajustement manuel du stock. Retourne le nouveau stock."""
    with uow:
        medicine = uow.medicines.get(cmd.medicine_id)
        if medicine is None:
            raise NotFound(f"Medicine not found: {cmd.medicine_id}")
        medicine.apply_stock_delta(cmd.quantity, cmd.direction, cmd.note)
        stock = medicine.stock
        uow.commit()
    return stock


def delete_medicine(
    cmd: commands.DeleteMedicine,
    uow: AbstractUnitOfWork,
) -> None:
    """Supprime un médicament. Les commandes qui le référencent restent intactes."""
    with uow:
        medicine = uow.medicines.get(cmd.id)
        if medicine is None:
            raise NotFound(f"Medicine not found: {cmd.id}")
        uow.medicines.delete(medicine)
        uow.commit()


# --- Command Handlers : commandes ---


def create_order(
    cmd: commands.CreateOrder,
    uow: AbstractUnitOfWork,
) -> str:
    """
    Enregistre une commande validée, au statut `pending`.

    L'identifiant est généré s'il n'est pas fourni ; une collision
    est remontée en DuplicateKey.
    """
    order_id = cmd.id or model.new_order_id()
    items = [
        model.OrderItem(
            id=line.id,
            medicine_id=line.medicine_id,
            name=line.name,
            quantity=line.quantity,
            price=line.price,
        )
        for line in cmd.lines
    ]
    with uow:
        if uow.orders.get(order_id) is not None:
            raise DuplicateKey(f"Order with this ID already exists: {order_id}")
        uow.orders.add(
            model.Order(
                id=order_id,
                user_id=cmd.user_id,
                user_name=cmd.user_name,
                items=items,
                notes=cmd.notes,
            )
        )
        uow.commit()
    logger.info("Commande %s créée (%d ligne(s))", order_id, len(items))
    return order_id


def change_order_status(
    cmd: commands.ChangeOrderStatus,
    uow: AbstractUnitOfWork,
) -> inventory.AdjustmentResult:
    """
    Change le statut d'une commande et répercute la transition sur le stock.

    Les mouvements de stock sont appliqués avant l'enregistrement du
    nouveau statut, une transaction par médicament. Le statut est
    enregistré même si certaines lignes n'ont pas pu être ajustées.
    """
    if cmd.status not in model.ORDER_STATUSES:
        raise ValueError(f"Invalid order status: {cmd.status}")

    with uow:
        order = uow.orders.get(cmd.order_id)
        if order is None:
            raise NotFound(f"Order not found: {cmd.order_id}")
        previous_status = order.status
        movements = inventory.plan_adjustment(order, cmd.status)

    logger.info(
        "Commande %s : %s -> %s (%d mouvement(s) de stock)",
        cmd.order_id, previous_status, cmd.status, len(movements),
    )
    result = inventory.apply_adjustment(
        cmd.order_id, previous_status, cmd.status, movements, uow
    )

    with uow:
        order = uow.orders.get(cmd.order_id)
        if order is None:
            raise NotFound(f"Order not found: {cmd.order_id}")
        order.change_status(cmd.status)
        order.record_adjustment_failures(result.unadjusted_medicine_ids)
        uow.commit()
    return result


def update_order_notes(
    cmd: commands.UpdateOrderNotes,
    uow: AbstractUnitOfWork,
) -> str:
    with uow:
        order = uow.orders.get(cmd.order_id)
        if order is None:
            raise NotFound(f"Order not found: {cmd.order_id}")
        order.notes = cmd.notes
        uow.commit()
    return cmd.order_id


def delete_order(
    cmd: commands.DeleteOrder,
    uow: AbstractUnitOfWork,
) -> None:
    """Supprime une commande, sans effet sur le stock quel que soit son statut."""
    with uow:
        order = uow.orders.get(cmd.order_id)
        if order is None:
            raise NotFound(f"Order not found: {cmd.order_id}")
        uow.orders.delete(order)
        uow.commit()


# --- Event Handlers ---


def publish_status_change(
    event: events.OrderStatusChanged,
) -> None:
    """
    Publie le changement de statut vers l'extérieur.

    Pour l'instant, seule une trace dans les logs.
    """
    logger.info(
        "Statut publié : commande %s %s -> %s",
        event.order_id, event.previous_status, event.new_status,
    )


def report_partial_adjustment(
    event: events.PartialAdjustmentFailure,
) -> None:
    logger.warning(
        "Commande %s passée à %s avec un stock non ajusté pour : %s",
        event.order_id, event.new_status, ", ".join(event.medicine_ids),
    )


def send_out_of_stock_notification(
    event: events.OutOfStock,
    notifications: AbstractNotifications,
    alert_email: str,
) -> None:
    """Envoie une notification quand le stock d'un médicament est épuisé."""
    notifications.send(
        destination=alert_email,
        message=f"Rupture de stock : {event.name} ({event.medicine_id})",
    )
