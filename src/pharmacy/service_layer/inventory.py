"""
Ajustement du stock lors des changements de statut de commande.

Le stock n'est décompté qu'au passage d'une commande à `completed`
et n'est restitué que si une commande `completed` est annulée.
Toute autre transition (y compris `completed` -> `completed`) ne
touche pas au stock.

Politique au mieux (best effort) : chaque ligne est traitée dans sa
propre transaction, une seule fois. Un médicament introuvable est
ignoré, une erreur de persistance est consignée ; dans les deux cas
on passe à la ligne suivante. Le résultat (AdjustmentResult) liste
l'issue de chaque ligne pour que l'appelant voie un échec partiel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

from pharmacy.domain import model

if TYPE_CHECKING:
    from pharmacy.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class StockMovement:
    """Mouvement de stock à appliquer pour une ligne de commande."""

    medicine_id: str
    quantity: int
    direction: str
    note: str


@dataclass(frozen=True)
class ItemOutcome:
    medicine_id: str
    quantity: int
    direction: str
    status: str
    stock: Optional[int] = None
    error: Optional[str] = None


@dataclass
class AdjustmentResult:
    order_id: str
    previous_status: str
    new_status: str
    outcomes: list[ItemOutcome] = field(default_factory=list)

    @property
    def applied(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status == APPLIED]

    @property
    def skipped(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status == SKIPPED]

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status == FAILED]

    @property
    def is_partial(self) -> bool:
        return any(o.status != APPLIED for o in self.outcomes)

    @property
    def unadjusted_medicine_ids(self) -> tuple[str, ...]:
        return tuple(o.medicine_id for o in self.outcomes if o.status != APPLIED)


def plan_adjustment(order: model.Order, new_status: str) -> list[StockMovement]:
    """Calcule les mouvements de stock induits par la transition demandée."""
    previous = order.status
    if previous == new_status:
        return []
    if new_status == model.COMPLETED:
        direction, note = model.DECREASE, f"Order #{order.id} completed"
    elif new_status == model.CANCELLED and previous == model.COMPLETED:
        direction, note = model.INCREASE, f"Order #{order.id} cancelled"
    else:
        return []
    return [
        StockMovement(
            medicine_id=item.medicine_id,
            quantity=item.quantity,
            direction=direction,
            note=note,
        )
        for item in order.items
    ]


def apply_adjustment(
    order_id: str,
    previous_status: str,
    new_status: str,
    movements: Iterable[StockMovement],
    uow: AbstractUnitOfWork,
) -> AdjustmentResult:
    result = AdjustmentResult(
        order_id=order_id, previous_status=previous_status, new_status=new_status
    )
    for movement in movements:
        result.outcomes.append(_apply_movement(movement, uow))
    if result.is_partial:
        logger.warning(
            "Commande %s : %d ligne(s) sur %d sans ajustement de stock",
            order_id, len(result.unadjusted_medicine_ids), len(result.outcomes),
        )
    return result


def _apply_movement(movement: StockMovement, uow: AbstractUnitOfWork) -> ItemOutcome:
    try:
        with uow:
            medicine = uow.medicines.get(movement.medicine_id)
            if medicine is None:
                logger.warning("Médicament introuvable : %s, ligne ignorée", movement.medicine_id)
                return ItemOutcome(
                    medicine_id=movement.medicine_id,
                    quantity=movement.quantity,
                    direction=movement.direction,
                    status=SKIPPED,
                    error="Medicine not found",
                )
            medicine.apply_stock_delta(movement.quantity, movement.direction, movement.note)
            stock = medicine.stock
            uow.commit()
    except Exception as e:
        logger.exception("Échec de l'ajustement du stock de %s", movement.medicine_id)
        return ItemOutcome(
            medicine_id=movement.medicine_id,
            quantity=movement.quantity,
            direction=movement.direction,
            status=FAILED,
            error=str(e),
        )
    logger.info(
        "Stock de %s : %s %d -> %d",
        movement.medicine_id, movement.direction, movement.quantity, stock,
    )
    return ItemOutcome(
        medicine_id=movement.medicine_id,
        quantity=movement.quantity,
        direction=movement.direction,
        status=APPLIED,
        stock=stock,
    )
