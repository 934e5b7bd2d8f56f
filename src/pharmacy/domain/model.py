"""
Modèle de domaine de la pharmacie.

Deux agrégats :
- Medicine : un médicament, son stock et l'historique des mouvements
  de stock (StockHistoryEntry, du plus récent au plus ancien).
- Order : une commande client, ses lignes (OrderItem) et son statut.

Les lignes de commande référencent les médicaments par identifiant
uniquement (medicineId) : la référence n'est pas garantie, un
médicament supprimé laisse des lignes orphelines. Le nom du
médicament et celui du client sont copiés dans la commande au
moment de sa création.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from pharmacy.domain import events


# --- Statuts de commande ---

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
CANCELLED = "cancelled"

ORDER_STATUSES = (PENDING, PROCESSING, COMPLETED, CANCELLED)

# --- Sens d'un mouvement de stock ---

INCREASE = "increase"
DECREASE = "decrease"

STOCK_DIRECTIONS = (INCREASE, DECREASE)


def now() -> datetime:
    return datetime.now(timezone.utc)


def _millis() -> int:
    return int(time.time() * 1000)


class StockHistoryEntry:
    """
    Trace d'un mouvement de stock.

    `quantity` est la quantité demandée, pas l'effet réel après
    plafonnement à zéro : l'historique enregistre l'intention.
    Une entrée n'est jamais modifiée après sa création.
    """

    def __init__(
        self,
        id: str,
        date: datetime,
        quantity: int,
        type: str,
        note: str,
    ):
        self.id = id
        self.date = date
        self.quantity = quantity
        self.type = type
        self.note = note

    def __repr__(self) -> str:
        return f"<StockHistoryEntry {self.id} {self.type} {self.quantity}>"


class Medicine:
    """
    Agrégat racine d'un médicament.

    Le stock ne change que par apply_stock_delta, qui ajoute
    systématiquement une entrée en tête de l'historique.
    """

    REQUIRED_FIELDS = ("name", "category", "origin")
    OPTIONAL_FIELDS = ("vial_name", "expiration_date", "notes", "created_date")

    def __init__(
        self,
        id: str,
        name: str,
        category: str,
        origin: str,
        stock: int = 0,
        vial_name: Optional[str] = None,
        expiration_date: Optional[date] = None,
        notes: Optional[str] = None,
        created_date: Optional[date] = None,
        created_at: Optional[datetime] = None,
        history: Optional[list[StockHistoryEntry]] = None,
    ):
        if stock < 0:
            raise ValueError(f"Stock négatif refusé pour {id} : {stock}")
        self.id = id
        self.name = name
        self.category = category
        self.origin = origin
        self.stock = stock
        self.vial_name = vial_name
        self.expiration_date = expiration_date
        self.notes = notes
        self.created_date = created_date
        self.created_at = created_at or now()
        self.history = list(history or [])
        self.events: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Medicine {self.id}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Medicine):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def update(self, **changes: Any) -> None:
        """
        Met à jour les champs fournis, et seulement eux.

        Les champs obligatoires (nom, catégorie, origine) ne peuvent pas
        être vidés : une valeur vide est ignorée. Les champs optionnels
        acceptent None pour être effacés.
        """
        unknown = set(changes) - set(self.REQUIRED_FIELDS) - set(self.OPTIONAL_FIELDS)
        if unknown:
            raise ValueError(f"Champs non modifiables : {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            if name in self.REQUIRED_FIELDS and not value:
                continue
            setattr(self, name, value)

    def apply_stock_delta(
        self,
        quantity: int,
        direction: str,
        note: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> StockHistoryEntry:
        """
        Applique un mouvement de stock et l'inscrit dans l'historique.

        Une baisse est plafonnée : le stock ne descend jamais sous zéro.
        Cas particulier : une première entrée de quantité nulle sur un
        historique vide ne touche pas au stock (entrée d'initialisation).
        """
        if direction not in STOCK_DIRECTIONS:
            raise ValueError(f"Sens de mouvement inconnu : {direction!r}")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValueError(f"Quantité invalide : {quantity!r}")

        previous_stock = self.stock
        initial_entry = not self.history and quantity == 0
        if not initial_entry:
            if direction == INCREASE:
                self.stock = previous_stock + quantity
            else:
                self.stock = previous_stock - min(quantity, previous_stock)

        if note is None:
            note = "Stock added" if direction == INCREASE else "Stock removed"
        entry = StockHistoryEntry(
            id=f"hist{_millis()}{len(self.history)}",
            date=at or now(),
            quantity=quantity,
            type=direction,
            note=note,
        )
        self.history.insert(0, entry)

        if direction == DECREASE and previous_stock > 0 and self.stock == 0:
            self.events.append(events.OutOfStock(medicine_id=self.id, name=self.name))
        return entry


class OrderItem:
    """Ligne de commande. `price` est conservé mais vaut 0 par convention."""

    def __init__(
        self,
        id: str,
        medicine_id: str,
        name: str,
        quantity: int,
        price: int = 0,
    ):
        self.id = id
        self.medicine_id = medicine_id
        self.name = name
        self.quantity = quantity
        self.price = price

    def __repr__(self) -> str:
        return f"<OrderItem {self.id} {self.medicine_id} x{self.quantity}>"


def new_order_id() -> str:
    """Identifiant basé sur l'horloge : ORD + 6 derniers chiffres des millisecondes."""
    return f"ORD{str(_millis())[-6:]}"


class Order:
    """
    Agrégat racine d'une commande.

    `total` est un nombre d'unités (somme des quantités), recalculé
    à chaque sauvegarde ; il ne se modifie pas directement.
    """

    def __init__(
        self,
        id: str,
        user_id: str,
        user_name: str,
        items: Iterable[OrderItem],
        status: str = PENDING,
        notes: str = "",
        order_date: Optional[datetime] = None,
        completion_date: Optional[datetime] = None,
    ):
        if status not in ORDER_STATUSES:
            raise ValueError(f"Statut inconnu : {status!r}")
        self.id = id
        self.user_id = user_id
        self.user_name = user_name
        self.items = list(items)
        self.status = status
        self.notes = notes
        self.order_date = order_date or now()
        self.completion_date = completion_date
        self.total = 0
        self.recalculate_total()
        self.events: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.status}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Order):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def recalculate_total(self) -> int:
        self.total = sum(item.quantity for item in self.items)
        return self.total

    def change_status(self, new_status: str, at: Optional[datetime] = None) -> str:
        """
        Change le statut et retourne le statut précédent.

        Aucun graphe de transitions n'est imposé. Le passage à
        `completed` fixe la date de complétion ; quitter `completed`
        la conserve.
        """
        if new_status not in ORDER_STATUSES:
            raise ValueError(f"Statut inconnu : {new_status!r}")
        previous = self.status
        self.status = new_status
        if new_status == COMPLETED and previous != COMPLETED:
            self.completion_date = at or now()
        if new_status != previous:
            self.events.append(
                events.OrderStatusChanged(
                    order_id=self.id, previous_status=previous, new_status=new_status
                )
            )
        return previous

    def record_adjustment_failures(self, medicine_ids: Iterable[str]) -> None:
        """Signale les lignes dont le stock n'a pas pu être ajusté."""
        medicine_ids = tuple(medicine_ids)
        if medicine_ids:
            self.events.append(
                events.PartialAdjustmentFailure(
                    order_id=self.id, new_status=self.status, medicine_ids=medicine_ids
                )
            )
