"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
le système doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional


class Command:
    """Classe de base pour toutes les commands."""
    pass


# --- Médicaments ---


@dataclass(frozen=True)
class CreateMedicine(Command):
    """Demande d'enregistrement d'un nouveau médicament."""

    id: str
    name: str
    category: str
    origin: str
    stock: int = 0
    vial_name: Optional[str] = None
    expiration_date: Optional[date] = None
    notes: Optional[str] = None
    created_date: Optional[date] = None


@dataclass(frozen=True)
class UpdateMedicine(Command):
    """
    Mise à jour partielle d'un médicament.

    `changes` ne contient que les champs fournis par l'appelant ;
    le stock et l'historique n'en font jamais partie.
    """

    id: str
    changes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AdjustStock(Command):
    """Demande d'ajustement du stock d'un médicament."""

    medicine_id: str
    quantity: int
    direction: str
    note: Optional[str] = None


@dataclass(frozen=True)
class DeleteMedicine(Command):
    id: str


# --- Commandes clients ---


@dataclass(frozen=True)
class OrderLine:
    """Ligne d'une commande à créer, telle que validée à l'admission."""

    id: str
    medicine_id: str
    name: str
    quantity: int
    price: int = 0


@dataclass(frozen=True)
class CreateOrder(Command):
    """Demande de création d'une commande (déjà validée)."""

    user_id: str
    user_name: str
    lines: tuple[OrderLine, ...]
    id: Optional[str] = None
    notes: str = ""


@dataclass(frozen=True)
class ChangeOrderStatus(Command):
    """Demande de changement de statut d'une commande."""

    order_id: str
    status: str


@dataclass(frozen=True)
class UpdateOrderNotes(Command):
    order_id: str
    notes: str


@dataclass(frozen=True)
class DeleteOrder(Command):
    order_id: str
