"""
Events du domaine.

Les events représentent des faits qui se sont produits dans le système.
Ils sont immuables et nommés au passé (quelque chose s'est passé).
"""

from dataclasses import dataclass


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class OrderStatusChanged(Event):
    """Le statut d'une commande a changé."""

    order_id: str
    previous_status: str
    new_status: str


@dataclass(frozen=True)
class PartialAdjustmentFailure(Event):
    """
    Une partie des lignes d'une commande n'a pas pu être répercutée
    sur le stock lors d'un changement de statut.
    """

    order_id: str
    new_status: str
    medicine_ids: tuple[str, ...]


@dataclass(frozen=True)
class OutOfStock(Event):
    """Le stock d'un médicament vient de tomber à zéro."""

    medicine_id: str
    name: str
