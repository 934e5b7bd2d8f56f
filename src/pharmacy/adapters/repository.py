"""
Pattern Repository.

Le repository fournit une abstraction sur la couche de persistance.
Il expose une interface de type collection (add, get, list, delete)
qui masque les détails de l'accès aux données.

Un repository par agrégat : médicaments et commandes. Les deux
retrouvent leurs agrégats par l'identifiant métier `id`.
"""

from __future__ import annotations

import abc
from typing import Any

from sqlalchemy.orm import Session

from pharmacy.domain import model


class AbstractRepository(abc.ABC):
    """
    Interface abstraite commune aux repositories.

    Le pattern Template Method est utilisé : les méthodes publiques
    gèrent le tracking via `seen`, puis délèguent aux méthodes
    abstraites préfixées _ que les sous-classes implémentent.
    """

    def __init__(self) -> None:
        # `seen` trace tous les agrégats consultés pendant la transaction,
        # ce qui permet au Unit of Work de collecter leurs événements.
        self.seen: set[Any] = set()

    def add(self, aggregate: Any) -> None:
        self._add(aggregate)
        self.seen.add(aggregate)

    def get(self, id: str) -> Any | None:
        aggregate = self._get(id)
        if aggregate is not None:
            self.seen.add(aggregate)
        return aggregate

    def list(self) -> list[Any]:
        aggregates = self._list()
        self.seen.update(aggregates)
        return aggregates

    def delete(self, aggregate: Any) -> None:
        self._delete(aggregate)
        self.seen.discard(aggregate)

    @abc.abstractmethod
    def _add(self, aggregate: Any) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, id: str) -> Any | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _list(self) -> list[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def _delete(self, aggregate: Any) -> None:
        raise NotImplementedError


class AbstractMedicineRepository(AbstractRepository):
    seen: set[model.Medicine]


class AbstractOrderRepository(AbstractRepository):
    seen: set[model.Order]

    def list_by_user(self, user_id: str) -> list[model.Order]:
        """Commandes d'un client ; les identifiants sont comparés en chaînes."""
        orders = self._list_by_user(str(user_id))
        self.seen.update(orders)
        return orders

    @abc.abstractmethod
    def _list_by_user(self, user_id: str) -> list[model.Order]:
        raise NotImplementedError


class _SqlAlchemyRepository:
    """Implémentation SQLAlchemy partagée, paramétrée par la classe mappée."""

    model_class: type

    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, aggregate: Any) -> None:
        self.session.add(aggregate)

    def _get(self, id: str) -> Any | None:
        return (
            self.session.query(self.model_class)
            .filter_by(id=id)
            .first()
        )

    def _list(self) -> list[Any]:
        return self.session.query(self.model_class).all()

    def _delete(self, aggregate: Any) -> None:
        self.session.delete(aggregate)


class SqlAlchemyMedicineRepository(_SqlAlchemyRepository, AbstractMedicineRepository):
    model_class = model.Medicine


class SqlAlchemyOrderRepository(_SqlAlchemyRepository, AbstractOrderRepository):
    model_class = model.Order

    def _list(self) -> list[model.Order]:
        return (
            self.session.query(model.Order)
            .order_by(model.Order.order_date.desc())
            .all()
        )

    def _list_by_user(self, user_id: str) -> list[model.Order]:
        return (
            self.session.query(model.Order)
            .filter_by(user_id=user_id)
            .order_by(model.Order.order_date.desc())
            .all()
        )
