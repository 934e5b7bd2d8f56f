"""
Pattern Unit of Work.

Le Unit of Work (UoW) gère la notion de transaction atomique.
Il coordonne l'écriture en base de données et la collecte
des événements émis par les agrégats au cours de la transaction.

Le UoW agit comme un context manager :
    with uow:
        # ... opérations sur les repositories ...
        uow.commit()

Un même UoW peut être ouvert plusieurs fois de suite par un handler
(une transaction par document) ; les événements des transactions
validées sont conservés jusqu'à leur collecte par le message bus.

Le UoW est partagé par toutes les requêtes : session, repositories et
événements en attente sont propres à chaque thread.
"""

from __future__ import annotations

import abc
import threading
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from pharmacy.adapters import repository
from pharmacy.domain import events


class DuplicateKey(Exception):
    """Levée quand un identifiant métier existe déjà."""
    pass


class AbstractUnitOfWork(abc.ABC):
    """
    Interface abstraite du Unit of Work.

    Fournit les repositories `medicines` et `orders` et gère
    commit/rollback. Le rollback est automatique si commit()
    n'est pas appelé (grâce au __exit__ du context manager).
    """

    medicines: repository.AbstractMedicineRepository
    orders: repository.AbstractOrderRepository

    def __init__(self) -> None:
        self._local = threading.local()

    @property
    def _committed_events(self) -> list[events.Event]:
        if not hasattr(self._local, "committed_events"):
            self._local.committed_events = []
        return self._local.committed_events

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()
        self._stash_events()

    def _stash_events(self) -> None:
        """Retire les événements des agrégats vus, une fois le commit réussi."""
        for aggregate in (*self.medicines.seen, *self.orders.seen):
            while aggregate.events:
                self._committed_events.append(aggregate.events.pop(0))

    def collect_new_events(self) -> Iterator[events.Event]:
        while self._committed_events:
            yield self._committed_events.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation concrète du UoW avec SQLAlchemy.

    Crée une session à l'entrée du context manager,
    la ferme à la sortie. Rollback automatique si pas de commit.
    La session_factory vient de la poignée Database.
    """

    def __init__(self, session_factory: sessionmaker):
        super().__init__()
        self.session_factory = session_factory

    @property
    def session(self) -> Session:
        return self._local.session

    @property
    def medicines(self) -> repository.SqlAlchemyMedicineRepository:
        return self._local.medicines

    @property
    def orders(self) -> repository.SqlAlchemyOrderRepository:
        return self._local.orders

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        session = self.session_factory()
        self._local.session = session
        self._local.medicines = repository.SqlAlchemyMedicineRepository(session)
        self._local.orders = repository.SqlAlchemyOrderRepository(session)
        return super().__enter__()

    def __exit__(self, *args: object) -> None:
        super().__exit__(*args)
        self.session.close()

    def _commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            message = str(e.orig)
            if "unique" in message.lower() or "duplicate" in message.lower():
                raise DuplicateKey(message) from e
            raise

    def rollback(self) -> None:
        self.session.rollback()
