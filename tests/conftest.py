"""
Configuration partagée pour les tests.

Le mapping ORM est démarré une seule fois pour toute la session de tests.
Cela permet aux tests d'intégration et e2e d'utiliser SQLAlchemy
sans interférer avec les tests unitaires.
"""

import pytest

from pharmacy.adapters import orm
from pharmacy.adapters.database import Database


@pytest.fixture(scope="session", autouse=True)
def mappers():
    """Démarre le mapping ORM une fois pour toute la session."""
    orm.start_mappers()


@pytest.fixture
def database():
    """Base SQLite en mémoire, tables créées puis supprimées en fin de test."""
    with Database("sqlite:///:memory:") as db:
        db.create_all()
        yield db
        db.drop_all()
