"""
Poignée de connexion à la base de données.

Aucun engine n'est créé à l'import : la poignée est construite
explicitement, ouverte au démarrage et fermée à l'arrêt, puis
sa session_factory est passée au Unit of Work.
"""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pharmacy.adapters import orm

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    def __enter__(self) -> Database:
        return self.open()

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> Database:
        if self.engine is not None:
            return self
        kwargs: dict = {"echo": self.echo}
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url == "sqlite://":
                # Une base en mémoire n'existe que sur sa propre connexion
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
        self.engine = create_engine(self.url, **kwargs)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info("Connexion ouverte : %s", self.engine.url.render_as_string(hide_password=True))
        return self

    def create_all(self) -> None:
        orm.metadata.create_all(self._require_engine())

    def drop_all(self) -> None:
        orm.metadata.drop_all(self._require_engine())

    @property
    def session_factory(self) -> sessionmaker:
        self._require_engine()
        return self._session_factory

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        logger.info("Connexion fermée")
        self.engine = None
        self._session_factory = None

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise RuntimeError("La base de données n'est pas ouverte")
        return self.engine
