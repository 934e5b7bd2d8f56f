"""
Mapping ORM avec SQLAlchemy (classical mapping).

On définit les tables séparément, puis on mappe les classes
du domaine sur ces tables. Le modèle de domaine reste ignorant
de la persistance (persistence ignorance).

Chaque table porte une clé technique `pk` qui n'est jamais exposée ;
l'identifiant métier `id` est une colonne unique à part. Les horodatages
sont stockés en UTC et relus avec leur fuseau (UtcDateTime). L'historique
de stock et les lignes de commande sont des listes ordonnées par une
colonne `position`, maintenue par `ordering_list`.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    event,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Session, registry, relationship

from pharmacy.domain import model


class UtcDateTime(TypeDecorator):
    """
    DateTime toujours aware en UTC.

    SQLite ne conserve pas le fuseau : la valeur est convertie en UTC
    à l'écriture (une valeur naïve est supposée déjà en UTC) et le
    fuseau est rattaché à la lecture.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


metadata = MetaData()
mapper_registry = registry(metadata=metadata)

# --- Définition des tables ---

medicines = Table(
    "medicines",
    metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("id", String(64), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("category", String(255), nullable=False),
    Column("origin", String(255), nullable=False),
    Column("stock", Integer, nullable=False, server_default="0"),
    Column("vial_name", String(255), nullable=True),
    Column("expiration_date", Date, nullable=True),
    Column("notes", Text, nullable=True),
    Column("created_date", Date, nullable=True),
    Column("created_at", UtcDateTime()),
)

stock_history = Table(
    "stock_history",
    metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("medicine_pk", Integer, ForeignKey("medicines.pk"), nullable=False),
    Column("position", Integer, nullable=False),
    Column("entry_id", String(64), nullable=False),
    Column("date", UtcDateTime()),
    Column("quantity", Integer, nullable=False),
    Column("type", String(16), nullable=False),
    Column("note", Text, nullable=False),
)

orders = Table(
    "orders",
    metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("id", String(64), nullable=False, unique=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("user_name", String(255), nullable=False),
    Column("status", String(16), nullable=False, server_default=model.PENDING),
    Column("total", Integer, nullable=False, server_default="0"),
    Column("notes", Text, nullable=False, server_default=""),
    Column("order_date", UtcDateTime()),
    Column("completion_date", UtcDateTime(), nullable=True),
)

order_items = Table(
    "order_items",
    metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("order_pk", Integer, ForeignKey("orders.pk"), nullable=False),
    Column("position", Integer, nullable=False),
    Column("item_id", String(64), nullable=False),
    # Référence non contrainte : le médicament peut avoir été supprimé
    Column("medicine_id", String(64), nullable=False),
    Column("name", String(255), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("price", Integer, nullable=False, server_default="0"),
)


def start_mappers() -> None:
    """
    Configure le mapping entre les classes du domaine et les tables SQL,
    puis branche les listeners ORM.
    """
    history_mapper = mapper_registry.map_imperatively(
        model.StockHistoryEntry,
        stock_history,
        properties={"id": stock_history.c.entry_id},
    )
    mapper_registry.map_imperatively(
        model.Medicine,
        medicines,
        properties={
            "history": relationship(
                history_mapper,
                order_by=stock_history.c.position,
                collection_class=ordering_list("position"),
                cascade="all, delete-orphan",
            ),
        },
    )
    items_mapper = mapper_registry.map_imperatively(
        model.OrderItem,
        order_items,
        properties={"id": order_items.c.item_id},
    )
    mapper_registry.map_imperatively(
        model.Order,
        orders,
        properties={
            "items": relationship(
                items_mapper,
                order_by=order_items.c.position,
                collection_class=ordering_list("position"),
                cascade="all, delete-orphan",
            ),
        },
    )

    event.listen(model.Medicine, "load", receive_load)
    event.listen(model.Order, "load", receive_load)
    event.listen(Session, "before_flush", recalculate_order_totals)


def receive_load(aggregate: object, _: object) -> None:
    """Initialise la liste d'événements quand un agrégat est chargé depuis la BDD."""
    aggregate.events = []


def recalculate_order_totals(session: Session, _flush_context: object, _instances: object) -> None:
    """Le total d'une commande est recalculé à chaque sauvegarde."""
    for instance in (*session.new, *session.dirty):
        if isinstance(instance, model.Order):
            instance.recalculate_total()
