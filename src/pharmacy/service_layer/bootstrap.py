"""
Bootstrap : assemblage de l'application (Composition Root).

Ce module construit le message bus avec toutes ses dépendances.
C'est le seul endroit de l'application qui connaît les
implémentations concrètes de chaque abstraction ; en test, on
injecte des fakes via les paramètres.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Optional

from pharmacy import config
from pharmacy.adapters import notifications, orm
from pharmacy.adapters.database import Database
from pharmacy.domain import commands, events
from pharmacy.service_layer import handlers, messagebus, unit_of_work


def bootstrap(
    start_orm: bool = True,
    uow: Optional[unit_of_work.AbstractUnitOfWork] = None,
    database: Optional[Database] = None,
    notifications_adapter: Optional[notifications.AbstractNotifications] = None,
    settings: Optional[config.Settings] = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    Sans uow explicite, un SqlAlchemyUnitOfWork est branché sur la
    poignée `database`, qui doit déjà être ouverte.
    """
    settings = settings or config.get_settings()

    if start_orm:
        orm.start_mappers()

    if uow is None:
        if database is None:
            raise ValueError("bootstrap() attend un uow ou une Database ouverte")
        uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)

    if notifications_adapter is None:
        notifications_adapter = notifications.EmailNotifications(
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            sender=settings.SMTP_SENDER,
        )

    dependencies: dict[str, Any] = {
        "uow": uow,
        "notifications": notifications_adapter,
        "alert_email": settings.ALERT_EMAIL,
        **extra_dependencies,
    }
    injected_event_handlers = {
        event_type: [inject_dependencies(handler, dependencies) for handler in event_handlers]
        for event_type, event_handlers in EVENT_HANDLERS.items()
    }
    injected_command_handlers = {
        command_type: inject_dependencies(handler, dependencies)
        for command_type, handler in COMMAND_HANDLERS.items()
    }

    return messagebus.MessageBus(
        uow=uow,
        event_handlers=injected_event_handlers,
        command_handlers=injected_command_handlers,
    )


def inject_dependencies(handler: Callable, dependencies: dict[str, Any]) -> Callable:
    """
    Lie à l'avance les dépendances attendues par un handler.

    Introspection : le premier paramètre est le message lui-même ;
    les suivants sont résolus par nom dans `dependencies`.
    """
    params = list(inspect.signature(handler).parameters)[1:]
    deps = {name: dependencies[name] for name in params if name in dependencies}
    return lambda message: handler(message, **deps)


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list[Callable]] = {
    events.OrderStatusChanged: [handlers.publish_status_change],
    events.PartialAdjustmentFailure: [handlers.report_partial_adjustment],
    events.OutOfStock: [handlers.send_out_of_stock_notification],
}

COMMAND_HANDLERS: dict[type[commands.Command], Callable] = {
    commands.CreateMedicine: handlers.create_medicine,
    commands.UpdateMedicine: handlers.update_medicine,
    commands.AdjustStock: handlers.adjust_stock,
    commands.DeleteMedicine: handlers.delete_medicine,
    commands.CreateOrder: handlers.create_order,
    commands.ChangeOrderStatus: handlers.change_order_status,
    commands.UpdateOrderNotes: handlers.update_order_notes,
    commands.DeleteOrder: handlers.delete_order,
}
