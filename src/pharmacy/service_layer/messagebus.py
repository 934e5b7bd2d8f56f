"""
Message Bus.

Point central de dispatch des messages (commands et events)
vers leurs handlers respectifs.

- Une command a exactement UN handler ; l'erreur remonte à l'appelant
  et son résultat est retourné par handle().
- Un event peut avoir 0 à N handlers ; les erreurs sont loggées mais
  ne bloquent ni les autres handlers ni l'appelant.

Les handlers reçus ici ont déjà leurs dépendances injectées
(voir bootstrap) : ils ne prennent plus que le message.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Union

from pharmacy.domain import commands, events
from pharmacy.service_layer import unit_of_work

logger = logging.getLogger(__name__)

Message = Union[commands.Command, events.Event]


class MessageBus:
    def __init__(
        self,
        uow: unit_of_work.AbstractUnitOfWork,
        event_handlers: dict[type[events.Event], list[Callable]],
        command_handlers: dict[type[commands.Command], Callable],
    ):
        self.uow = uow
        self.event_handlers = event_handlers
        self.command_handlers = command_handlers
        self._local = threading.local()

    @property
    def queue(self) -> list[events.Event]:
        """File des events à traiter, propre au thread qui traite le message."""
        if not hasattr(self._local, "queue"):
            self._local.queue = []
        return self._local.queue

    @queue.setter
    def queue(self, value: list[events.Event]) -> None:
        self._local.queue = value

    def handle(self, message: Message) -> Any:
        """
        Traite un message puis tous les événements qui en découlent.

        Pour une command, retourne le résultat de son handler. Les
        événements des transactions déjà validées sont traités même
        si la command échoue ensuite.
        """
        self.queue = []
        if isinstance(message, events.Event):
            self.queue.append(message)
            self._process_events()
            return None
        if isinstance(message, commands.Command):
            try:
                return self._handle_command(message)
            finally:
                self._process_events()
        raise ValueError(f"Message de type inconnu : {type(message)}")

    def _handle_command(self, command: commands.Command) -> Any:
        logger.debug("Traitement de la command %s", command)
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {type(command)}")
        try:
            return handler(command)
        finally:
            self.queue.extend(self.uow.collect_new_events())

    def _process_events(self) -> None:
        while self.queue:
            event = self.queue.pop(0)
            for handler in self.event_handlers.get(type(event), []):
                try:
                    logger.debug("Traitement de l'event %s avec %s", event, handler)
                    handler(event)
                    self.queue.extend(self.uow.collect_new_events())
                except Exception:
                    logger.exception("Erreur lors du traitement de l'event %s", event)
