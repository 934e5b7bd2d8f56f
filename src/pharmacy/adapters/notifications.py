"""
Adapter pour les notifications.

Les alertes de stock (rupture d'un médicament) sont envoyées par
email au responsable des stocks. Le domaine ne connaît que
AbstractNotifications ; les tests injectent un fake.
"""

from __future__ import annotations

import abc
import logging
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)


class AbstractNotifications(abc.ABC):
    @abc.abstractmethod
    def send(self, destination: str, message: str) -> None:
        raise NotImplementedError


class EmailNotifications(AbstractNotifications):
    """Envoi SMTP ; la première ligne du message sert d'objet."""

    def __init__(self, smtp_host: str, smtp_port: int, sender: str):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender

    def _build(self, destination: str, message: str) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = destination
        email["Subject"] = f"[Pharmacie] {message.splitlines()[0] if message else 'Alerte'}"
        email.set_content(message)
        return email

    def send(self, destination: str, message: str) -> None:
        email = self._build(destination, message)
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as smtp:
            smtp.send_message(email)
        logger.info("Alerte envoyée à %s : %s", destination, email["Subject"])
