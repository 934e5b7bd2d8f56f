"""
Configuration de l'application.

Toutes les valeurs peuvent être surchargées par des variables
d'environnement préfixées par PHARMACY_ (ou un fichier .env).
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///pharmacy.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    # Seuil en dessous duquel un médicament apparaît dans la vue "stock bas"
    LOW_STOCK_THRESHOLD: int = 10

    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    ALERT_EMAIL: str = "stock@example.com"
    SMTP_SENDER: str = "pharmacy@example.com"

    model_config = SettingsConfigDict(
        env_prefix="PHARMACY_", env_file=".env", extra="ignore"
    )


def get_settings() -> Settings:
    return Settings()
