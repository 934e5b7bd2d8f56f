"""
Point d'entrée Flask.

L'API Flask est un thin adapter : elle convertit les requêtes HTTP
en commands, les envoie au message bus, et convertit les résultats
en réponses HTTP. Les lectures passent par les views.

L'API ne contient aucune logique métier.

Lancement :
    flask --app "pharmacy.entrypoints.flask_app:create_app()" run
"""

from __future__ import annotations

import atexit
import logging
from datetime import date
from typing import Any, Optional

import click
from flask import Blueprint, Flask, current_app, jsonify, request
from flask.cli import with_appcontext

from pharmacy import config
from pharmacy.adapters.database import Database
from pharmacy.domain import commands, intake, model
from pharmacy.service_layer import bootstrap, handlers, messagebus
from pharmacy.service_layer.unit_of_work import DuplicateKey
from pharmacy.views import views

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__)

# Champs JSON modifiables par PUT /medicines/<id> -> attributs du domaine.
# "stock" n'y figure pas : il ne change que par PATCH /medicines/<id>/stock.
MEDICINE_FIELDS = {
    "name": "name",
    "category": "category",
    "origin": "origin",
    "vialName": "vial_name",
    "expirationDate": "expiration_date",
    "notes": "notes",
    "createdDate": "created_date",
}
DATE_FIELDS = {"expiration_date", "created_date"}


def create_app(
    bus: Optional[messagebus.MessageBus] = None,
    settings: Optional[config.Settings] = None,
) -> Flask:
    """
    Construit l'application.

    Sans bus fourni, ouvre la base configurée, crée les tables et
    ferme la connexion à l'arrêt du processus.
    """
    settings = settings or config.get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    if bus is None:
        database = Database(settings.DATABASE_URL, echo=settings.SQL_ECHO).open()
        database.create_all()
        atexit.register(database.close)
        bus = bootstrap.bootstrap(database=database, settings=settings)
    app.extensions["bus"] = bus
    app.config["LOW_STOCK_THRESHOLD"] = settings.LOW_STOCK_THRESHOLD

    app.register_blueprint(api)
    app.register_error_handler(handlers.NotFound, _not_found)
    app.register_error_handler(DuplicateKey, _conflict)
    app.register_error_handler(intake.InvalidOrder, _invalid_order)
    app.register_error_handler(ValueError, _bad_request)
    app.cli.add_command(seed_command)
    return app


def _bus() -> messagebus.MessageBus:
    return current_app.extensions["bus"]


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    return date.fromisoformat(str(value)[:10])


# --- Erreurs ---


def _not_found(e: handlers.NotFound):
    return jsonify({"message": str(e)}), 404


def _conflict(e: DuplicateKey):
    return jsonify({"message": str(e)}), 409


def _invalid_order(e: intake.InvalidOrder):
    return jsonify({"message": e.reason, "field": e.field}), 400


def _bad_request(e: ValueError):
    return jsonify({"message": str(e)}), 400


@api.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"}), 200


# --- Médicaments ---


@api.route("/medicines", methods=["GET"])
def list_medicines():
    return jsonify(views.medicines(_bus().uow)), 200


@api.route("/medicines/low-stock", methods=["GET"])
def low_stock():
    threshold = request.args.get(
        "threshold", current_app.config["LOW_STOCK_THRESHOLD"], type=int
    )
    return jsonify(views.low_stock_medicines(threshold, _bus().uow)), 200


@api.route("/medicines/<medicine_id>", methods=["GET"])
def get_medicine(medicine_id: str):
    result = views.medicine(medicine_id, _bus().uow)
    if result is None:
        raise handlers.NotFound(f"Medicine not found: {medicine_id}")
    return jsonify(result), 200


@api.route("/medicines", methods=["POST"])
def create_medicine():
    """
    POST /medicines
    Body JSON : { id, name, category, origin, stock?, vialName?,
                  expirationDate?, notes?, createdDate? }
    """
    data = _json_body()
    missing = [key for key in ("id", "name", "category", "origin") if not data.get(key)]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")
    stock = data.get("stock") or 0
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        raise ValueError("stock must be a non-negative integer")

    cmd = commands.CreateMedicine(
        id=str(data["id"]),
        name=data["name"],
        category=data["category"],
        origin=data["origin"],
        stock=stock,
        vial_name=data.get("vialName"),
        expiration_date=_parse_date(data.get("expirationDate")),
        notes=data.get("notes"),
        created_date=_parse_date(data.get("createdDate")),
    )
    medicine_id = _bus().handle(cmd)
    return jsonify(views.medicine(medicine_id, _bus().uow)), 201


@api.route("/medicines/<medicine_id>", methods=["PUT"])
def update_medicine(medicine_id: str):
    data = _json_body()
    changes = {}
    for key, attribute in MEDICINE_FIELDS.items():
        if key in data:
            value = data[key]
            changes[attribute] = _parse_date(value) if attribute in DATE_FIELDS else value
    _bus().handle(commands.UpdateMedicine(id=medicine_id, changes=changes))
    return jsonify(views.medicine(medicine_id, _bus().uow)), 200


@api.route("/medicines/<medicine_id>/stock", methods=["PATCH"])
def adjust_stock(medicine_id: str):
    """
    PATCH /medicines/<id>/stock
    Body JSON : { quantity, type: "increase" | "decrease", note? }
    """
    data = _json_body()
    cmd = commands.AdjustStock(
        medicine_id=medicine_id,
        quantity=data.get("quantity"),
        direction=data.get("type"),
        note=data.get("note"),
    )
    _bus().handle(cmd)
    return jsonify(views.medicine(medicine_id, _bus().uow)), 200


@api.route("/medicines/<medicine_id>", methods=["DELETE"])
def delete_medicine(medicine_id: str):
    _bus().handle(commands.DeleteMedicine(id=medicine_id))
    return jsonify({"message": "Medicine deleted successfully"}), 200


# --- Commandes ---


@api.route("/orders", methods=["GET"])
def list_orders():
    return jsonify(views.orders(_bus().uow)), 200


@api.route("/orders/summary", methods=["GET"])
def order_summary():
    return jsonify(views.order_summary(_bus().uow)), 200


@api.route("/orders/user/<user_id>", methods=["GET"])
def list_user_orders(user_id: str):
    return jsonify(views.orders_for_user(user_id, _bus().uow)), 200


@api.route("/orders/<order_id>", methods=["GET"])
def get_order(order_id: str):
    result = views.order(order_id, _bus().uow)
    if result is None:
        raise handlers.NotFound(f"Order not found: {order_id}")
    return jsonify(result), 200


@api.route("/orders", methods=["POST"])
def create_order():
    """
    POST /orders
    Body JSON : { id?, userId, userName, items: [{ id, medicineId, name, quantity }], notes? }
    """
    cmd = intake.validate_order(request.get_json(silent=True))
    order_id = _bus().handle(cmd)
    return jsonify(views.order(order_id, _bus().uow)), 201


@api.route("/orders/<order_id>/status", methods=["PATCH"])
def change_order_status(order_id: str):
    """
    PATCH /orders/<id>/status
    Body JSON : { status }

    La réponse contient la commande et le détail des ajustements de stock.
    """
    data = _json_body()
    result = _bus().handle(
        commands.ChangeOrderStatus(order_id=order_id, status=data.get("status"))
    )
    body = views.order(order_id, _bus().uow) or {"id": order_id}
    body["adjustment"] = views.adjustment_to_dict(result)
    return jsonify(body), 200


@api.route("/orders/<order_id>/notes", methods=["PATCH"])
def update_order_notes(order_id: str):
    data = _json_body()
    notes = data.get("notes")
    _bus().handle(commands.UpdateOrderNotes(order_id=order_id, notes=notes or ""))
    return jsonify(views.order(order_id, _bus().uow)), 200


@api.route("/orders/<order_id>", methods=["DELETE"])
def delete_order(order_id: str):
    _bus().handle(commands.DeleteOrder(order_id=order_id))
    return jsonify({"message": "Order deleted successfully"}), 200


# --- CLI ---

DEMO_MEDICINES = [
    ("MED001", "Paracetamol", "Analgesic", "Local", 100),
    ("MED002", "Amoxicillin", "Antibiotic", "Import", 50),
    ("MED003", "Ibuprofen", "Analgesic", "Local", 75),
    ("MED004", "Cetirizine", "Antihistamine", "Import", 8),
]


@click.command("seed")
@with_appcontext
def seed_command() -> None:
    """Charge un petit catalogue de démonstration (ignore les ids existants)."""
    bus = _bus()
    created = 0
    for medicine_id, name, category, origin, stock in DEMO_MEDICINES:
        try:
            bus.handle(
                commands.CreateMedicine(id=medicine_id, name=name, category=category, origin=origin)
            )
        except DuplicateKey:
            logger.info("Médicament %s déjà présent, ignoré", medicine_id)
            continue
        bus.handle(
            commands.AdjustStock(
                medicine_id=medicine_id,
                quantity=stock,
                direction=model.INCREASE,
                note="Initial stock",
            )
        )
        created += 1
    click.echo(f"{created} médicament(s) créé(s)")
