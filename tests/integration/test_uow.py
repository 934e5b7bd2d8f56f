"""
Tests d'intégration du Unit of Work SQLAlchemy.
"""

import threading

import pytest

from pharmacy.domain import events, model
from pharmacy.domain.model import Medicine
from pharmacy.service_layer import unit_of_work
from pharmacy.service_layer.unit_of_work import DuplicateKey


def insérer_médicament(uow, id: str = "MED001", stock: int = 10) -> None:
    with uow:
        uow.medicines.add(
            Medicine(id=id, name="Paracetamol", category="Analgesic", origin="Local", stock=stock)
        )
        uow.commit()


def lire_stock(database, id: str) -> int:
    with database.engine.connect() as connection:
        return connection.exec_driver_sql(
            "SELECT stock FROM medicines WHERE id = ?", (id,)
        ).scalar()


def test_commit_persiste(database):
    uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)
    insérer_médicament(uow, stock=10)

    with uow:
        uow.medicines.get("MED001").apply_stock_delta(4, model.DECREASE)
        uow.commit()

    assert lire_stock(database, "MED001") == 6


def test_rollback_sans_commit(database):
    uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)
    insérer_médicament(uow, stock=10)

    with uow:
        uow.medicines.get("MED001").apply_stock_delta(4, model.DECREASE)

    assert lire_stock(database, "MED001") == 10


def test_rollback_sur_exception(database):
    class MonException(Exception):
        pass

    uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)
    insérer_médicament(uow, stock=10)

    with pytest.raises(MonException):
        with uow:
            uow.medicines.get("MED001").apply_stock_delta(4, model.DECREASE)
            raise MonException()

    assert lire_stock(database, "MED001") == 10


def test_identifiant_en_double(database):
    uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)
    insérer_médicament(uow, "MED001")

    with pytest.raises(DuplicateKey):
        insérer_médicament(uow, "MED001")


def test_événements_collectés_après_commit_seulement(database):
    uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)
    insérer_médicament(uow, stock=2)

    with uow:
        uow.medicines.get("MED001").apply_stock_delta(2, model.DECREASE)
    assert list(uow.collect_new_events()) == []

    with uow:
        uow.medicines.get("MED001").apply_stock_delta(2, model.DECREASE)
        uow.commit()
    assert list(uow.collect_new_events()) == [
        events.OutOfStock(medicine_id="MED001", name="Paracetamol")
    ]


def test_événements_conservés_entre_transactions(database):
    uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)
    insérer_médicament(uow, "MED001", stock=1)
    insérer_médicament(uow, "MED002", stock=1)

    for medicine_id in ("MED001", "MED002"):
        with uow:
            uow.medicines.get(medicine_id).apply_stock_delta(1, model.DECREASE)
            uow.commit()

    assert [e.medicine_id for e in uow.collect_new_events()] == ["MED001", "MED002"]


def test_requêtes_simultanées_gardent_chacune_leur_session(database):
    uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)
    a_entrée = threading.Event()
    b_entrée = threading.Event()
    vu = {}

    def requête_a():
        with uow:
            vu["a_session"] = uow.session
            a_entrée.set()
            b_entrée.wait(timeout=5)
            vu["a_session_après"] = uow.session
            vu["a_repo_medicines"] = uow.medicines.session
            vu["a_repo_orders"] = uow.orders.session

    def requête_b():
        a_entrée.wait(timeout=5)
        with uow:
            vu["b_session"] = uow.session
            b_entrée.set()

    threads = [threading.Thread(target=requête_a), threading.Thread(target=requête_b)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert vu["a_session"] is not vu["b_session"]
    assert vu["a_session_après"] is vu["a_session"]
    assert vu["a_repo_medicines"] is vu["a_session"]
    assert vu["a_repo_orders"] is vu["a_session"]


def test_commit_d_une_requête_ne_valide_pas_celle_d_une_autre(database):
    uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)
    insérer_médicament(uow, "MED001", stock=10)
    insérer_médicament(uow, "MED002", stock=10)
    a_entrée = threading.Event()
    b_modifié = threading.Event()
    a_validé = threading.Event()

    def requête_a():
        with uow:
            a_entrée.set()
            b_modifié.wait(timeout=5)
            uow.medicines.get("MED001").apply_stock_delta(1, model.DECREASE)
            uow.commit()
            a_validé.set()

    def requête_b():
        a_entrée.wait(timeout=5)
        with uow:
            uow.medicines.get("MED002").apply_stock_delta(4, model.DECREASE)
            b_modifié.set()
            a_validé.wait(timeout=5)

    threads = [threading.Thread(target=requête_a), threading.Thread(target=requête_b)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert lire_stock(database, "MED001") == 9
    assert lire_stock(database, "MED002") == 10


def test_événements_propres_au_thread_qui_les_a_validés(database):
    uow = unit_of_work.SqlAlchemyUnitOfWork(database.session_factory)
    insérer_médicament(uow, stock=1)
    collectés_par_le_thread = []

    def requête():
        with uow:
            uow.medicines.get("MED001").apply_stock_delta(1, model.DECREASE)
            uow.commit()
        collectés_par_le_thread.extend(uow.collect_new_events())

    thread = threading.Thread(target=requête)
    thread.start()
    thread.join(timeout=10)

    assert list(uow.collect_new_events()) == []
    assert collectés_par_le_thread == [events.OutOfStock(medicine_id="MED001", name="Paracetamol")]
