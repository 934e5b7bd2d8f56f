"""
Tests d'intégration des Repositories avec SQLite en mémoire.

Ces tests vérifient que le mapping ORM fonctionne correctement :
- Sauvegarder et recharger un médicament avec son historique
- L'ordre de l'historique et des lignes de commande survit au rechargement
- Le total d'une commande est recalculé à la sauvegarde
"""

from datetime import date, datetime, timezone

from sqlalchemy import text

from pharmacy.adapters import repository
from pharmacy.domain import model
from pharmacy.domain.model import Medicine, Order, OrderItem


def créer_médicament(id: str = "MED001", stock: int = 10) -> Medicine:
    return Medicine(
        id=id,
        name="Paracetamol",
        category="Analgesic",
        origin="Local",
        stock=stock,
        vial_name="Blister 500mg",
        expiration_date=date(2026, 12, 31),
    )


def créer_commande(id: str = "ORD-1", user_id: str = "USR002", *quantités: int) -> Order:
    return Order(
        id=id,
        user_id=user_id,
        user_name="Regular User",
        items=[
            OrderItem(id=f"item-{i}", medicine_id=f"MED00{i}", name=f"Med {i}", quantity=q)
            for i, q in enumerate(quantités or (1,), start=1)
        ],
    )


class TestSqlAlchemyMedicineRepository:
    def test_sauvegarder_et_recharger_un_médicament(self, database):
        session = database.session_factory()
        repo = repository.SqlAlchemyMedicineRepository(session)
        repo.add(créer_médicament(stock=25))
        session.commit()
        session.close()

        session = database.session_factory()
        rechargé = repository.SqlAlchemyMedicineRepository(session).get("MED001")
        assert rechargé is not None
        assert rechargé.stock == 25
        assert rechargé.vial_name == "Blister 500mg"
        assert rechargé.expiration_date == date(2026, 12, 31)
        assert rechargé.history == []
        assert rechargé.events == []

    def test_historique_rechargé_du_plus_récent_au_plus_ancien(self, database):
        session = database.session_factory()
        médicament = créer_médicament(stock=10)
        médicament.apply_stock_delta(5, model.INCREASE, note="Livraison")
        médicament.apply_stock_delta(3, model.DECREASE, note="Casse")
        repository.SqlAlchemyMedicineRepository(session).add(médicament)
        session.commit()
        session.close()

        session = database.session_factory()
        repo = repository.SqlAlchemyMedicineRepository(session)
        rechargé = repo.get("MED001")
        rechargé.apply_stock_delta(1, model.DECREASE, note="Vente")
        session.commit()
        session.close()

        session = database.session_factory()
        rechargé = repository.SqlAlchemyMedicineRepository(session).get("MED001")
        assert rechargé.stock == 11
        assert [entrée.note for entrée in rechargé.history] == ["Vente", "Casse", "Livraison"]
        assert [entrée.type for entrée in rechargé.history] == [
            model.DECREASE, model.DECREASE, model.INCREASE,
        ]

    def test_médicament_inconnu(self, database):
        session = database.session_factory()
        assert repository.SqlAlchemyMedicineRepository(session).get("MED404") is None

    def test_lister(self, database):
        session = database.session_factory()
        repo = repository.SqlAlchemyMedicineRepository(session)
        repo.add(créer_médicament("MED001"))
        repo.add(créer_médicament("MED002"))
        session.commit()

        assert {m.id for m in repo.list()} == {"MED001", "MED002"}
        assert len(repo.seen) == 2

    def test_supprimer_supprime_l_historique(self, database):
        session = database.session_factory()
        repo = repository.SqlAlchemyMedicineRepository(session)
        médicament = créer_médicament()
        médicament.apply_stock_delta(2, model.INCREASE)
        repo.add(médicament)
        session.commit()

        repo.delete(repo.get("MED001"))
        session.commit()

        assert repo.get("MED001") is None
        assert session.execute(text("SELECT count(*) FROM stock_history")).scalar() == 0


class TestSqlAlchemyOrderRepository:
    def test_lignes_rechargées_dans_l_ordre(self, database):
        session = database.session_factory()
        repository.SqlAlchemyOrderRepository(session).add(créer_commande("ORD-1", "USR002", 3, 1, 2))
        session.commit()
        session.close()

        session = database.session_factory()
        rechargée = repository.SqlAlchemyOrderRepository(session).get("ORD-1")
        assert [item.id for item in rechargée.items] == ["item-1", "item-2", "item-3"]
        assert [item.quantity for item in rechargée.items] == [3, 1, 2]
        assert rechargée.status == model.PENDING
        assert rechargée.total == 6

    def test_total_recalculé_à_la_sauvegarde(self, database):
        session = database.session_factory()
        repo = repository.SqlAlchemyOrderRepository(session)
        repo.add(créer_commande("ORD-1", "USR002", 2))
        session.commit()

        commande = repo.get("ORD-1")
        commande.items.append(OrderItem(id="item-9", medicine_id="MED009", name="Med 9", quantity=7))
        session.commit()
        session.close()

        session = database.session_factory()
        assert repository.SqlAlchemyOrderRepository(session).get("ORD-1").total == 9

    def test_commandes_d_un_client(self, database):
        session = database.session_factory()
        repo = repository.SqlAlchemyOrderRepository(session)
        repo.add(créer_commande("ORD-1", "USR002"))
        repo.add(créer_commande("ORD-2", "USR003"))
        repo.add(créer_commande("ORD-3", "42"))
        session.commit()

        assert [o.id for o in repo.list_by_user("USR002")] == ["ORD-1"]
        assert [o.id for o in repo.list_by_user(42)] == ["ORD-3"]
        assert repo.list_by_user("USR999") == []

    def test_supprimer_supprime_les_lignes(self, database):
        session = database.session_factory()
        repo = repository.SqlAlchemyOrderRepository(session)
        repo.add(créer_commande("ORD-1", "USR002", 1, 2))
        session.commit()

        repo.delete(repo.get("ORD-1"))
        session.commit()

        assert repo.get("ORD-1") is None
        assert session.execute(text("SELECT count(*) FROM order_items")).scalar() == 0


class TestHorodatages:
    def test_horodatages_relus_en_utc(self, database):
        moment = datetime(2024, 6, 1, 14, 30, tzinfo=timezone.utc)
        session = database.session_factory()
        médicament = créer_médicament()
        médicament.apply_stock_delta(1, model.INCREASE, at=moment)
        repository.SqlAlchemyMedicineRepository(session).add(médicament)
        commande = créer_commande("ORD-1", "USR002", 1)
        commande.change_status(model.COMPLETED, at=moment)
        repository.SqlAlchemyOrderRepository(session).add(commande)
        session.commit()
        session.close()

        session = database.session_factory()
        rechargé = repository.SqlAlchemyMedicineRepository(session).get("MED001")
        rechargée = repository.SqlAlchemyOrderRepository(session).get("ORD-1")

        assert rechargé.created_at.tzinfo == timezone.utc
        assert rechargé.history[0].date == moment
        assert rechargé.history[0].date.tzinfo == timezone.utc
        assert rechargée.order_date.tzinfo == timezone.utc
        assert rechargée.completion_date == moment
        assert rechargée.completion_date.tzinfo == timezone.utc
