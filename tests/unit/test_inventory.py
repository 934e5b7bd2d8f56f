"""
Tests du calcul des mouvements de stock induits par une transition.
"""

import pytest

from pharmacy.domain import model
from pharmacy.domain.model import Order, OrderItem
from pharmacy.service_layer import inventory
from pharmacy.service_layer.inventory import AdjustmentResult, ItemOutcome, StockMovement


def commande(status: str) -> Order:
    return Order(
        id="ORD-7",
        user_id="USR002",
        user_name="Regular User",
        items=[
            OrderItem(id="item-1", medicine_id="MED001", name="Paracetamol", quantity=5),
            OrderItem(id="item-2", medicine_id="MED002", name="Amoxicillin", quantity=2),
        ],
        status=status,
    )


class TestPlanAdjustment:
    @pytest.mark.parametrize("précédent", [model.PENDING, model.PROCESSING, model.CANCELLED])
    def test_completion_décompte_chaque_ligne(self, précédent):
        mouvements = inventory.plan_adjustment(commande(précédent), model.COMPLETED)
        assert mouvements == [
            StockMovement("MED001", 5, model.DECREASE, "Order #ORD-7 completed"),
            StockMovement("MED002", 2, model.DECREASE, "Order #ORD-7 completed"),
        ]

    def test_annulation_d_une_commande_complétée_restitue(self):
        mouvements = inventory.plan_adjustment(commande(model.COMPLETED), model.CANCELLED)
        assert [m.direction for m in mouvements] == [model.INCREASE, model.INCREASE]
        assert mouvements[0].note == "Order #ORD-7 cancelled"

    @pytest.mark.parametrize(
        "précédent, nouveau",
        [
            (model.PENDING, model.PROCESSING),
            (model.PENDING, model.CANCELLED),
            (model.PROCESSING, model.CANCELLED),
            (model.COMPLETED, model.PENDING),
            (model.COMPLETED, model.PROCESSING),
            (model.CANCELLED, model.PENDING),
        ],
    )
    def test_autres_transitions_sans_effet(self, précédent, nouveau):
        assert inventory.plan_adjustment(commande(précédent), nouveau) == []

    def test_completed_vers_completed_ne_décompte_pas_deux_fois(self):
        assert inventory.plan_adjustment(commande(model.COMPLETED), model.COMPLETED) == []


class TestAdjustmentResult:
    def test_résultat_complet(self):
        résultat = AdjustmentResult(
            "ORD-7", model.PENDING, model.COMPLETED,
            [ItemOutcome("MED001", 5, model.DECREASE, inventory.APPLIED, stock=5)],
        )
        assert not résultat.is_partial
        assert résultat.unadjusted_medicine_ids == ()

    def test_résultat_partiel(self):
        résultat = AdjustmentResult(
            "ORD-7", model.PENDING, model.COMPLETED,
            [
                ItemOutcome("MED001", 5, model.DECREASE, inventory.APPLIED, stock=5),
                ItemOutcome("MED404", 1, model.DECREASE, inventory.SKIPPED),
                ItemOutcome("MED500", 1, model.DECREASE, inventory.FAILED, error="boom"),
            ],
        )
        assert résultat.is_partial
        assert [o.medicine_id for o in résultat.applied] == ["MED001"]
        assert [o.medicine_id for o in résultat.skipped] == ["MED404"]
        assert [o.medicine_id for o in résultat.failed] == ["MED500"]
        assert résultat.unadjusted_medicine_ids == ("MED404", "MED500")

    def test_aucun_mouvement_n_est_pas_partiel(self):
        assert not AdjustmentResult("ORD-7", model.PENDING, model.PROCESSING).is_partial
