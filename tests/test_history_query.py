from __future__ import annotations

import pytest

from gestion_commandes.core import models
from gestion_commandes.core.visibility import resolve_field_visibility
from gestion_commandes.services.history import (
    HistoryFilters,
    build_history_query,
    flatten_history_orders,
)


def test_empty_filters_only_send_paging() -> None:
    assert build_history_query(HistoryFilters(), page=3, limit=25) == {"page": 3, "limit": 25}


def test_lists_are_comma_joined_and_blanks_omitted() -> None:
    filters = HistoryFilters(
        statut="livre",
        commercial=["bruno", "alice"],
        atelier=[],
        etape=["impression"],
        client="  ",
        search="PMS-12",
        express="oui",
        pack_fin_annee="false",
    )

    query = build_history_query(filters)

    assert query == {
        "statut": "livre",
        "commercial": "bruno,alice",
        "etape": "impression",
        "search": "PMS-12",
        "express": "oui",
        "pack_fin_annee": "false",
        "page": 1,
        "limit": 10,
    }


@pytest.mark.parametrize(
    ("role", "expected"),
    [("admin", True), ("atelier", True), ("commercial", False), ("infograph", False)],
)
def test_machine_impression_filter_follows_role(role: str, expected: bool) -> None:
    filters = HistoryFilters(machine_impression="HP Latex")

    query = build_history_query(filters, visibility=resolve_field_visibility(role))

    assert ("machine_impression" in query) is expected


def test_only_archived_statuses_are_accepted() -> None:
    with pytest.raises(ValueError):
        HistoryFilters(statut="en_cours")
    with pytest.raises(ValueError):
        HistoryFilters(bat="peut-être")
    with pytest.raises(ValueError):
        HistoryFilters().with_changes(couleur="rouge")


def test_flatten_yields_one_row_per_order_product() -> None:
    order = models.Order.model_validate(
        {
            "id": 1,
            "statut": "en_cours",
            "numero_affaire": "AFF-0001",
            "commercial_en_charge": "bruno",
            "clientInfo": {"id": 3, "nom": "Imprimerie Martin"},
            "orderProducts": [{"id": 10, "quantity": 5}, {"id": 11, "quantity": 3}],
        }
    )

    rows = flatten_history_orders([order])

    assert [row.order_product_id for row in rows] == [10, 11]
    assert [row.quantity for row in rows] == [5, 3]
    for row in rows:
        assert row.order_id == 1
        assert row.client_info == "Imprimerie Martin"
        assert row.commercial_en_charge == "bruno"
        assert row.numero_affaire == "AFF-0001"


def test_product_status_falls_back_to_order_status() -> None:
    order = models.Order.model_validate(
        {
            "id": 2,
            "statut": "livre",
            "client": "Client libre",
            "orderProducts": [
                {"id": 20, "statut": "annule", "product": {"id": 1, "name": "Flyer A5"}},
                {"id": 21},
            ],
        }
    )

    first, second = flatten_history_orders([order])

    assert (first.statut, second.statut) == ("annule", "livre")
    assert (first.product_name, second.product_name) == ("Flyer A5", "Produit")
    assert first.client_info == "Client libre"


def test_orders_without_products_produce_no_rows() -> None:
    order = models.Order(id=3, statut="livre")

    assert flatten_history_orders([order]) == []
