from __future__ import annotations

from gestion_commandes.core.constants import PACK_FIN_ANNEE_FILTER_OPTIONS
from gestion_commandes.services.filters import MultiSelectFilter


def test_select_all_toggles_between_all_and_none() -> None:
    widget = MultiSelectFilter(["A", "B", "C"], selected=["A", "B"])

    assert widget.select_all() == ["A", "B", "C"]
    assert widget.select_all() == []
    assert widget.select_all() == ["A", "B", "C"]


def test_toggle_adds_and_removes() -> None:
    widget = MultiSelectFilter(["A", "B", "C"])

    widget.toggle("B")
    widget.toggle("A")
    assert widget.selected == ["B", "A"]
    widget.toggle("B")
    assert widget.selected == ["A"]


def test_display_text() -> None:
    widget = MultiSelectFilter(PACK_FIN_ANNEE_FILTER_OPTIONS)

    assert widget.display_text("Tous") == "Tous"
    widget.toggle("true")
    assert widget.display_text("Tous") == "Oui"
    widget.toggle("false")
    assert widget.display_text("Tous") == "2 sélectionné(s)"
    widget.clear()
    assert widget.selected == []
