"""État des listes de recherche (produit, finition, fournisseur) des lignes produit."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, Iterable, Iterator, NamedTuple, TypeVar

T = TypeVar("T")


class Picker(str, Enum):
    PRODUCT = "product"
    FINITION = "finition"
    SUPPLIER = "supplier"
    AGENT = "agent"


class DropdownKey(NamedTuple):
    """Identifie une liste : ligne produit, type de sélecteur, élément éventuel."""

    product_index: int
    picker: Picker
    item_id: int | None = None


@dataclass
class DropdownState(Generic[T]):
    search_term: str = ""
    is_open: bool = False
    results: list[T] = field(default_factory=list)


class SearchDropdownRegistry:
    """Associe chaque :class:`DropdownKey` à son état de recherche."""

    def __init__(self) -> None:
        self._states: dict[DropdownKey, DropdownState] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._states

    def __iter__(self) -> Iterator[DropdownKey]:
        return iter(list(self._states))

    def state(self, key: DropdownKey) -> DropdownState:
        return self._states.setdefault(key, DropdownState())

    def open_keys(self) -> list[DropdownKey]:
        return [key for key, state in self._states.items() if state.is_open]

    def search(
        self,
        key: DropdownKey,
        term: str,
        candidates: Iterable[T],
        label: Callable[[T], str],
    ) -> list[T]:
        """Filtre ``candidates`` sur ``term`` (sans casse) et ouvre la liste si ``term`` est saisi."""
        needle = term.strip().lower()
        results = [item for item in candidates if needle in label(item).lower()]
        self._states[key] = DropdownState(search_term=term, is_open=bool(term), results=results)
        return results

    def close(self, key: DropdownKey) -> None:
        if key in self._states:
            self._states[key].is_open = False

    def reset(self, key: DropdownKey) -> None:
        self._states[key] = DropdownState()

    def discard(self, key: DropdownKey) -> None:
        self._states.pop(key, None)

    def close_on_outside_interaction(self, region_id: DropdownKey | None) -> list[DropdownKey]:
        """Ferme toutes les listes ouvertes hors de la région touchée.

        ``region_id`` vaut ``None`` quand l'interaction a lieu hors de toute liste.
        Retourne les clés fermées.
        """
        closed = [key for key in self.open_keys() if key != region_id]
        for key in closed:
            self._states[key].is_open = False
        return closed

    def clear_product(self, product_index: int, picker: Picker | None = None) -> None:
        for key in list(self._states):
            if key.product_index == product_index and (picker is None or key.picker is picker):
                del self._states[key]

    def remove_product(self, product_index: int) -> None:
        """Oublie une ligne supprimée et décale les lignes suivantes."""
        shifted: dict[DropdownKey, DropdownState] = {}
        for key, state in self._states.items():
            if key.product_index == product_index:
                continue
            if key.product_index > product_index:
                key = key._replace(product_index=key.product_index - 1)
            shifted[key] = state
        self._states = shifted
