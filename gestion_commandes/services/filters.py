"""Sélecteurs de filtres de l'historique (choix multiple)."""
from __future__ import annotations

from typing import Iterable, NamedTuple, Union


class Option(NamedTuple):
    value: str
    label: str


OptionLike = Union[str, Option, tuple[str, str]]


def _as_option(option: OptionLike) -> Option:
    if isinstance(option, str):
        return Option(option, option)
    value, label = option
    return Option(value, label)


class MultiSelectFilter:
    """Liste à choix multiple ; aucune sélection signifie « pas de filtre »."""

    def __init__(self, options: Iterable[OptionLike], selected: Iterable[str] = ()) -> None:
        self.options: list[Option] = [_as_option(option) for option in options]
        self.selected: list[str] = list(selected)

    @property
    def values(self) -> list[str]:
        return [option.value for option in self.options]

    def toggle(self, value: str) -> list[str]:
        if value in self.selected:
            self.selected = [item for item in self.selected if item != value]
        else:
            self.selected = [*self.selected, value]
        return self.selected

    def select_all(self) -> list[str]:
        """Tout sélectionner, ou tout désélectionner si tout l'est déjà."""
        if len(self.selected) == len(self.options):
            self.selected = []
        else:
            self.selected = self.values
        return self.selected

    def clear(self) -> None:
        self.selected = []

    def display_text(self, placeholder: str) -> str:
        if not self.selected:
            return placeholder
        if len(self.selected) == 1:
            value = self.selected[0]
            return next((option.label for option in self.options if option.value == value), value)
        return f"{len(self.selected)} sélectionné(s)"
