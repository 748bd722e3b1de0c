"""Matrice de visibilité des champs selon le rôle de l'utilisateur.

Toute décision d'affichage ou d'édition liée au rôle passe par ce module :
les autres modules consomment :class:`FieldVisibility` et ne testent jamais
``user.role`` directement.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

from gestion_commandes.core.constants import ROLES


class Section(str, Enum):
    ORDER = "order_level"
    PRODUCT = "product_level"

    @classmethod
    def _missing_(cls, value: object) -> Section | None:
        aliases = {
            "orderLevel": cls.ORDER,
            "order": cls.ORDER,
            "productLevel": cls.PRODUCT,
            "product": cls.PRODUCT,
        }
        return aliases.get(value) if isinstance(value, str) else None


ORDER_FIELDS: tuple[str, ...] = (
    "numero_affaire",
    "numero_dm",
    "client",
    "commercial_en_charge",
    "date_limite_livraison_attendue",
    "statut",
)

PRODUCT_FIELDS: tuple[str, ...] = (
    "product",
    "quantity",
    "unit_price",
    "numero_pms",
    "infograph_en_charge",
    "agent_impression",
    "machine_impression",
    "date_limite_livraison_estimee",
    "etape",
    "atelier_concerne",
    "estimated_work_time_minutes",
    "bat",
    "express",
    "pack_fin_annee",
    "commentaires",
    "type_sous_traitance",
    "supplier_selection",
    "finitions",
)

HISTORY_COLUMNS: tuple[str, ...] = (
    "numero_affaire",
    "numero_dm",
    "client_info",
    "commercial_en_charge",
    "product_name",
    "quantity",
    "numero_pms",
    "date_limite_livraison_attendue",
    "statut",
    "etape",
    "atelier_concerne",
    "infograph_en_charge",
    "agent_impression",
    "machine_impression",
    "date_limite_livraison_estimee",
    "estimated_work_time_minutes",
    "bat",
    "express",
    "pack_fin_annee",
    "type_sous_traitance",
    "commentaires",
)

# Champs remplis automatiquement : visibles ou non, jamais saisis.
AUTO_POPULATED_FIELDS: frozenset[tuple[Section, str]] = frozenset(
    {(Section.ORDER, "commercial_en_charge")}
)

_ORDER_VISIBLE: dict[str, set[str]] = {
    "commercial": {"numero_affaire", "numero_dm", "client", "date_limite_livraison_attendue", "statut"},
    "infograph": {"client", "statut"},
    "atelier": {"client", "statut"},
    "admin": {"numero_affaire", "numero_dm", "client", "date_limite_livraison_attendue", "statut"},
}

_PRODUCT_VISIBLE: dict[str, set[str]] = {
    "commercial": {
        "product",
        "quantity",
        "unit_price",
        "etape",
        "atelier_concerne",
        "bat",
        "express",
        "pack_fin_annee",
        "commentaires",
    },
    "infograph": {
        "product",
        "quantity",
        "numero_pms",
        "infograph_en_charge",
        "agent_impression",
        "etape",
        "atelier_concerne",
        "estimated_work_time_minutes",
        "bat",
        "express",
        "commentaires",
        "finitions",
    },
    "atelier": {
        "product",
        "quantity",
        "numero_pms",
        "infograph_en_charge",
        "agent_impression",
        "machine_impression",
        "etape",
        "atelier_concerne",
        "bat",
        "express",
        "commentaires",
        "type_sous_traitance",
        "supplier_selection",
        "finitions",
    },
    "admin": set(PRODUCT_FIELDS) - {"date_limite_livraison_estimee"},
}

_HISTORY_VISIBLE: dict[str, set[str]] = {
    "commercial": {
        "numero_affaire",
        "numero_dm",
        "client_info",
        "commercial_en_charge",
        "product_name",
        "quantity",
        "date_limite_livraison_attendue",
        "statut",
        "etape",
        "date_limite_livraison_estimee",
    },
    "infograph": {
        "client_info",
        "product_name",
        "quantity",
        "numero_pms",
        "statut",
        "etape",
        "atelier_concerne",
        "infograph_en_charge",
        "agent_impression",
        "date_limite_livraison_estimee",
        "bat",
        "express",
    },
    "atelier": {
        "client_info",
        "product_name",
        "quantity",
        "numero_pms",
        "statut",
        "etape",
        "atelier_concerne",
        "infograph_en_charge",
        "agent_impression",
        "machine_impression",
        "date_limite_livraison_estimee",
        "bat",
        "express",
        "type_sous_traitance",
    },
    "admin": set(HISTORY_COLUMNS),
}


def _flags(fields: tuple[str, ...], visible: set[str]) -> Mapping[str, bool]:
    return MappingProxyType({field: field in visible for field in fields})


@dataclass(frozen=True)
class FieldVisibility:
    """Visibilité et droits d'édition calculés pour un rôle."""

    role: str
    order_level: Mapping[str, bool]
    product_level: Mapping[str, bool]
    history_columns: Mapping[str, bool]
    history_editable_fields: frozenset[str]
    can_mutate_finitions: bool
    can_delete_history_orders: bool
    machine_impression_filter: bool

    def section(self, section: Section | str) -> Mapping[str, bool]:
        return self.order_level if Section(section) is Section.ORDER else self.product_level

    def is_visible(self, section: Section | str, field: str) -> bool:
        return self.section(section).get(field, False)

    def is_read_only(self, section: Section | str, field: str) -> bool:
        """Indique si un champ du formulaire doit être verrouillé."""
        section = Section(section)
        if self.role == "atelier":
            # L'atelier ne saisit que ses finitions.
            return not (section is Section.PRODUCT and field == "finitions")
        if (section, field) in AUTO_POPULATED_FIELDS:
            return True
        return not self.is_visible(section, field)

    def is_history_editable(self, field: str) -> bool:
        return field in self.history_editable_fields


@lru_cache(maxsize=None)
def resolve_field_visibility(role: str) -> FieldVisibility:
    if role not in ROLES:
        raise ValueError(f"Rôle inconnu: {role}")
    return FieldVisibility(
        role=role,
        order_level=_flags(ORDER_FIELDS, _ORDER_VISIBLE[role]),
        product_level=_flags(PRODUCT_FIELDS, _PRODUCT_VISIBLE[role]),
        history_columns=_flags(HISTORY_COLUMNS, _HISTORY_VISIBLE[role]),
        history_editable_fields=frozenset({"statut"}) if role == "admin" else frozenset(),
        can_mutate_finitions=role != "commercial",
        can_delete_history_orders=role == "admin",
        machine_impression_filter=role in {"admin", "atelier"},
    )


def is_field_read_only(role: str, section: Section | str, field: str) -> bool:
    return resolve_field_visibility(role).is_read_only(section, field)
