"""Valeurs métier partagées : statuts, ateliers, étapes et options de formulaire."""
from __future__ import annotations

ROLES: tuple[str, ...] = ("commercial", "infograph", "atelier", "admin")

ORDER_STATUSES: tuple[str, ...] = (
    "problem_technique",
    "en_cours",
    "attente_validation",
    "modification",
    "termine",
    "livre",
    "annule",
)

STATUS_LABELS: dict[str, str] = {
    "problem_technique": "Problème technique",
    "en_cours": "En cours",
    "attente_validation": "Attente de validation",
    "modification": "Modification",
    "termine": "Terminé",
    "livre": "Livré",
    "annule": "Annulé",
}

# Une commande passe dans l'historique lorsqu'elle est livrée ou annulée.
HISTORY_STATUSES: tuple[str, ...] = ("livre", "annule")

ATELIER_OPTIONS: tuple[str, ...] = (
    "petit format",
    "grand format",
    "sous-traitance",
    "service crea",
)

ETAPE_OPTIONS: tuple[str, ...] = (
    "conception",
    "pré-presse",
    "travail graphique",
    "impression",
    "finition",
    "en production",
    "controle qualité",
)

ETAPES_BY_ATELIER: dict[str, tuple[str, ...]] = {
    "petit format": ("pré-presse", "impression", "finition"),
    "grand format": ("pré-presse", "impression", "finition"),
    "service crea": ("conception", "travail graphique"),
    "sous-traitance": ("pré-presse", "en production", "controle qualité"),
}

# Le service créa n'a pas d'étape par défaut : l'utilisateur doit choisir.
DEFAULT_ETAPE_BY_ATELIER: dict[str, str] = {
    "": "pré-presse",
    "petit format": "pré-presse",
    "grand format": "pré-presse",
    "sous-traitance": "pré-presse",
    "service crea": "",
}

# Le catalogue produit est cloisonné par type d'atelier.
ATELIER_PRODUCT_TYPES: dict[str, str] = {
    "petit format": "petit_format",
    "grand format": "grand_format",
    "sous-traitance": "sous_traitance",
    "service crea": "service_crea",
}

SOUS_TRAITANCE = "sous-traitance"

BAT_OPTIONS: tuple[tuple[str, str], ...] = (("avec", "Avec"), ("sans", "Sans"))
EXPRESS_OPTIONS: tuple[tuple[str, str], ...] = (("oui", "Oui"), ("non", "Non"))
PACK_FIN_ANNEE_OPTIONS: tuple[tuple[str, str], ...] = (("oui", "Oui"), ("non", "Non"))

# Les filtres de l'historique envoient le booléen tel que le backend l'attend.
PACK_FIN_ANNEE_FILTER_OPTIONS: tuple[tuple[str, str], ...] = (("true", "Oui"), ("false", "Non"))

SOUS_TRAITANCE_TYPES: tuple[str, ...] = ("Offset", "Sérigraphie", "Objet publicitaire", "Autre")


def etapes_for_atelier(atelier: str) -> tuple[str, ...]:
    """Retourne les étapes autorisées pour un atelier (toutes si aucun atelier)."""

    if not atelier:
        return ETAPE_OPTIONS
    return ETAPES_BY_ATELIER.get(atelier, ())


def default_etape_for_atelier(atelier: str) -> str:
    return DEFAULT_ETAPE_BY_ATELIER.get(atelier, "")


def status_label(status: str | None) -> str:
    if not status:
        return "-"
    return STATUS_LABELS.get(status, status)
